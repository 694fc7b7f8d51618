from fastapi import APIRouter
from endpoints.auth import router as auth_router
from endpoints.notifications import router as notifications_router

api_router = APIRouter()
api_router.include_router(auth_router, prefix="/auth", tags=["auth"])
api_router.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
