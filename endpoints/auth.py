from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session
from database import get_db
from schemas.user import UserCreate, LoginRequest, User as UserOut
from security import get_current_user, sign_session_id
from auth_service import create_user, authenticate_user, create_session, destroy_session, purge_expired_sessions
from models.user import User
from config import settings
from event_bus import publish

router = APIRouter()

def _set_session_cookie(response: Response, sid: str):
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=sign_session_id(sid),
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite=settings.SESSION_COOKIE_SAMESITE,
    )

@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db: Session = Depends(get_db)):
    """Create a regular account; administrators are told about it in real time"""
    new_user = await create_user(db, user)
    publish("user.registered", {"userId": new_user.id, "username": new_user.username})
    return new_user

@router.post("/login", response_model=UserOut)
async def login(credentials: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = await authenticate_user(db, credentials.username, credentials.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")
    await purge_expired_sessions(db)
    sess = await create_session(db, user.id)
    _set_session_cookie(response, sess.sid)
    return user

@router.post("/logout")
async def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    await destroy_session(db, request.cookies.get(settings.SESSION_COOKIE_NAME))
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"message": "Logged out"}

@router.get("/me", response_model=UserOut)
async def me(current_user: User = Depends(get_current_user)):
    return current_user
