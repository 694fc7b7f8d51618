from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from routers import api_router
from endpoints.realtime_ws import router as realtime_ws_router
from config import settings
from database import engine, Base
import database
import models  # ensure model registration
from realtime import ConnectionRegistry
from services.broadcaster import NotificationBroadcaster, admin_event_forwarder
from services.directory import DirectoryLookup
from services.gatekeeper import UpgradeGatekeeper
from services.session_resolver import SessionResolver
import event_bus
import os
import time
import logging

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Avoid calling create_all() unconditionally in production; Alembic owns the
# schema there. Only auto-create for SQLite, tests or an explicit dev flag.
if os.environ.get("TESTING") or engine.url.get_backend_name() == "sqlite" or os.environ.get("DEV_AUTO_CREATE") == "1":
    Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    registry = ConnectionRegistry()
    broadcaster = NotificationBroadcaster(registry, DirectoryLookup(database.SessionLocal))
    gatekeeper = UpgradeGatekeeper(registry, SessionResolver(database.SessionLocal))
    forwarder = admin_event_forwarder(broadcaster, settings.admin_notify_events)

    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.gatekeeper = gatekeeper

    await broadcaster.start()
    event_bus.subscribe("*", forwarder)
    logger.info("Realtime notifications listening on %s", settings.WS_PATH)
    try:
        yield
    finally:
        event_bus.unsubscribe("*", forwarder)
        await broadcaster.stop()
        await registry.close_all()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_api_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    path = request.url.path
    if path.startswith("/api"):
        duration_ms = int((time.perf_counter() - start) * 1000)
        line = f"{request.method} {path} {response.status_code} in {duration_ms}ms"
        if len(line) > 80:
            line = line[:79] + "…"
        logger.info(line)
    return response


# Include API routers
app.include_router(api_router, prefix=settings.API_V1_STR)
app.include_router(realtime_ws_router, tags=["realtime"])

@app.get("/")
async def root():
    return {"message": f"{settings.PROJECT_NAME} is running"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.environ.get("PORT", "8000")), reload=settings.DEBUG)
