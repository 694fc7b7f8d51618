from fastapi import HTTPException
from sqlalchemy.orm import Session
from models.user import User
from models.session import UserSession
from schemas.user import UserCreate
from security import get_password_hash, verify_password, unsign_session_id
from config import settings
from datetime import datetime, timedelta
from typing import Optional
import logging
import secrets

logger = logging.getLogger(__name__)

async def get_user_by_username(db: Session, username: str):
    return db.query(User).filter(User.username == username).first()

async def create_user(db: Session, user: UserCreate, role: str = "user"):
    existing = await get_user_by_username(db, user.username)
    if existing:
        raise HTTPException(status_code=400, detail="Username already registered")
    db_user = User(
        username=user.username,
        password=get_password_hash(user.password),
        role=role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user

async def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    user = await get_user_by_username(db, username)
    if not user or not verify_password(password, user.password):
        return None
    return user

async def create_session(db: Session, user_id: Optional[int]) -> UserSession:
    """Persist a new session for ``user_id`` expiring after SESSION_MAX_AGE_SECONDS."""
    sess = UserSession(
        sid=secrets.token_urlsafe(32),
        user_id=user_id,
        expires_at=datetime.utcnow() + timedelta(seconds=settings.SESSION_MAX_AGE_SECONDS),
    )
    db.add(sess)
    db.commit()
    db.refresh(sess)
    return sess

async def destroy_session(db: Session, cookie_value: Optional[str]) -> bool:
    sid = unsign_session_id(cookie_value)
    if sid is None:
        return False
    sess = db.query(UserSession).filter(UserSession.sid == sid).first()
    if not sess:
        return False
    db.delete(sess)
    db.commit()
    return True

async def purge_expired_sessions(db: Session) -> int:
    removed = db.query(UserSession).filter(UserSession.expires_at <= datetime.utcnow()).delete(
        synchronize_session=False
    )
    db.commit()
    if removed:
        logger.info("Purged %d expired sessions", removed)
    return removed
