from datetime import datetime
from typing import Optional
import hmac
import hashlib
import logging
from fastapi import HTTPException, Depends, Request, status
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from config import settings
from database import get_db

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password):
    return pwd_context.hash(password)


def _candidate_secrets():
    base = [settings.SESSION_SECRET]
    if settings.SESSION_ADDITIONAL_SECRETS:
        base.extend([s.strip() for s in settings.SESSION_ADDITIONAL_SECRETS.split(',') if s.strip()])
    return base

def _signature(sid: str, secret: str) -> str:
    return hmac.new(secret.encode(), sid.encode(), hashlib.sha256).hexdigest()

def sign_session_id(sid: str) -> str:
    """Cookie value for a session id: ``<sid>.<hmac>`` with the primary secret."""
    return f"{sid}.{_signature(sid, settings.SESSION_SECRET)}"

def unsign_session_id(value: Optional[str]) -> Optional[str]:
    """Return the session id carried by a signed cookie value, or None if tampered."""
    if not value or "." not in value:
        return None
    sid, provided = value.rsplit(".", 1)
    if not sid:
        return None
    # Accept any current or additional (rotated) secret
    for candidate in _candidate_secrets():
        if hmac.compare_digest(_signature(sid, candidate), provided):
            return sid
    return None


def resolve_session_identity(db: Session, credential: Optional[str]) -> Optional[int]:
    """Resolve a session cookie value to the authenticated user id.

    Shared by HTTP requests and the WebSocket handshake so both inherit the same
    expiry and logout semantics. Returns None for missing, tampered, unknown,
    expired or anonymous sessions.
    """
    from models.session import UserSession

    sid = unsign_session_id(credential)
    if sid is None:
        return None
    sess = db.query(UserSession).filter(UserSession.sid == sid).first()
    if sess is None:
        return None
    if sess.expires_at <= datetime.utcnow():
        db.delete(sess)
        db.commit()
        return None
    return sess.user_id


async def get_current_user(request: Request, db: Session = Depends(get_db)):
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
    )
    user_id = resolve_session_identity(db, request.cookies.get(settings.SESSION_COOKIE_NAME))
    if user_id is None:
        raise credentials_exception

    from models.user import User
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise credentials_exception
    return user


async def require_admin(current_user=Depends(get_current_user)):
    if current_user.role != settings.ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
