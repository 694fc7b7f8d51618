from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime

class UserSession(Base):
    """Server-side login session addressed by the opaque ``sid`` cookie value."""
    __tablename__ = "sessions"
    sid = Column(String(64), primary_key=True)
    # Anonymous sessions carry no user
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    user = relationship("User", back_populates="sessions")
