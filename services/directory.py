"""Role membership lookup backed by the users table."""
from __future__ import annotations
from typing import Callable, Set
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from models.user import User

logger = logging.getLogger(__name__)


class DirectoryUnavailable(Exception):
    def __init__(self, role: str, cause: Exception):
        super().__init__(f"Could not resolve members of role {role!r}: {cause}")
        self.role = role
        self.cause = cause


class DirectoryLookup:
    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _members_sync(self, role: str) -> Set[int]:
        db = self._session_factory()
        try:
            rows = db.query(User.id).filter(User.role == role).all()
            return {row[0] for row in rows}
        except SQLAlchemyError as exc:
            raise DirectoryUnavailable(role, exc) from exc
        finally:
            db.close()

    async def members_of(self, role: str) -> Set[int]:
        """Point-in-time snapshot of the ids currently holding ``role``."""
        return await run_in_threadpool(self._members_sync, role)
