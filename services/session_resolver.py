from __future__ import annotations
from typing import Callable, Optional
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from security import resolve_session_identity


class SessionResolver:
    """Runs the HTTP session lookup against a WebSocket handshake credential."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _resolve_sync(self, credential: Optional[str]) -> Optional[int]:
        db = self._session_factory()
        try:
            return resolve_session_identity(db, credential)
        finally:
            db.close()

    async def resolve(self, credential: Optional[str]) -> Optional[int]:
        if not credential:
            return None
        return await run_in_threadpool(self._resolve_sync, credential)
