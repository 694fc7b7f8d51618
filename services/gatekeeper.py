"""Admission of WebSocket connections into the registry.

The handshake is authenticated with the same session cookie as ordinary HTTP
requests. Anything short of a resolved user (no cookie, bad signature, expired
session, resolver error) rejects the upgrade and registers nothing.
"""
from __future__ import annotations
from typing import Optional, Protocol
import logging
from fastapi import WebSocket, status
from realtime import AuthenticationFailure, Connection, ConnectionRegistry, DeliveryFailure
from config import settings

logger = logging.getLogger(__name__)


class Resolver(Protocol):
    async def resolve(self, credential: Optional[str]) -> Optional[int]: ...


class UpgradeGatekeeper:
    def __init__(
        self,
        registry: ConnectionRegistry,
        resolver: Resolver,
        cookie_name: str = settings.SESSION_COOKIE_NAME,
        close_superseded: bool = settings.WS_CLOSE_SUPERSEDED,
    ) -> None:
        self.registry = registry
        self.resolver = resolver
        self.cookie_name = cookie_name
        self.close_superseded = close_superseded

    async def _authenticate(self, websocket: WebSocket) -> int:
        credential = websocket.cookies.get(self.cookie_name)
        try:
            identity = await self.resolver.resolve(credential)
        except Exception as exc:
            # Store errors fail closed
            raise AuthenticationFailure(f"session resolution failed: {exc}") from exc
        if identity is None:
            raise AuthenticationFailure("no authenticated session")
        return identity

    async def admit(self, websocket: WebSocket) -> Optional[Connection]:
        try:
            identity = await self._authenticate(websocket)
        except AuthenticationFailure as exc:
            logger.debug("Rejected websocket upgrade: %s", exc)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return None

        await websocket.accept()
        connection = Connection(identity, websocket)
        previous = self.registry.put(identity, connection)
        logger.info("Websocket admitted for user %s (%d online)", identity, len(self.registry))
        if previous is not None:
            logger.info("Websocket for user %s superseded an existing connection", identity)
            if self.close_superseded:
                await previous.close(code=status.WS_1008_POLICY_VIOLATION)
        return connection

    async def serve(self, websocket: WebSocket) -> None:
        """Admit ``websocket`` and hold it until the peer disconnects."""
        connection = await self.admit(websocket)
        if connection is None:
            return
        # identity/connection captured at admission drive the removal
        identity = connection.identity
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                # Clients only ever send keepalives; anything else is ignored
                if message.get("text") == "ping":
                    try:
                        await connection.send_json({"type": "pong"})
                    except DeliveryFailure:
                        break
        finally:
            connection.mark_closed()
            if self.registry.remove(identity, connection):
                logger.info("Websocket closed for user %s (%d online)", identity, len(self.registry))
            else:
                logger.debug("Stale websocket closed for user %s; newer connection kept", identity)
