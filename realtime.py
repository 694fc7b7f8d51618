"""WebSocket connection registry.

In-process only: one registry per application instance, created in the app
lifespan and handed to the gatekeeper and broadcaster. For multi-process
scale-out the registry would have to be fronted by Redis pub/sub or similar.

All methods are synchronous and only called from the event loop thread, so each
mutation is atomic with respect to other coroutines. If this ever moves to a
threaded server, guard ``_connections`` with a lock and keep ``remove`` as a
compare-and-remove.
"""
from __future__ import annotations
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional
import logging
from fastapi import WebSocket, status
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

Identity = Hashable


class AuthenticationFailure(Exception):
    """Handshake carried no valid session."""


class DeliveryFailure(Exception):
    def __init__(self, identity: Identity, reason: str):
        super().__init__(f"Delivery to {identity} failed: {reason}")
        self.identity = identity
        self.reason = reason


class ConnectionState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class Connection:
    """A live WebSocket bound to the identity it was admitted for."""

    def __init__(self, identity: Identity, websocket: WebSocket) -> None:
        self.identity = identity
        self.websocket = websocket
        self.state = ConnectionState.OPEN

    @property
    def is_open(self) -> bool:
        return (
            self.state is ConnectionState.OPEN
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    def mark_closed(self) -> None:
        self.state = ConnectionState.CLOSED

    async def send_json(self, message: Dict[str, Any]) -> None:
        if not self.is_open:
            raise DeliveryFailure(self.identity, "connection closed")
        try:
            await self.websocket.send_json(message)
        except Exception as exc:
            raise DeliveryFailure(self.identity, str(exc) or exc.__class__.__name__) from exc

    async def close(self, code: int = status.WS_1000_NORMAL_CLOSURE) -> None:
        if self.state is ConnectionState.CLOSED:
            return
        self.mark_closed()
        if self.websocket.application_state != WebSocketState.DISCONNECTED:
            try:
                await self.websocket.close(code=code)
            except RuntimeError:
                # Peer already went away
                logger.debug("Close on already disconnected socket for %s", self.identity)

    def __repr__(self) -> str:
        return f"<Connection identity={self.identity!r} state={self.state.value}>"


class ConnectionRegistry:
    def __init__(self) -> None:
        # identity -> its single current connection
        self._connections: Dict[Identity, Connection] = {}

    def put(self, identity: Identity, connection: Connection) -> Optional[Connection]:
        """Bind ``identity`` to ``connection``; last connection wins.

        Returns the superseded connection, if any. It is left open and simply
        becomes unreachable through the registry.
        """
        previous = self._connections.get(identity)
        self._connections[identity] = connection
        return previous if previous is not connection else None

    def remove(self, identity: Identity, connection: Connection) -> bool:
        """Drop the entry only if it still points at ``connection``."""
        if self._connections.get(identity) is not connection:
            return False
        del self._connections[identity]
        return True

    def get(self, identity: Identity) -> Optional[Connection]:
        return self._connections.get(identity)

    def for_each_open(self, identities: Iterable[Identity], fn: Callable[[Connection], Any]) -> int:
        """Call ``fn`` for every open connection among ``identities``.

        Absent and closed identities are skipped. Returns how many calls were made.
        """
        calls = 0
        for identity in set(identities):
            conn = self._connections.get(identity)
            if conn is None or not conn.is_open:
                continue
            fn(conn)
            calls += 1
        return calls

    def identities(self) -> List[Identity]:
        return list(self._connections)

    async def close_all(self, code: int = status.WS_1001_GOING_AWAY) -> None:
        # Snapshot first: closing yields to the loop
        conns = list(self._connections.values())
        self._connections.clear()
        for conn in conns:
            await conn.close(code=code)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, identity: object) -> bool:
        return identity in self._connections
