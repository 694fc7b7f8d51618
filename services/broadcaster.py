"""Role-targeted notification fan-out over the connection registry.

Delivery is best effort: each call resolves the role members once, sends one
message to every member holding an open connection at that moment and
forgets about everyone else. Nothing is retried or persisted.

Business code should not await a broadcast. ``submit`` hands the event to a
queue drained by a single worker task so a slow or failing fan-out never
blocks the request that triggered it.
"""
from __future__ import annotations
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple
import asyncio
import logging
from pydantic import ValidationError
from realtime import Connection, ConnectionRegistry, DeliveryFailure
from schemas.notification import NotificationEvent
from config import settings

logger = logging.getLogger(__name__)


class Directory(Protocol):
    async def members_of(self, role: str) -> Set[int]: ...


_Job = Tuple[str, str, Dict[str, Any]]


class NotificationBroadcaster:
    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: Directory,
        admin_role: str = settings.ADMIN_ROLE,
        max_pending: int = settings.NOTIFY_QUEUE_MAXSIZE,
    ) -> None:
        self.registry = registry
        self.directory = directory
        self.admin_role = admin_role
        self._max_pending = max_pending
        self._queue: Optional[asyncio.Queue[_Job]] = None
        self._worker: Optional[asyncio.Task] = None

    async def notify(self, event_type: str, recipient_role: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """Deliver one event to every reachable member of ``recipient_role``.

        Never raises; returns the number of successful deliveries.
        """
        try:
            message = NotificationEvent(type=event_type, user_role=recipient_role, payload=payload or {}).to_wire()
        except ValidationError as exc:
            logger.error("Notification %s dropped: invalid payload: %s", event_type, exc)
            return 0

        try:
            members = await self.directory.members_of(recipient_role)
        except Exception:
            logger.exception("Notification %s abandoned: directory lookup for role %s failed", event_type, recipient_role)
            return 0

        targets: List[Connection] = []
        self.registry.for_each_open(members, targets.append)
        if not targets:
            logger.debug("Notification %s: no %s online", event_type, recipient_role)
            return 0
        results = await asyncio.gather(*(self._deliver(conn, message) for conn in targets))
        delivered = sum(results)
        logger.debug("Notification %s delivered to %d/%d %s", event_type, delivered, len(targets), recipient_role)
        return delivered

    async def notify_admins(self, event_type: str, payload: Optional[Dict[str, Any]] = None) -> int:
        return await self.notify(event_type, self.admin_role, payload)

    async def _deliver(self, connection: Connection, message: Dict[str, Any]) -> bool:
        try:
            await connection.send_json(message)
            return True
        except DeliveryFailure as exc:
            logger.warning("Error sending websocket notification: %s", exc)
            return False

    # Queued, fire-and-forget entry point

    def submit(self, event_type: str, recipient_role: str, payload: Optional[Dict[str, Any]] = None) -> bool:
        """Queue a broadcast without waiting for it. Must run on the event loop thread."""
        if self._queue is None:
            logger.warning("Notification %s dropped: broadcaster not started", event_type)
            return False
        try:
            job_payload = dict(payload or {})
        except (TypeError, ValueError):
            logger.error("Notification %s dropped: payload is not a mapping", event_type)
            return False
        try:
            self._queue.put_nowait((event_type, recipient_role, job_payload))
        except asyncio.QueueFull:
            logger.warning("Notification %s dropped: %d notifications pending", event_type, self._queue.qsize())
            return False
        return True

    async def start(self) -> None:
        if self._worker is not None:
            return
        self._queue = asyncio.Queue(maxsize=self._max_pending)
        self._worker = asyncio.create_task(self._run(), name="notification-broadcaster")

    async def stop(self) -> None:
        if self._worker is None:
            return
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self._queue = None

    async def join(self) -> None:
        """Wait until every queued broadcast has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def _run(self) -> None:
        queue = self._queue
        while True:
            event_type, role, payload = await queue.get()
            try:
                await self.notify(event_type, role, payload)
            except Exception:
                # One bad job must not stop the worker
                logger.exception("Notification %s failed in worker", event_type)
            finally:
                queue.task_done()


def admin_event_forwarder(broadcaster: NotificationBroadcaster, event_types: Set[str]):
    """Event bus subscriber queueing the given event types for administrators."""
    def _forward(event: Dict[str, Any]) -> None:
        event_type = event.get("type")
        if event_type not in event_types:
            return
        payload = {k: v for k, v in event.items() if k != "type"}
        broadcaster.submit(event_type, broadcaster.admin_role, payload)
    return _forward
