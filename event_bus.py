"""Simple in-process event bus.

Business code publishes domain events here without knowing who listens. The
app wires a subscriber at startup that forwards admin-facing events to the
notification broadcaster.
"""
from collections import defaultdict
from typing import Callable, Any, Dict, List
import logging
import threading

logger = logging.getLogger(__name__)

_lock = threading.Lock()
_subscribers: Dict[str, List[Callable[[dict], Any]]] = defaultdict(list)

def subscribe(event_type: str, callback: Callable[[dict], Any]):
    with _lock:
        _subscribers[event_type].append(callback)

def unsubscribe(event_type: str, callback: Callable[[dict], Any]) -> bool:
    with _lock:
        subs = _subscribers.get(event_type)
        if not subs or callback not in subs:
            return False
        subs.remove(callback)
        if not subs:
            _subscribers.pop(event_type, None)
        return True

def publish(event_type: str, payload: dict):
    # Copy to avoid mutation while iterating
    with _lock:
        subs = list(_subscribers.get(event_type, []))
        subs_all = list(_subscribers.get("*", []))
    for cb in subs + subs_all:
        try:
            cb({"type": event_type, **payload})
        except Exception:
            logger.exception("Event bus subscriber failed for %s", event_type)
