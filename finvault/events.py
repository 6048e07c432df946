import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, NamedTuple

__all__ = [
    'Event', 'EventBus', 'Handler',
    'DATA_UPDATED', 'STORAGE_DEGRADED', 'SYNC_COMPLETED', 'CONNECTIVITY_CHANGED',
    'added', 'updated', 'deleted',
]

logger = logging.getLogger(__name__)


class Event(NamedTuple):
    name: str
    ts: str
    payload: Any


Handler = Callable[[Event, Any], Any]


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(name, handler)

        return _unsubscribe

    def publish(self, name: str, payload: Any) -> List[Any]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )

        results = []
        # copy: handlers may unsubscribe while being notified
        for handler in list(self._subscribers[name]):
            try:
                result = handler(event, payload)
            except Exception:
                logger.exception(f"Subscriber {getattr(handler, '__name__', handler)!r} failed on {name}")
                result = None
            results.append(result)
        return results

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)

    def subscriber_count(self, name: str) -> int:
        return len(self._subscribers.get(name, []))


DATA_UPDATED = "dataUpdated"
STORAGE_DEGRADED = "storageDegraded"
SYNC_COMPLETED = "syncCompleted"
CONNECTIVITY_CHANGED = "connectivityChanged"


def added(singular: str) -> str:
    return f"{singular}Added"


def updated(singular: str) -> str:
    return f"{singular}Updated"


def deleted(singular: str) -> str:
    return f"{singular}Deleted"
