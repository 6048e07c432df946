"""
Sync Queue Manager.

Writes made while offline are appended to a durable queue (persisted on every
mutation) and replayed against the REST API once connectivity returns. An item
leaves the queue only after its POST is acknowledged with a 2xx status, so
delivery is at-least-once: the server is expected to treat a repeated POST of
the same record id as idempotent.
"""
import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from finvault import events
from finvault.domain import (
    ASSETS, DAILY_EXPENSES, EXPENSES, INCOME, LIABILITIES, TRANSACTIONS, SyncItem,
)
from finvault.errors import SyncDeliveryError
from finvault.events import EventBus
from finvault.storage import SYNC_QUEUE_KEY, KeyValueStorage

logger = logging.getLogger(__name__)

ENDPOINTS = {
    ASSETS: "/api/assets",
    LIABILITIES: "/api/liabilities",
    EXPENSES: "/api/budget/expenses",
    INCOME: "/api/budget/income",
    DAILY_EXPENSES: "/api/daily-expenses",
    TRANSACTIONS: "/api/transactions",
}


@dataclass(frozen=True)
class DrainResult:
    success: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class SyncQueue:
    """FIFO of SyncItems mirrored into KeyValueStorage after every change."""

    def __init__(self, storage: KeyValueStorage, clock: Callable[[], float] = time.time):
        self.storage = storage
        self.clock = clock
        self._items: List[SyncItem] = self._load()

    def _load(self) -> List[SyncItem]:
        items = []
        for raw in self.storage.get(SYNC_QUEUE_KEY, []) or []:
            try:
                items.append(SyncItem(
                    id=str(raw["id"]),
                    type=str(raw["type"]),
                    data=dict(raw.get("data") or {}),
                    createdAt=int(raw.get("createdAt") or 0),
                ))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed queued item {raw!r}: {e}")
        return items

    def _persist(self) -> None:
        self.storage.set(SYNC_QUEUE_KEY, [asdict(i) for i in self._items])

    def enqueue(self, type: str, data: Dict[str, Any]) -> SyncItem:
        item = SyncItem(
            id=data.get("id") or "",
            type=type,
            data=dict(data),
            createdAt=int(self.clock() * 1000),
        )
        for pos, queued in enumerate(self._items):
            if queued.id and queued.id == item.id and queued.type == type:
                # a newer write of the same record keeps the original slot
                self._items[pos] = item
                break
        else:
            self._items.append(item)
        self._persist()
        logger.info(f"Queued {type} record {item.id} for sync ({len(self._items)} pending)")
        return item

    def has_pending(self) -> bool:
        return bool(self._items)

    def items(self) -> List[SyncItem]:
        return list(self._items)

    def acknowledge(self, item: SyncItem) -> bool:
        """Drop item if the queue still holds exactly this version of it."""
        for pos, queued in enumerate(self._items):
            if queued == item:
                del self._items[pos]
                try:
                    self._persist()
                except OSError as e:
                    # the stale copy on disk is redelivered after a restart
                    logger.warning(f"Could not persist removal of {item.type} {item.id}: {e}")
                return True
        return False

    def clear(self) -> None:
        self._items = []
        self._persist()

    def __len__(self) -> int:
        return len(self._items)


class RequestsTransport:
    def __init__(self, base_url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def post(self, path: str, payload: Dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise SyncDeliveryError(f"POST {url} failed: {e}") from e
        if not resp.ok:
            raise SyncDeliveryError(f"POST {url} returned {resp.status_code}", status_code=resp.status_code)
        try:
            return resp.json()
        except ValueError:
            return None

    def get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise SyncDeliveryError(f"GET {url} failed: {e}") from e
        except ValueError as e:
            raise SyncDeliveryError(f"GET {url} returned invalid JSON") from e


class ConnectivityMonitor:
    """The single source of online/offline state for the core.

    Hosts feed it whatever signal they have (browser events, a ping, a toggle in
    the UI); listeners only hear about real transitions.
    """

    def __init__(self, online: bool = True, bus: Optional[EventBus] = None):
        self._online = online
        self.bus = bus
        self._listeners: List[Callable[[bool], None]] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def set_online(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info("Connection restored" if online else "Connection lost")
        if self.bus is not None:
            self.bus.publish(events.CONNECTIVITY_CHANGED, {"online": online})
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                logger.exception("Connectivity listener failed")


def summarize(result: DrainResult) -> str:
    parts = []
    if result.success:
        parts.append(f"Synced {result.success} item(s)")
    if result.failed:
        parts.append(f"{result.failed} item(s) will sync automatically when the server is reachable")
    return ". ".join(parts) if parts else "Nothing to sync"


class SyncManager:
    def __init__(
        self,
        queue: SyncQueue,
        transport: Any,
        connectivity: ConnectivityMonitor,
        bus: Optional[EventBus] = None,
        notify: Optional[Callable[[str], None]] = None,
        interval: float = 60.0,
        timeout: float = 10.0,
    ):
        self.queue = queue
        self.transport = transport
        self.connectivity = connectivity
        self.bus = bus
        self.notify = notify or (lambda message: logger.info(message))
        self.interval = interval
        self.timeout = timeout
        self._inflight: Optional[asyncio.Future] = None
        self._poller: Optional[asyncio.Task] = None
        self._tasks: set = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._remove_listener: Optional[Callable[[], None]] = None

    @property
    def is_draining(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def drain(self) -> DrainResult:
        if self.is_draining:
            logger.info("Drain already in progress, joining it")
            return await asyncio.shield(self._inflight)
        self._inflight = asyncio.ensure_future(self._drain_once())
        return await asyncio.shield(self._inflight)

    async def _drain_once(self) -> DrainResult:
        items = self.queue.items()
        if not items:
            return DrainResult()

        logger.info(f"Processing {len(items)} queued item(s)")
        success = failed = 0
        for item in items:
            try:
                await self._deliver(item)
            except Exception as e:
                failed += 1
                logger.warning(f"Sync of {item.type} {item.id} failed, keeping it queued: {e}")
                continue
            self.queue.acknowledge(item)
            success += 1
            logger.debug(f"Delivered {item.type} {item.id}")
        logger.info(f"Sync finished: {success} delivered, {failed} still queued")
        return DrainResult(success=success, failed=failed)

    async def _deliver(self, item: SyncItem) -> None:
        endpoint = ENDPOINTS.get(item.type)
        if endpoint is None:
            raise SyncDeliveryError(f"No endpoint for {item.type}")
        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.transport.post, endpoint, item.data),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise SyncDeliveryError(f"POST {endpoint} timed out after {self.timeout}s") from e

    async def on_reconnect(self) -> Optional[DrainResult]:
        if not self.connectivity.is_online:
            return None
        if not self.queue.has_pending() and not self.is_draining:
            return DrainResult()
        result = await self.drain()
        self.notify(summarize(result))
        if self.bus is not None:
            self.bus.publish(events.SYNC_COMPLETED, result.as_dict())
        return result

    def _on_connectivity(self, online: bool) -> None:
        if online and self._loop is not None:
            self._loop.call_soon_threadsafe(self._spawn_reconnect)

    def _spawn_reconnect(self) -> None:
        task = asyncio.ensure_future(self.on_reconnect())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.connectivity.is_online and self.queue.has_pending():
                try:
                    await self.on_reconnect()
                except Exception:
                    logger.exception("Periodic sync check failed")

    def start(self) -> None:
        """Begin listening for reconnects and polling. Needs a running loop."""
        if self._poller is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._remove_listener = self.connectivity.add_listener(self._on_connectivity)
        self._poller = self._loop.create_task(self._poll())
        if self.connectivity.is_online and self.queue.has_pending():
            self._spawn_reconnect()

    async def stop(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        if self._poller is not None:
            self._poller.cancel()
            try:
                await self._poller
            except asyncio.CancelledError:
                pass
            self._poller = None
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._loop = None
