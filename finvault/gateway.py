import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List

from finvault.domain import to_dict
from finvault.errors import SyncDeliveryError
from finvault.store import LocalRecordStore
from finvault.sync import ENDPOINTS, ConnectivityMonitor, SyncQueue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveResult:
    record: Any
    queued: bool


class FinanceGateway:
    """Routes writes and reads between the local store and the REST API.

    Every write lands in the local store first. It is then POSTed right away when
    online, and queued for the next drain when offline or when delivery fails.
    """

    def __init__(self, store: LocalRecordStore, queue: SyncQueue,
                 connectivity: ConnectivityMonitor, transport: Any, timeout: float = 10.0):
        self.store = store
        self.queue = queue
        self.connectivity = connectivity
        self.transport = transport
        self.timeout = timeout

    async def save(self, collection: str, record: Any) -> SaveResult:
        saved = await self.store.add(collection, record)
        payload = to_dict(saved)

        if not self.connectivity.is_online:
            self.queue.enqueue(collection, payload)
            logger.info(f"Offline: queued {collection} record {saved.id}")
            return SaveResult(saved, queued=True)

        try:
            await asyncio.wait_for(
                asyncio.to_thread(self.transport.post, ENDPOINTS[collection], payload),
                timeout=self.timeout,
            )
        except (SyncDeliveryError, asyncio.TimeoutError) as e:
            logger.warning(f"Delivery of {collection} {saved.id} failed, queued for later: {e}")
            self.queue.enqueue(collection, payload)
            return SaveResult(saved, queued=True)
        return SaveResult(saved, queued=False)

    async def refresh(self, collection: str) -> List[Any]:
        """Pull a collection from the server, falling back to the local cache."""
        if not self.connectivity.is_online:
            logger.info(f"Offline: using cached {collection}")
            return self.store.get_all(collection)
        try:
            data = await asyncio.wait_for(
                asyncio.to_thread(self.transport.get, ENDPOINTS[collection]),
                timeout=self.timeout,
            )
        except (SyncDeliveryError, asyncio.TimeoutError) as e:
            logger.warning(f"Refresh of {collection} failed, using cached data: {e}")
            return self.store.get_all(collection)
        if not isinstance(data, list):
            logger.warning(f"Unexpected {collection} payload from server, using cached data")
            return self.store.get_all(collection)
        # queued local writes are newer than the server copy; they win on id
        pending = [i.data for i in self.queue.items() if i.type == collection]
        return await self.store.replace_all(collection, pending + [d for d in data if isinstance(d, dict)])
