"""
Local Record Store.

Holds the session's canonical cache of every record collection, mirrors each
mutation into the local database and tells observers about it through an
EventBus. A database write always completes before the cache changes and before
any event is published, so an observer that sees ``assetAdded`` can rely on the
record being on disk (unless the store runs degraded, memory-only).
"""
import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from finvault import events
from finvault.domain import (
    ASSETS, COLLECTIONS, DAILY_EXPENSES, EXPENSES, INCOME, LIABILITIES, SINGULAR,
    check_collection, from_dict, new_id, to_dict,
)
from finvault.errors import PersistenceError, StorageInitError
from finvault.events import EventBus, Handler
from finvault.storage import CACHE_TIMESTAMP_KEY, KeyValueStorage, LocalDatabase, snapshot_key
from finvault.transforms import (
    add_record, amount_total, find_record, merge_records, remove_record, replace_record,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FinancialSummary:
    total_assets: float
    total_liabilities: float
    net_worth: float
    total_income: float
    total_expenses: float
    cash_flow: float
    total_daily_expenses: float

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)


class LocalRecordStore:
    def __init__(
        self,
        database: Optional[LocalDatabase] = None,
        bus: Optional[EventBus] = None,
        storage: Optional[KeyValueStorage] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.database = database
        self.bus = bus or EventBus()
        self.storage = storage or KeyValueStorage()
        self.clock = clock
        self.degraded = database is None
        self.initialized = False
        self._cache: Dict[str, Tuple[Any, ...]] = {c: () for c in COLLECTIONS}
        # single writer: every cache mutation runs under this lock
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the local database and rebuild the cache from it.

        Raises StorageInitError when the database cannot be opened or read. The
        store is still usable afterwards, memory-only, seeded from any fallback
        snapshots.
        """
        async with self._lock:
            try:
                if self.database is None:
                    raise StorageInitError("No local database configured")
                await asyncio.to_thread(self.database.open)
                loaded = await self._load_database()
            except StorageInitError as e:
                self._degrade(e)
                raise
            except PersistenceError as e:
                error = StorageInitError(f"Local database unreadable: {e}")
                self._degrade(error)
                raise error from e

            self.degraded = False
            for collection, records in loaded.items():
                self.storage.remove(snapshot_key(collection))
                self._cache[collection] = tuple(records)
            self._mark_loaded()
        self.bus.publish(events.DATA_UPDATED, self.snapshot())

    async def _load_database(self) -> Dict[str, List[Any]]:
        loaded = {}
        for collection in COLLECTIONS:
            stored = [from_dict(collection, p) for p in await asyncio.to_thread(self.database.get_all, collection)]
            merged = merge_records(stored, self._load_snapshot(collection))
            pending = merged[len(stored):]
            for record in pending:
                # written while degraded in an earlier session
                await asyncio.to_thread(self.database.put, collection, to_dict(record))
            if pending:
                logger.info(f"Recovered {len(pending)} {collection} record(s) from fallback storage")
            loaded[collection] = merged
        return loaded

    def _degrade(self, error: StorageInitError) -> None:
        self.degraded = True
        logger.warning(f"Running memory-only: {error}")
        for collection in COLLECTIONS:
            self._cache[collection] = tuple(self._load_snapshot(collection))
        self._mark_loaded()
        self.bus.publish(events.STORAGE_DEGRADED, {"error": str(error)})

    def _mark_loaded(self) -> None:
        self.initialized = True
        self.storage.set(CACHE_TIMESTAMP_KEY, int(self.clock() * 1000))

    def _load_snapshot(self, collection: str) -> List[Any]:
        records = []
        for payload in self.storage.get(snapshot_key(collection), []) or []:
            try:
                records.append(from_dict(collection, payload))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed {collection} snapshot entry: {e}")
        return merge_records(records)

    def _save_snapshot(self, collection: str) -> None:
        if not self.degraded:
            return
        try:
            self.storage.set(snapshot_key(collection), [to_dict(r) for r in self._cache[collection]])
        except OSError as e:
            logger.warning(f"Fallback snapshot for {collection} not written: {e}")

    def get_all(self, collection: str) -> List[Any]:
        return list(self._cache[check_collection(collection)])

    def get(self, collection: str, record_id: str):
        return find_record(self._cache[check_collection(collection)], record_id)

    def snapshot(self) -> Dict[str, List[Any]]:
        return {c: list(records) for c, records in self._cache.items()}

    def subscribe(self, name: str, callback: Handler) -> Callable[[], None]:
        return self.bus.subscribe(name, callback)

    async def add(self, collection: str, record: Any):
        check_collection(collection)
        payload = to_dict(record)
        if not payload.get("id"):
            payload["id"] = new_id()
        try:
            item = from_dict(collection, payload)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Invalid {collection} record: {e}") from e

        async with self._lock:
            if find_record(self._cache[collection], item.id) is not None:
                raise PersistenceError(f"{collection} record {item.id} already exists")
            if not self.degraded:
                await asyncio.to_thread(self.database.add, collection, to_dict(item))
            self._cache[collection] = add_record(self._cache[collection], item)
            self._save_snapshot(collection)

        logger.info(f"Added {collection} record {item.id}")
        self._emit(events.added(SINGULAR[collection]), item)
        return item

    async def update(self, collection: str, record_id: str, changes: Dict[str, Any]):
        check_collection(collection)
        async with self._lock:
            current = find_record(self._cache[collection], record_id)
            if current is None:
                raise KeyError(f"{collection} record {record_id} not found")
            merged = {**to_dict(current), **changes, "id": record_id}
            try:
                item = from_dict(collection, merged)
            except (TypeError, ValueError) as e:
                raise PersistenceError(f"Invalid {collection} update: {e}") from e
            if not self.degraded:
                await asyncio.to_thread(self.database.put, collection, to_dict(item))
            self._cache[collection] = replace_record(self._cache[collection], record_id, item)
            self._save_snapshot(collection)

        logger.info(f"Updated {collection} record {record_id}: {list(changes)}")
        self._emit(events.updated(SINGULAR[collection]), item)
        return item

    async def delete(self, collection: str, record_id: str) -> bool:
        check_collection(collection)
        async with self._lock:
            current = find_record(self._cache[collection], record_id)
            if current is None:
                logger.warning(f"{collection} record {record_id} not found for delete")
                return False
            if not self.degraded:
                await asyncio.to_thread(self.database.delete, collection, record_id)
            self._cache[collection] = remove_record(self._cache[collection], record_id)
            self._save_snapshot(collection)

        logger.info(f"Deleted {collection} record {record_id}")
        self._emit(events.deleted(SINGULAR[collection]), current)
        return True

    async def replace_all(self, collection: str, records: Iterable[Any]) -> List[Any]:
        """Swap a whole collection for fresh (e.g. server) data, de-duplicated by id."""
        check_collection(collection)
        items = merge_records(from_dict(collection, to_dict(r)) for r in records)
        async with self._lock:
            if not self.degraded:
                await asyncio.to_thread(self._rewrite, collection, items)
            self._cache[collection] = tuple(items)
            self._save_snapshot(collection)
            self.storage.set(CACHE_TIMESTAMP_KEY, int(self.clock() * 1000))
        self.bus.publish(events.DATA_UPDATED, self.snapshot())
        return list(items)

    def _rewrite(self, collection: str, items: List[Any]) -> None:
        self.database.clear(collection)
        for item in items:
            self.database.put(collection, to_dict(item))

    def _emit(self, name: str, record: Any) -> None:
        self.bus.publish(name, record)
        self.bus.publish(events.DATA_UPDATED, self.snapshot())

    def is_stale(self, ttl: float) -> bool:
        stamp = self.storage.get(CACHE_TIMESTAMP_KEY)
        if stamp is None:
            return True
        return self.clock() - stamp / 1000 > ttl

    def get_financial_summary(self) -> FinancialSummary:
        total_assets = amount_total(self._cache[ASSETS], "value")
        total_liabilities = amount_total(self._cache[LIABILITIES], "amount")
        total_income = amount_total(self._cache[INCOME], "amount")
        total_expenses = amount_total(self._cache[EXPENSES], "spent")
        return FinancialSummary(
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            net_worth=total_assets - total_liabilities,
            total_income=total_income,
            total_expenses=total_expenses,
            cash_flow=total_income - total_expenses,
            total_daily_expenses=amount_total(self._cache[DAILY_EXPENSES], "amount"),
        )
