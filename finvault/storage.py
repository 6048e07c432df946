"""
Local persistence for the offline core.

LocalDatabase is the object store: one SQLAlchemy table holding every record as
JSON, keyed by (collection, id). KeyValueStorage is a small durable JSON file
used the way a browser uses localStorage: the sync queue, the cache timestamp
and fallback snapshots live there, and every write hits the disk immediately.
"""
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from finvault.domain import check_collection
from finvault.errors import PersistenceError, StorageInitError

logger = logging.getLogger(__name__)

Base = declarative_base()

SYNC_QUEUE_KEY = "finvault_sync_queue"
CACHE_TIMESTAMP_KEY = "finvault_cache_timestamp"


def snapshot_key(collection: str) -> str:
    return f"finvault_offline_{collection}"


class RecordRow(Base):
    __tablename__ = "records"

    collection = Column(String, primary_key=True)
    id = Column(String, primary_key=True)
    payload = Column(JSON, nullable=False)
    stored_at = Column(Float, default=time.time)


def _engine_for(url: str):
    if url in ("sqlite://", "sqlite:///:memory:"):
        # one shared connection, otherwise every worker thread gets its own empty db
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, connect_args={"check_same_thread": False} if "sqlite" in url else {})


class LocalDatabase:
    """Record collections persisted through SQLAlchemy.

    All methods are blocking; LocalRecordStore calls them from a worker thread.
    """

    def __init__(self, url: str = "sqlite:///finvault_local.db"):
        self.url = url
        self._engine = None
        self._session_factory = None

    @property
    def is_open(self) -> bool:
        return self._session_factory is not None

    def open(self) -> None:
        try:
            engine = _engine_for(self.url)
            Base.metadata.create_all(bind=engine)
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Could not open local database {self.url}: {e}")
            raise StorageInitError(f"Local database unavailable: {e}") from e
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        logger.info(f"Local database ready at {self.url}")

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None

    def _session(self):
        if self._session_factory is None:
            raise PersistenceError("Database not initialized")
        return self._session_factory()

    def get_all(self, collection: str) -> List[Dict[str, Any]]:
        check_collection(collection)
        try:
            with self._session() as session:
                rows = session.execute(
                    select(RecordRow)
                    .where(RecordRow.collection == collection)
                    .order_by(RecordRow.stored_at, RecordRow.id)
                ).scalars().all()
                logger.debug(f"Retrieved {len(rows)} records from {collection}")
                return [dict(row.payload) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Failed to read {collection}: {e}")
            raise PersistenceError(f"Failed to read {collection}: {e}") from e

    def add(self, collection: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        check_collection(collection)
        try:
            with self._session() as session:
                session.add(RecordRow(collection=collection, id=payload["id"], payload=payload))
                session.commit()
        except IntegrityError as e:
            logger.error(f"{collection} insert failed - duplicate id: {payload['id']}")
            raise PersistenceError(f"{collection} record {payload['id']} already exists") from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to add to {collection}: {e}")
            raise PersistenceError(f"Failed to add to {collection}: {e}") from e
        return payload

    def put(self, collection: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        check_collection(collection)
        try:
            with self._session() as session:
                row = session.get(RecordRow, (collection, payload["id"]))
                if row is None:
                    session.add(RecordRow(collection=collection, id=payload["id"], payload=payload))
                else:
                    row.payload = payload
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to write {collection} {payload.get('id')}: {e}")
            raise PersistenceError(f"Failed to write {collection}: {e}") from e
        return payload

    def delete(self, collection: str, record_id: str) -> bool:
        check_collection(collection)
        try:
            with self._session() as session:
                row = session.get(RecordRow, (collection, record_id))
                if row is None:
                    return False
                session.delete(row)
                session.commit()
                return True
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete {collection} {record_id}: {e}")
            raise PersistenceError(f"Failed to delete from {collection}: {e}") from e

    def clear(self, collection: str) -> None:
        check_collection(collection)
        try:
            with self._session() as session:
                session.query(RecordRow).filter(RecordRow.collection == collection).delete()
                session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to clear {collection}: {e}") from e


class KeyValueStorage:
    """Durable JSON key/value file. path=None keeps everything in memory."""

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path) if path else None
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        value = self._data.get(key, default)
        # hand out copies so callers cannot edit stored state in place
        return json.loads(json.dumps(value)) if value is not None else value

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.loads(json.dumps(value))
        self._flush()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def keys(self) -> List[str]:
        return list(self._data)

    def _flush(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".finvault-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except OSError:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise
