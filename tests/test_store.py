import pytest

from finvault.domain import Asset, Liability
from finvault.errors import PersistenceError, StorageInitError
from finvault.events import EventBus
from finvault.storage import KeyValueStorage, LocalDatabase, snapshot_key
from finvault.store import LocalRecordStore


def make_asset(id, value="₹10,000", title="Savings"):
    return Asset(id=id, title=title, value=value, type="Cash", date="2025-01-01")


def make_liability(id, amount):
    return Liability(id=id, title="Loan", amount=amount, type="Personal Loan",
                     interest="10%", payment="₹1,000", dueDate="2025-02-01")


def make_store(storage=None, url="sqlite://"):
    return LocalRecordStore(LocalDatabase(url), bus=EventBus(), storage=storage or KeyValueStorage())


@pytest.mark.asyncio
async def test_add_updates_cache_and_summary():
    store = make_store()
    await store.initialize()

    await store.add("assets", make_asset("a1"))
    summary = store.get_financial_summary()
    assert [a.id for a in store.get_all("assets")] == ["a1"]
    assert summary.total_assets == 10000
    assert summary.net_worth == 10000

    await store.add("liabilities", make_liability("l1", "₹4,000"))
    assert store.get_financial_summary().net_worth == 6000


@pytest.mark.asyncio
async def test_events_fire_after_write():
    store = make_store()
    await store.initialize()
    seen = []
    store.subscribe("assetAdded", lambda e, record: seen.append(
        ("added", record.id, len(store.database.get_all("assets")))))
    store.subscribe("dataUpdated", lambda e, snapshot: seen.append(("data", len(snapshot["assets"]))))

    await store.add("assets", make_asset("a1"))
    assert seen == [("added", "a1", 1), ("data", 1)]


@pytest.mark.asyncio
async def test_duplicate_id_rejected():
    store = make_store()
    await store.initialize()
    await store.add("assets", make_asset("a1"))
    with pytest.raises(PersistenceError):
        await store.add("assets", make_asset("a1", value="₹1"))
    assert len(store.get_all("assets")) == 1


@pytest.mark.asyncio
async def test_add_assigns_missing_id():
    store = make_store()
    await store.initialize()
    record = await store.add("income", {"title": "Salary", "amount": "₹50,000"})
    assert record.id
    assert store.get("income", record.id) == record


@pytest.mark.asyncio
async def test_cache_survives_restart(tmp_path):
    url = f"sqlite:///{tmp_path}/finvault.db"
    store = make_store(url=url)
    await store.initialize()
    await store.add("assets", make_asset("a1"))

    fresh = make_store(url=url)
    await fresh.initialize()
    assert [a.id for a in fresh.get_all("assets")] == ["a1"]


@pytest.mark.asyncio
async def test_update_recomputes_expense_status():
    store = make_store()
    await store.initialize()
    await store.add("expenses", {"id": "e1", "title": "Food", "budgeted": "₹1,000", "spent": "₹100"})
    updated = await store.update("expenses", "e1", {"spent": "₹950"})
    assert updated.percentage == 95
    assert updated.status == "warning"
    assert store.get("expenses", "e1").status == "warning"


@pytest.mark.asyncio
async def test_update_missing_record():
    store = make_store()
    await store.initialize()
    with pytest.raises(KeyError):
        await store.update("assets", "nope", {"title": "x"})


@pytest.mark.asyncio
async def test_delete():
    store = make_store()
    await store.initialize()
    await store.add("assets", make_asset("a1"))
    deleted = []
    store.subscribe("assetDeleted", lambda e, record: deleted.append(record.id))
    assert await store.delete("assets", "a1") is True
    assert await store.delete("assets", "a1") is False
    assert store.get_all("assets") == []
    assert deleted == ["a1"]


@pytest.mark.asyncio
async def test_get_all_returns_copy():
    store = make_store()
    await store.initialize()
    await store.add("assets", make_asset("a1"))
    store.get_all("assets").clear()
    assert len(store.get_all("assets")) == 1


@pytest.mark.asyncio
async def test_degraded_mode_keeps_working(tmp_path):
    storage = KeyValueStorage(tmp_path / "storage.json")
    store = make_store(storage=storage, url=f"sqlite:///{tmp_path}/missing/dir/finvault.db")
    degraded = []
    store.subscribe("storageDegraded", lambda e, p: degraded.append(p))

    with pytest.raises(StorageInitError):
        await store.initialize()
    assert store.degraded
    assert len(degraded) == 1

    await store.add("assets", make_asset("a1"))
    assert store.get_financial_summary().total_assets == 10000
    assert storage.get(snapshot_key("assets"))[0]["id"] == "a1"


@pytest.mark.asyncio
async def test_fallback_snapshot_recovered_into_database(tmp_path):
    storage = KeyValueStorage(tmp_path / "storage.json")
    storage.set(snapshot_key("assets"), [{"id": "a9", "title": "Gold", "value": "₹500",
                                          "type": "Gold", "date": "2025-01-01"}])
    store = make_store(storage=storage)
    await store.initialize()

    assert [a.id for a in store.get_all("assets")] == ["a9"]
    assert store.database.get_all("assets")[0]["id"] == "a9"
    assert storage.get(snapshot_key("assets")) is None


@pytest.mark.asyncio
async def test_replace_all_deduplicates():
    store = make_store()
    await store.initialize()
    await store.add("assets", make_asset("old"))
    records = await store.replace_all("assets", [
        {"id": "a1", "title": "First", "value": "₹1", "type": "Cash", "date": "2025-01-01"},
        {"id": "a1", "title": "Second", "value": "₹2", "type": "Cash", "date": "2025-01-01"},
    ])
    assert [r.title for r in records] == ["First"]
    assert [p["id"] for p in store.database.get_all("assets")] == ["a1"]


@pytest.mark.asyncio
async def test_staleness():
    now = [1000.0]
    store = LocalRecordStore(LocalDatabase("sqlite://"), storage=KeyValueStorage(), clock=lambda: now[0])
    assert store.is_stale(60)
    await store.initialize()
    assert not store.is_stale(60)
    now[0] += 61
    assert store.is_stale(60)


def test_unknown_collection():
    store = make_store()
    with pytest.raises(KeyError):
        store.get_all("goals")


@pytest.mark.asyncio
async def test_failed_write_leaves_cache_untouched():
    store = make_store()
    await store.initialize()
    seen = []
    store.subscribe("assetAdded", lambda e, record: seen.append(record))
    store.database.close()

    with pytest.raises(PersistenceError):
        await store.add("assets", make_asset("a1"))
    assert store.get_all("assets") == []
    assert seen == []


class UnreadableDatabase(LocalDatabase):
    def get_all(self, collection):
        raise PersistenceError(f"Failed to read {collection}: database disk image is malformed")


@pytest.mark.asyncio
async def test_unreadable_database_degrades_to_memory(tmp_path):
    storage = KeyValueStorage(tmp_path / "storage.json")
    storage.set(snapshot_key("assets"), [{"id": "a9", "title": "Gold", "value": "₹500",
                                          "type": "Gold", "date": "2025-01-01"}])
    store = LocalRecordStore(UnreadableDatabase("sqlite://"), storage=storage)
    degraded = []
    store.subscribe("storageDegraded", lambda e, p: degraded.append(p))

    with pytest.raises(StorageInitError):
        await store.initialize()
    assert store.degraded
    assert store.initialized
    assert len(degraded) == 1
    assert [a.id for a in store.get_all("assets")] == ["a9"]

    await store.add("assets", make_asset("a1"))
    assert [a["id"] for a in storage.get(snapshot_key("assets"))] == ["a9", "a1"]
