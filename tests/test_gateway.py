import pytest

from finvault.errors import SyncDeliveryError
from finvault.events import EventBus
from finvault.gateway import FinanceGateway
from finvault.storage import KeyValueStorage, LocalDatabase
from finvault.store import LocalRecordStore
from finvault.sync import ConnectivityMonitor, SyncQueue


class FakeServer:
    def __init__(self, records=None, down=False):
        self.records = records or {}
        self.down = down
        self.posted = []

    def post(self, path, payload):
        if self.down:
            raise SyncDeliveryError(f"POST {path} failed: connection refused")
        self.posted.append((path, payload["id"]))
        return payload

    def get(self, path):
        if self.down:
            raise SyncDeliveryError(f"GET {path} failed: connection refused")
        return self.records.get(path, [])


def make_daily(id, amount="₹500"):
    return {"id": id, "title": "Groceries", "amount": amount, "category": "Groceries",
            "date": "2025-03-01"}


async def make_gateway(server, online=True):
    store = LocalRecordStore(LocalDatabase("sqlite://"), bus=EventBus(), storage=KeyValueStorage())
    await store.initialize()
    queue = SyncQueue(KeyValueStorage())
    return FinanceGateway(store, queue, ConnectivityMonitor(online=online), server)


@pytest.mark.asyncio
async def test_save_online_posts_immediately():
    server = FakeServer()
    gateway = await make_gateway(server)
    result = await gateway.save("dailyExpenses", make_daily("d1"))
    assert result.queued is False
    assert server.posted == [("/api/daily-expenses", "d1")]
    assert gateway.store.get("dailyExpenses", "d1") is not None
    assert not gateway.queue.has_pending()


@pytest.mark.asyncio
async def test_save_offline_queues():
    server = FakeServer()
    gateway = await make_gateway(server, online=False)
    result = await gateway.save("dailyExpenses", make_daily("d1"))
    assert result.queued is True
    assert server.posted == []
    assert [i.id for i in gateway.queue.items()] == ["d1"]
    assert gateway.store.get_financial_summary().total_daily_expenses == 500


@pytest.mark.asyncio
async def test_save_queues_when_server_fails():
    gateway = await make_gateway(FakeServer(down=True))
    result = await gateway.save("assets", {"id": "a1", "title": "Gold", "value": "₹1,000",
                                           "type": "Gold", "date": "2025-01-01"})
    assert result.queued is True
    assert gateway.queue.items()[0].type == "assets"


@pytest.mark.asyncio
async def test_refresh_replaces_cache_but_keeps_queued_writes():
    server = FakeServer(records={"/api/daily-expenses": [make_daily("d1", "₹100"), make_daily("d2")]})
    gateway = await make_gateway(server, online=False)
    await gateway.save("dailyExpenses", make_daily("d1", "₹900"))

    gateway.connectivity.set_online(True)
    records = await gateway.refresh("dailyExpenses")
    assert {r.id: r.amount for r in records} == {"d1": "₹900", "d2": "₹500"}


@pytest.mark.asyncio
async def test_refresh_falls_back_to_cache():
    server = FakeServer(down=True)
    gateway = await make_gateway(server)
    await gateway.store.add("dailyExpenses", make_daily("d1"))
    records = await gateway.refresh("dailyExpenses")
    assert [r.id for r in records] == ["d1"]
