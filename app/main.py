import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import asyncio
import logging
import threading
from datetime import date

import streamlit as st
import pandas as pd
import plotly.express as px

from finvault import events
from finvault.classifier import KIND_COLLECTIONS, classify
from finvault.config import configure_logging, load_settings
from finvault.domain import ASSETS, COLLECTIONS, DAILY_EXPENSES, EXPENSES, LIABILITIES, to_dict
from finvault.errors import FinVaultError, StorageInitError
from finvault.events import EventBus
from finvault.gateway import FinanceGateway
from finvault.insights import InsightService, analyze_query
from finvault.money import format_currency, parse_amount
from finvault.storage import KeyValueStorage, LocalDatabase
from finvault.store import LocalRecordStore
from finvault.sync import ConnectivityMonitor, RequestsTransport, SyncManager, SyncQueue

st.set_page_config(page_title="FinVault", layout="wide")

settings = load_settings()
configure_logging(settings.log_level)
logger = logging.getLogger("finvault.app")


def start_loop():
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, name="finvault-loop", daemon=True).start()
    return loop


if "loop" not in st.session_state:
    st.session_state.loop = start_loop()
if "notices" not in st.session_state:
    st.session_state.notices = []


def run(coro):
    return asyncio.run_coroutine_threadsafe(coro, st.session_state.loop).result()


async def start_sync(sync: SyncManager):
    sync.start()


def build_core():
    bus = EventBus()
    storage = KeyValueStorage(settings.storage_path)
    store = LocalRecordStore(LocalDatabase(settings.db_url), bus=bus, storage=storage)
    queue = SyncQueue(storage)
    connectivity = ConnectivityMonitor(online=True, bus=bus)
    transport = RequestsTransport(settings.api_base_url, timeout=settings.sync_timeout)
    sync = SyncManager(
        queue, transport, connectivity, bus=bus,
        notify=st.session_state.notices.append,
        interval=settings.sync_interval, timeout=settings.sync_timeout,
    )
    gateway = FinanceGateway(store, queue, connectivity, transport, timeout=settings.sync_timeout)
    bus.subscribe(events.STORAGE_DEGRADED, lambda event, payload: st.session_state.notices.append(
        f"Local database unavailable, changes are kept in fallback storage: {payload['error']}"))
    try:
        run(store.initialize())
    except StorageInitError:
        logger.warning("Dashboard running with degraded storage")
    run(start_sync(sync))
    return {"store": store, "queue": queue, "connectivity": connectivity, "sync": sync, "gateway": gateway}


if "core" not in st.session_state:
    st.session_state.core = build_core()

core = st.session_state.core
store: LocalRecordStore = core["store"]
fmt = settings.currency

st.sidebar.markdown("### 📡 Connection")
online = st.sidebar.toggle("Online", value=core["connectivity"].is_online)
if online != core["connectivity"].is_online:
    core["connectivity"].set_online(online)
st.sidebar.caption(f"{len(core['queue'])} change(s) waiting to sync")
if st.sidebar.button("Sync now", disabled=not online):
    result = run(core["sync"].on_reconnect())
    if result is not None and not result.success and not result.failed:
        st.session_state.notices.append("Nothing to sync")
if store.degraded:
    st.sidebar.warning("Memory-only mode")
elif online and store.is_stale(settings.cache_ttl):
    st.sidebar.info("Local data is out of date, refresh it from the Records page")

for notice in st.session_state.notices:
    st.toast(notice)
st.session_state.notices.clear()

menu = st.sidebar.radio("Menu", ["🏠 Overview", "🎙️ Quick add", "📂 Records", "💡 Insights"])


def records_df(collection: str) -> pd.DataFrame:
    return pd.DataFrame([to_dict(r) for r in store.get_all(collection)])


if menu == "🏠 Overview":
    summary = store.get_financial_summary()
    k1, k2, k3, k4 = st.columns(4)
    with k1:
        st.metric("Net Worth", format_currency(summary.net_worth, fmt))
    with k2:
        st.metric("Assets", format_currency(summary.total_assets, fmt))
    with k3:
        st.metric("Liabilities", format_currency(summary.total_liabilities, fmt))
    with k4:
        st.metric("Cash Flow", format_currency(summary.cash_flow, fmt))

    assets = records_df(ASSETS)
    if not assets.empty:
        assets["amount"] = assets["value"].map(parse_amount)
        fig_assets = px.pie(assets, names="type", values="amount", title="Asset Distribution",
                            template="plotly_dark")
        st.plotly_chart(fig_assets, use_container_width=True)

    budgets = records_df(EXPENSES)
    if not budgets.empty:
        budgets["Budgeted"] = budgets["budgeted"].map(parse_amount)
        budgets["Spent"] = budgets["spent"].map(parse_amount)
        fig_budget = px.bar(budgets, x="title", y=["Budgeted", "Spent"], barmode="group",
                            title="Budget vs Spent", template="plotly_dark")
        st.plotly_chart(fig_budget, use_container_width=True)

    daily = records_df(DAILY_EXPENSES)
    if not daily.empty:
        daily["amount"] = daily["amount"].map(parse_amount)
        daily["date"] = pd.to_datetime(daily["date"], errors="coerce")
        by_day = daily.groupby("date", as_index=False)["amount"].sum()
        fig_daily = px.line(by_day, x="date", y="amount", markers=True, title="Daily Spending",
                            template="plotly_dark")
        st.plotly_chart(fig_daily, use_container_width=True)

elif menu == "🎙️ Quick add":
    st.subheader("Describe a record in your own words")
    kind = st.selectbox("Record kind", ["asset", "liability", "budget", "daily-expense"])
    text = st.text_input("Utterance", placeholder="I spent 500 rupees on groceries yesterday")
    if st.button("Classify") and text:
        payload = classify(text, kind, today=date.today(), fmt=fmt)
        if payload is None:
            st.warning("Couldn't find the amounts in that sentence, try rephrasing it.")
        else:
            st.session_state.pending_record = (kind, payload)

    pending = st.session_state.get("pending_record")
    if pending:
        kind, payload = pending
        st.json(payload)
        if st.button("Save"):
            try:
                result = run(core["gateway"].save(KIND_COLLECTIONS[kind], payload))
            except FinVaultError as e:
                st.error(f"Could not save: {e}")
            else:
                st.success("Saved, will sync when online" if result.queued else "Saved")
                st.session_state.pending_record = None

elif menu == "📂 Records":
    collection = st.selectbox("Collection", COLLECTIONS)
    df = records_df(collection)
    if df.empty:
        st.info("No records yet")
    else:
        st.dataframe(df, use_container_width=True, hide_index=True)
        record_id = st.selectbox("Delete record", [""] + list(df["id"]))
        if record_id and st.button("Delete"):
            run(store.delete(collection, record_id))
            st.rerun()
    if st.button("Refresh from server"):
        run(core["gateway"].refresh(collection))
        st.rerun()

elif menu == "💡 Insights":
    report = InsightService().report(store.snapshot(), today=date.today())
    st.metric("Financial health score", report["score"])
    for insight in report["insights"]:
        icon = {"alert": "⚠️", "anomaly": "📈"}.get(insight.kind, "💡")
        with st.expander(f"{icon} {insight.title}"):
            st.write(insight.description)
    failed = [s for s in report["steps"] if "error" in s]
    if failed:
        st.caption(f"{len(failed)} analyzer(s) failed, see the log")

    question = st.text_input("Ask a question", placeholder="How can I save on entertainment?")
    if question:
        st.json(analyze_query(question))

    liabilities = records_df(LIABILITIES)
    if not liabilities.empty:
        st.markdown("#### Upcoming payments")
        st.dataframe(liabilities[["title", "payment", "dueDate", "status"]], hide_index=True)
