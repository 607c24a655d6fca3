import asyncio

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from voyant.graph.consent import begin_consent
from voyant.graph.state import ConsentKind, Fact, Receipts
from voyant.models import Base
from voyant.session_store import InMemorySlotStore, SqlSlotStore


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def sql_store():
    engine = create_engine("sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    return SqlSlotStore(session_factory=sessionmaker(bind=engine), ttl_sec=60)


class TestInMemorySlotStore:
    def test_missing_thread_reads_as_empty(self, store):
        assert asyncio.run(store.get("nope")) == {}
        assert asyncio.run(store.get_last_intent("nope")) is None

    def test_update_is_idempotent(self, store):
        asyncio.run(store.update("t1", {"city": "Paris", "month": "July"}, []))
        first = asyncio.run(store.load_thread("t1")).slots
        asyncio.run(store.update("t1", {"city": "Paris", "month": "July"}, []))
        assert asyncio.run(store.load_thread("t1")).slots == first

    def test_update_records_expected_missing(self, store):
        asyncio.run(store.update("t1", {}, ["city", "dates"]))
        assert asyncio.run(store.load_thread("t1")).expected_missing == ["city", "dates"]

    def test_ttl_expiry_starts_fresh(self):
        clock = Clock()
        store = InMemorySlotStore(ttl_sec=60, clock=clock)
        asyncio.run(store.update("t1", {"city": "Paris"}, []))
        asyncio.run(store.set_last_intent("t1", "weather"))

        clock.now += 30
        assert asyncio.run(store.get("t1")) == {"city": "Paris"}

        clock.now += 61
        assert asyncio.run(store.get("t1")) == {}
        assert asyncio.run(store.get_last_intent("t1")) is None
        assert store.list_threads() == []

    def test_expired_threads_are_evicted(self):
        clock = Clock()
        store = InMemorySlotStore(ttl_sec=60, clock=clock)
        asyncio.run(store.update("t1", {"city": "Paris"}, []))
        asyncio.run(store.record("t1", "user", "weather in Paris"))
        asyncio.run(store.update("t2", {"city": "Rome"}, []))

        clock.now += 61
        asyncio.run(store.load_thread("t1"))
        assert "t1" not in store._threads
        assert "t1" not in store._messages

        assert store.list_threads() == []
        assert store._threads == {}

    def test_access_extends_ttl(self):
        clock = Clock()
        store = InMemorySlotStore(ttl_sec=60, clock=clock)
        asyncio.run(store.update("t1", {"city": "Paris"}, []))
        clock.now += 50
        asyncio.run(store.set_last_intent("t1", "weather"))
        clock.now += 50
        assert asyncio.run(store.get("t1")) == {"city": "Paris"}

    def test_only_one_consent_at_a_time(self, store):
        thread = asyncio.run(store.load_thread("t1"))
        begin_consent(thread, ConsentKind.WEB_SEARCH, "q1")
        begin_consent(thread, ConsentKind.DEEP_RESEARCH, "q2")
        asyncio.run(store.save_thread("t1", thread))

        consent = asyncio.run(store.get_consent("t1"))
        assert consent.awaiting is True
        assert consent.kind is ConsentKind.DEEP_RESEARCH
        assert consent.pending_query == "q2"

    def test_receipts_round_trip(self, store):
        receipts = Receipts(facts=[Fact("open-meteo.com", "weather", "Sunny")], decisions=["intent=weather"], reply="Sunny")
        asyncio.run(store.set_receipts("t1", receipts))
        assert asyncio.run(store.get_receipts("t1")) == receipts

    def test_history_is_capped(self):
        store = InMemorySlotStore(history_limit=3)
        for i in range(5):
            store.append_message("t1", "user", f"m{i}")
        assert [m["content"] for m in store.get_messages("t1")] == ["m2", "m3", "m4"]


class TestSqlSlotStore:
    def test_slots_persist_across_loads(self, sql_store):
        asyncio.run(sql_store.update("t1", {"city": "Tokyo"}, []))
        asyncio.run(sql_store.set_last_intent("t1", "weather"))
        assert asyncio.run(sql_store.get("t1")) == {"city": "Tokyo"}
        assert asyncio.run(sql_store.get_last_intent("t1")) == "weather"
        assert sql_store.list_threads() == ["t1"]

    def test_messages_are_rows(self, sql_store):
        asyncio.run(sql_store.record("t1", "user", "weather in Tokyo"))
        asyncio.run(sql_store.record("t1", "assistant", "Sunny", {"trace": []}))
        history = asyncio.run(sql_store.history("t1"))
        assert [(m["role"], m["content"]) for m in history] == [("user", "weather in Tokyo"), ("assistant", "Sunny")]

    def test_clear_removes_thread(self, sql_store):
        asyncio.run(sql_store.update("t1", {"city": "Tokyo"}, []))
        sql_store.clear("t1")
        assert asyncio.run(sql_store.get("t1")) == {}
