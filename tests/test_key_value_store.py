"""Tests for watchlist persistence stores."""

import json
from datetime import datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st

from screener.database.models import KeyValueRecord
from screener.services.errors import StorageError
from screener.services.key_value_store import InMemoryKeyValueStore, SqlKeyValueStore


class TestSqlKeyValueStore:
    """Tests for the SQLAlchemy-backed store."""

    def test_load_missing_key(self, session_factory):
        assert SqlKeyValueStore(session_factory).load("stockScreenerWatchlist") is None

    def test_save_then_load(self, session_factory):
        store = SqlKeyValueStore(session_factory)

        store.save("stockScreenerWatchlist", '["AAPL","MSFT"]')

        assert store.load("stockScreenerWatchlist") == '["AAPL","MSFT"]'

    def test_save_overwrites_single_row(self, session_factory):
        store = SqlKeyValueStore(session_factory)

        store.save("stockScreenerWatchlist", '["AAPL"]')
        store.save("stockScreenerWatchlist", "[]")

        session = session_factory()
        try:
            rows = session.query(KeyValueRecord).all()
        finally:
            session.close()
        assert len(rows) == 1
        assert rows[0].value == "[]"
        assert rows[0].updated_at is not None

    def test_overwrite_refreshes_timestamp(self, session_factory):
        store = SqlKeyValueStore(session_factory)
        store.save("stockScreenerWatchlist", "[]")
        session = session_factory()
        try:
            session.get(KeyValueRecord, "stockScreenerWatchlist").updated_at = datetime(2020, 1, 1)
            session.commit()
        finally:
            session.close()

        store.save("stockScreenerWatchlist", '["AAPL"]')

        session = session_factory()
        try:
            record = session.get(KeyValueRecord, "stockScreenerWatchlist")
        finally:
            session.close()
        assert record.updated_at.replace(tzinfo=None) > datetime(2020, 1, 1)

    def test_keys_are_independent(self, session_factory):
        store = SqlKeyValueStore(session_factory)

        store.save("a", "1")
        store.save("b", "2")

        assert store.load("a") == "1"
        assert store.load("b") == "2"

    def test_values_survive_new_store_instance(self, session_factory):
        SqlKeyValueStore(session_factory).save("stockScreenerWatchlist", '["TSLA"]')

        assert SqlKeyValueStore(session_factory).load("stockScreenerWatchlist") == '["TSLA"]'

    def test_controller_round_trip(self, session_factory, make_controller):
        first = make_controller(store=SqlKeyValueStore(session_factory))
        first.add_symbol("MSFT")
        first.add_symbol("AAPL")
        first.remove_symbol("MSFT")

        second = make_controller(store=SqlKeyValueStore(session_factory))

        assert second.on_start() == ["AAPL"]


class TestInMemoryKeyValueStore:
    """Tests for the in-process store."""

    def test_initial_values(self):
        store = InMemoryKeyValueStore({"k": "v"})
        assert store.load("k") == "v"
        assert store.load("missing") is None

    def test_initial_dict_is_copied(self):
        initial = {"k": "v"}
        store = InMemoryKeyValueStore(initial)

        store.save("k", "changed")

        assert initial == {"k": "v"}

    @given(st.lists(st.text(alphabet="ABCDEFGHIJKLMNOPQRSTUVWXYZ", min_size=1, max_size=5), max_size=10))
    def test_last_write_wins(self, symbols):
        """Whatever was saved last is what load returns."""
        store = InMemoryKeyValueStore()
        for i in range(len(symbols) + 1):
            store.save("key", json.dumps(symbols[:i]))

        assert json.loads(store.load("key")) == symbols


class FailingStore(InMemoryKeyValueStore):
    broken = True

    def save(self, key, value):
        if self.broken:
            raise OSError("disk full")
        super().save(key, value)


class TestSaveFailures:
    """A change that cannot be saved is not applied."""

    def test_failed_save_rejects_add(self, make_controller):
        controller = make_controller(store=FailingStore())

        with pytest.raises(StorageError) as exc_info:
            controller.add_symbol("AAPL")

        assert exc_info.value.code == "STORAGE_ERROR"
        assert controller.symbols == []
        assert controller.get_entry("AAPL") is None
        assert controller.timer_active is False
        assert controller.error_message == "Could not save watchlist. Please try again."

    def test_failed_save_keeps_removed_symbol(self, make_controller):
        store = FailingStore({"stockScreenerWatchlist": json.dumps(["AAPL", "MSFT"])})
        controller = make_controller(store=store)
        controller.on_start()

        with pytest.raises(StorageError):
            controller.remove_symbol("AAPL")

        assert controller.symbols == ["AAPL", "MSFT"]
        assert controller.get_entry("AAPL") is not None
        assert controller.timer_active is True
        assert json.loads(store.load("stockScreenerWatchlist")) == ["AAPL", "MSFT"]

    def test_memory_matches_store_after_recovery(self, make_controller):
        store = FailingStore()
        controller = make_controller(store=store)
        with pytest.raises(StorageError):
            controller.add_symbol("AAPL")

        store.broken = False
        controller.add_symbol("MSFT")

        assert controller.symbols == ["MSFT"]
        assert json.loads(store.load("stockScreenerWatchlist")) == ["MSFT"]


def test_failed_load_starts_empty(make_controller):
    class BrokenStore(InMemoryKeyValueStore):
        def load(self, key):
            raise OSError("unreadable")

    controller = make_controller(store=BrokenStore())

    assert controller.on_start() == []
