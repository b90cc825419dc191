"""Tests for the bounded history log.

Key behaviors tested:
- Entries are newest first and capped at 20; the oldest is evicted
- Recorded entries are snapshots, isolated from the live result set
- Ids are millisecond timestamps that never repeat or go backwards
- Unreadable or malformed persisted data yields an empty log
- Persistence failures are reported as warnings, never raised
- delete() of an unknown id is a no-op; clear() removes the blob
"""

import json

import pytest

from satutoko.common.exceptions import PersistenceFailure
from satutoko.data_types import Platform, QueryResult
from satutoko.history.storage import MemoryStorage
from satutoko.history.store import HISTORY_KEY, HistoryStore
from tests.utils import FIXED_NOW, FailingStorage, make_product, make_shop


class TestRecord:
    async def test_newest_first(self, history: HistoryStore) -> None:
        first = await history.record(["a"], Platform.TOKOPEDIA, [])
        second = await history.record(["b"], Platform.SHOPEE, [])

        assert [entry.id for entry in history.list()] == [
            second.id,
            first.id,
        ]

    async def test_capacity_evicts_oldest(self, history: HistoryStore) -> None:
        """The 21st record shall evict the very first one."""
        recorded = [
            await history.record([f"q{i}"], Platform.TOKOPEDIA, [])
            for i in range(21)
        ]

        entries = history.list()
        assert len(entries) == 20
        assert entries[0].id == recorded[-1].id
        assert entries[-1].id == recorded[1].id
        assert history.get(recorded[0].id) is None

    async def test_result_count(self, history: HistoryStore) -> None:
        shops = [
            make_shop("a", {"sepatu": 2}),
            make_shop("b", {"sepatu": 1, "tas": 0}),
        ]

        entry = await history.record(
            ["sepatu", "tas"], Platform.TOKOPEDIA, shops
        )

        assert entry.result_count == 3
        assert entry.queries == ("sepatu", "tas")
        assert entry.platform is Platform.TOKOPEDIA

    async def test_snapshot_is_isolated_from_live_results(
        self, history: HistoryStore
    ) -> None:
        shop = make_shop("a", {"sepatu": 1})
        live = [shop]

        entry = await history.record(["sepatu"], Platform.TOKOPEDIA, live)
        shop.results[0].products.append(make_product("a", "extra"))
        shop.results.append(QueryResult(query="tas"))
        live.append(make_shop("b", {"sepatu": 1}))

        stored = history.get(entry.id)
        assert stored is not None
        assert len(stored.results) == 1
        assert len(stored.results[0].results[0].products) == 1
        assert [qr.query for qr in stored.results[0].results] == ["sepatu"]

    async def test_returned_entries_cannot_change_the_log(
        self, history: HistoryStore
    ) -> None:
        entry = await history.record(
            ["sepatu"], Platform.TOKOPEDIA, [make_shop("a", {"sepatu": 1})]
        )

        entry.results[0].results[0].products.clear()
        history.list()[0].results[0].results.clear()
        fetched = history.get(entry.id)
        assert fetched is not None
        fetched.results[0].shop_name = "changed"

        stored = history.get(entry.id)
        assert stored is not None
        assert stored.results[0].shop_name == "a"
        assert len(stored.results[0].results[0].products) == 1

    async def test_timestamp_is_iso_utc(self, history: HistoryStore) -> None:
        entry = await history.record(["a"], Platform.TOKOPEDIA, [])

        assert entry.timestamp == "2023-11-14T22:13:20+00:00"

    async def test_persists_every_record(
        self, history: HistoryStore, storage: MemoryStorage
    ) -> None:
        await history.record(["a"], Platform.TOKOPEDIA, [])
        await history.record(["b"], Platform.TOKOPEDIA, [])

        stored = json.loads(storage.data[HISTORY_KEY])
        assert [item["queries"] for item in stored] == [["b"], ["a"]]


class TestIds:
    async def test_ids_are_millisecond_timestamps(self) -> None:
        times = iter([1.5, 2.25])
        store = HistoryStore(MemoryStorage(), clock=lambda: next(times))

        first = await store.record(["a"], Platform.TOKOPEDIA, [])
        second = await store.record(["b"], Platform.TOKOPEDIA, [])

        assert (first.id, second.id) == (1500, 2250)

    async def test_ids_are_unique_within_one_millisecond(
        self, history: HistoryStore
    ) -> None:
        first = await history.record(["a"], Platform.TOKOPEDIA, [])
        second = await history.record(["b"], Platform.TOKOPEDIA, [])

        assert first.id == int(FIXED_NOW * 1000)
        assert second.id == first.id + 1

    async def test_ids_never_go_backwards(self) -> None:
        times = iter([10.0, 5.0])
        store = HistoryStore(MemoryStorage(), clock=lambda: next(times))

        first = await store.record(["a"], Platform.TOKOPEDIA, [])
        second = await store.record(["b"], Platform.TOKOPEDIA, [])

        assert second.id > first.id

    async def test_ids_continue_after_reload(
        self, history: HistoryStore, storage: MemoryStorage
    ) -> None:
        entry = await history.record(["a"], Platform.TOKOPEDIA, [])

        reloaded = HistoryStore(storage, clock=lambda: 0.0)
        await reloaded.initialize()
        later = await reloaded.record(["b"], Platform.TOKOPEDIA, [])

        assert later.id == entry.id + 1


class TestInitialize:
    async def test_loads_persisted_log(
        self, history: HistoryStore, storage: MemoryStorage
    ) -> None:
        shops = [make_shop("a", {"sepatu": 2})]
        entry = await history.record(["sepatu"], Platform.SHOPEE, shops)

        reloaded = HistoryStore(storage)
        entries = await reloaded.initialize()

        assert entries == [entry]

    async def test_missing_blob_is_empty(self) -> None:
        store = HistoryStore(MemoryStorage())

        assert await store.initialize() == []
        assert store.last_failure is None

    @pytest.mark.parametrize(
        "blob", ["not json", "{", '{"id": 1}', "42", "null"]
    )
    async def test_unusable_blob_is_empty(self, blob: str) -> None:
        store = HistoryStore(MemoryStorage({HISTORY_KEY: blob}))

        assert await store.initialize() == []

    async def test_malformed_entries_are_skipped(
        self, history: HistoryStore, storage: MemoryStorage
    ) -> None:
        entry = await history.record(["a"], Platform.TOKOPEDIA, [])
        items = json.loads(storage.data[HISTORY_KEY])
        items.append({"id": "not a number"})
        items.append("garbage")
        storage.data[HISTORY_KEY] = json.dumps(items)

        reloaded = HistoryStore(storage)

        assert await reloaded.initialize() == [entry]

    async def test_oversized_log_is_truncated_to_newest(
        self, storage: MemoryStorage
    ) -> None:
        writer = HistoryStore(storage, capacity=5)
        for i in range(5):
            await writer.record([f"q{i}"], Platform.TOKOPEDIA, [])

        reader = HistoryStore(storage, capacity=3)
        entries = await reader.initialize()

        assert [entry.queries for entry in entries] == [
            ("q4",),
            ("q3",),
            ("q2",),
        ]

    async def test_read_failure_is_empty_and_remembered(self) -> None:
        store = HistoryStore(FailingStorage(fail_get=True))

        assert await store.initialize() == []
        assert isinstance(store.last_failure, PersistenceFailure)
        assert store.last_failure.operation == "read"


class TestPersistenceFailures:
    async def test_write_failure_warns_and_keeps_entry(self) -> None:
        warnings: list[PersistenceFailure] = []
        store = HistoryStore(
            FailingStorage(fail_set=True), on_warning=warnings.append
        )
        await store.initialize()

        entry = await store.record(["a"], Platform.TOKOPEDIA, [])

        assert store.list() == [entry]
        assert [w.operation for w in warnings] == ["write"]
        assert warnings[0].key == HISTORY_KEY
        assert store.last_failure is warnings[0]

    async def test_remove_failure_warns_and_clears_memory(self) -> None:
        warnings: list[PersistenceFailure] = []
        storage = FailingStorage(fail_remove=True)
        store = HistoryStore(storage, on_warning=warnings.append)
        await store.record(["a"], Platform.TOKOPEDIA, [])

        await store.clear()

        assert store.list() == []
        assert [w.operation for w in warnings] == ["remove"]

    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            HistoryStore(MemoryStorage(), capacity=0)


class TestDeleteAndClear:
    async def test_delete_removes_and_persists(
        self, history: HistoryStore, storage: MemoryStorage
    ) -> None:
        keep = await history.record(["a"], Platform.TOKOPEDIA, [])
        drop = await history.record(["b"], Platform.TOKOPEDIA, [])

        assert await history.delete(drop.id) is True

        assert history.list() == [keep]
        stored = json.loads(storage.data[HISTORY_KEY])
        assert [item["id"] for item in stored] == [keep.id]

    async def test_delete_unknown_is_noop(
        self, history: HistoryStore, storage: MemoryStorage
    ) -> None:
        entry = await history.record(["a"], Platform.TOKOPEDIA, [])
        before = storage.data[HISTORY_KEY]

        assert await history.delete(entry.id + 100) is False

        assert history.list() == [entry]
        assert storage.data[HISTORY_KEY] == before

    async def test_clear_removes_blob(
        self, history: HistoryStore, storage: MemoryStorage
    ) -> None:
        await history.record(["a"], Platform.TOKOPEDIA, [])

        await history.clear()

        assert history.list() == []
        assert HISTORY_KEY not in storage.data


class TestLoad:
    async def test_load_returns_fresh_copies(
        self, history: HistoryStore
    ) -> None:
        shops = [make_shop("a", {"sepatu": 1})]
        entry = await history.record(["sepatu"], Platform.SHOPEE, shops)

        queries, platform, results = history.load(entry)
        results[0].results[0].products.clear()
        results.append(make_shop("b"))
        queries.append("tas")

        assert platform is Platform.SHOPEE
        assert entry.queries == ("sepatu",)
        assert len(entry.results) == 1
        assert len(entry.results[0].results[0].products) == 1

    async def test_load_leaves_log_untouched(
        self, history: HistoryStore
    ) -> None:
        entry = await history.record(["a"], Platform.TOKOPEDIA, [])

        history.load(entry)

        assert history.list() == [entry]
