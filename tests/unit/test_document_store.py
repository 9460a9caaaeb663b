"""
Unit tests for the document stores (in-memory and sqlite).
"""

import asyncio
import sqlite3
import threading

import pytest

from tasador.exceptions import NotFoundError, RemoteWriteError, TransactionError, DatabaseError
from tasador.remote.base import merge_documents, split_path
from tasador.remote.memory import MemoryDocumentStore
from tasador.remote.sqlite import SqliteDocumentStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, temp_db):
    if request.param == "memory":
        return MemoryDocumentStore()
    return SqliteDocumentStore(temp_db)


class TestHelpers:
    """Tests for path and merge helpers."""

    def test_split_path(self):
        assert split_path("workspace/a/comparables/x1") == ("workspace/a/comparables", "x1")

    def test_split_path_rejects_collection(self):
        with pytest.raises(ValueError):
            split_path("workspace")

    def test_merge_documents_is_deep(self):
        merged = merge_documents({"a": 1, "loc": {"lat": 1, "lng": 2}}, {"loc": {"lat": 5}, "b": 2})
        assert merged == {"a": 1, "b": 2, "loc": {"lat": 5, "lng": 2}}


class TestReadWrite:
    """Tests for single-document operations."""

    def test_set_and_get(self, store):
        async def scenario():
            await store.set("ws/a/items/one", {"name": "uno", "n": 1})
            snapshot = await store.get("ws/a/items/one")
            return snapshot

        snapshot = asyncio.run(scenario())
        assert snapshot.id == "one"
        assert snapshot.collection == "ws/a/items"
        assert snapshot.data == {"name": "uno", "n": 1}

    def test_get_missing(self, store):
        assert asyncio.run(store.get("ws/a/items/none")) is None

    def test_set_merge_keeps_other_fields(self, store):
        async def scenario():
            await store.set("ws/a/items/one", {"name": "uno", "n": 1})
            await store.set("ws/a/items/one", {"n": 2}, merge=True)
            return await store.get("ws/a/items/one")

        assert asyncio.run(scenario()).data == {"name": "uno", "n": 2}

    def test_set_without_merge_replaces(self, store):
        async def scenario():
            await store.set("ws/a/items/one", {"name": "uno", "n": 1})
            await store.set("ws/a/items/one", {"n": 2})
            return await store.get("ws/a/items/one")

        assert asyncio.run(scenario()).data == {"n": 2}

    def test_update_missing_raises(self, store):
        with pytest.raises(NotFoundError):
            asyncio.run(store.update("ws/a/items/ghost", {"n": 1}))

    def test_delete(self, store):
        async def scenario():
            await store.set("ws/a/items/one", {"n": 1})
            await store.delete("ws/a/items/one")
            await store.delete("ws/a/items/never")
            return await store.get("ws/a/items/one")

        assert asyncio.run(scenario()) is None

    def test_new_id_shape(self, store):
        ids = {store.new_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(len(i) == 20 and i.isalnum() for i in ids)

    def test_store_failure_becomes_remote_write_error(self, monkeypatch):
        store = MemoryDocumentStore()

        def failing_apply(ops):
            raise DatabaseError("disk full")

        monkeypatch.setattr(store, "_apply", failing_apply)
        with pytest.raises(RemoteWriteError):
            asyncio.run(store.set("ws/a/items/one", {"n": 1}))


class TestQueries:
    """Tests for list and count."""

    def test_list_ordered_and_filtered(self, store):
        async def scenario():
            await store.set("ws/a/items/x1", {"days": 30, "kind": "a"})
            await store.set("ws/a/items/x2", {"days": 5, "kind": "b"})
            await store.set("ws/a/items/x3", {"days": 10, "kind": "a"})
            await store.set("ws/a/items/x4", {"kind": "a"})
            await store.set("ws/a/other/y1", {"days": 1})
            ascending = await store.list("ws/a/items", order_by="days")
            descending = await store.list("ws/a/items", order_by="days", descending=True)
            filtered = await store.list("ws/a/items", where={"kind": "a"})
            count = await store.count("ws/a/items")
            return ascending, descending, filtered, count

        ascending, descending, filtered, count = asyncio.run(scenario())
        assert [s.id for s in ascending] == ["x2", "x3", "x1", "x4"]
        assert [s.id for s in descending] == ["x1", "x3", "x2", "x4"]
        assert sorted(s.id for s in filtered) == ["x1", "x3", "x4"]
        assert count == 4


class TestBatch:
    """Tests for atomic write batches."""

    def test_commit_applies_everything(self, store):
        async def scenario():
            await store.set("ws/a/items/old1", {"n": 1})
            await store.set("ws/a/items/old2", {"n": 2})
            batch = store.batch()
            batch.set("ws/a/data/target", {"address": ""})
            batch.delete_collection("ws/a/items")
            batch.set("ws/a/items/new1", {"n": 3})
            await batch.commit()
            return await store.list("ws/a/items"), await store.get("ws/a/data/target")

        items, target = asyncio.run(scenario())
        assert [s.id for s in items] == ["new1"]
        assert target.data == {"address": ""}

    def test_failed_batch_applies_nothing(self, store):
        async def scenario():
            await store.set("ws/a/items/old1", {"n": 1})
            batch = store.batch()
            batch.delete_collection("ws/a/items")
            batch.set("ws/a/items/new1", {"n": 3})
            batch.update("ws/a/items/ghost", {"n": 4})
            with pytest.raises(TransactionError):
                await batch.commit()
            return await store.list("ws/a/items")

        items = asyncio.run(scenario())
        assert [s.id for s in items] == ["old1"]

    def test_batch_commits_once(self, store):
        async def scenario():
            batch = store.batch().set("ws/a/items/one", {"n": 1})
            await batch.commit()
            with pytest.raises(TransactionError):
                await batch.commit()

        asyncio.run(scenario())


class TestSubscriptions:
    """Tests for real-time listeners."""

    def test_document_listener_gets_initial_and_updates(self, store):
        seen = []

        async def scenario():
            store.subscribe_document("ws/a/data/target", seen.append)
            await store.flush()
            await store.set("ws/a/data/target", {"address": "Calle 1"})
            await store.flush()

        asyncio.run(scenario())
        assert seen[0] is None
        assert seen[-1].data == {"address": "Calle 1"}

    def test_collection_listener_ordered(self, store):
        seen = []

        async def scenario():
            store.subscribe_collection("ws/a/items", seen.append, order_by="days")
            await store.flush()
            await store.set("ws/a/items/x1", {"days": 9})
            await store.set("ws/a/items/x2", {"days": 1})
            await store.flush()

        asyncio.run(scenario())
        assert seen[0] == []
        assert [s.id for s in seen[-1]] == ["x2", "x1"]

    def test_unsubscribe_stops_delivery(self, store):
        seen = []

        async def scenario():
            subscription = store.subscribe_collection("ws/a/items", seen.append)
            await store.flush()
            subscription.unsubscribe()
            await store.set("ws/a/items/x1", {"days": 9})
            await store.flush()

        asyncio.run(scenario())
        assert seen == [[]]
        assert store.listener_count == 0

    def test_listener_errors_do_not_reach_writer(self, store):
        def broken(snapshot):
            raise RuntimeError("listener bug")

        async def scenario():
            store.subscribe_document("ws/a/data/target", broken)
            await store.set("ws/a/data/target", {"address": "x"})
            await store.flush()
            return await store.get("ws/a/data/target")

        assert asyncio.run(scenario()).data == {"address": "x"}

    def test_failed_batch_notifies_nobody(self, store):
        seen = []

        async def scenario():
            store.subscribe_collection("ws/a/items", seen.append)
            await store.flush()
            batch = store.batch().set("ws/a/items/x", {}).update("ws/a/items/ghost", {"n": 1})
            with pytest.raises(TransactionError):
                await batch.commit()
            await store.flush()

        asyncio.run(scenario())
        assert seen == [[]]

    def test_close_releases_listeners(self, store):
        store.subscribe_document("ws/a/data/target", lambda s: None)
        store.subscribe_collection("ws/a/items", lambda s: None)
        assert store.listener_count == 2
        store.close()
        assert store.listener_count == 0


def test_sqlite_store_persists_across_instances(temp_db):
    asyncio.run(SqliteDocumentStore(temp_db).set("ws/a/items/one", {"name": "Jardín"}))
    snapshot = asyncio.run(SqliteDocumentStore(temp_db).get("ws/a/items/one"))
    assert snapshot.data == {"name": "Jardín"}


class TestSqliteSharedFile:
    """Several sessions writing to one sqlite file."""

    def test_write_waits_for_another_writer(self, temp_db):
        store = SqliteDocumentStore(temp_db)
        other = sqlite3.connect(temp_db, check_same_thread=False, isolation_level=None)
        other.execute("BEGIN IMMEDIATE")
        release = threading.Timer(0.3, other.execute, args=("COMMIT",))
        events = []

        async def tick():
            await asyncio.sleep(0.05)
            events.append("tick")

        async def write():
            await store.set("ws/a/items/one", {"n": 1})
            events.append("written")

        async def scenario():
            release.start()
            await asyncio.gather(write(), tick())
            return await store.get("ws/a/items/one")

        try:
            snapshot = asyncio.run(scenario())
        finally:
            release.join()
            other.close()

        assert snapshot.data == {"n": 1}
        # The loop kept running while the write waited for the lock
        assert events == ["tick", "written"]

    def test_concurrent_writes_land_in_call_order(self, temp_db):
        store = SqliteDocumentStore(temp_db)

        async def scenario():
            await asyncio.gather(*(store.set("ws/a/items/one", {"n": n}) for n in range(5)))
            return await store.get("ws/a/items/one")

        assert asyncio.run(scenario()).data == {"n": 4}
