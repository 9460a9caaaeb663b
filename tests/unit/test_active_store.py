"""
Unit tests for the active valuation store.
"""

import asyncio

import pytest

from tasador.exceptions import (
    DatabaseError,
    NotFoundError,
    RemoteWriteError,
    TransactionError,
    ValidationError,
)
from tasador.remote.memory import MemoryDocumentStore
from tasador.remote.sync import SyncBridge
from tasador.valuation.active import ActiveValuationStore
from tasador.valuation.prompts import StaticPrompter


def _connected(paths, prompter=None, store=None):
    store = store or MemoryDocumentStore()
    return store, ActiveValuationStore(store, paths, prompter or StaticPrompter(True))


def _comparable_docs(store, paths):
    prefix = paths.comparables + "/"
    return {p[len(prefix):]: d for p, d in store.dump().items() if p.startswith(prefix)}


class TestOptimisticUpdates:
    """Local state changes before the store confirms."""

    def test_update_target_is_visible_immediately(self, workspace_paths):
        store, active = _connected(workspace_paths)

        async def scenario():
            await active.update_target(address="Calle 1", covered_surface=80)
            # Visible before the write ran
            assert active.target.address == "Calle 1"
            assert active.is_dirty
            assert active.sync_status == "pending"
            await active.wait_for_persistence()
            assert active.sync_status == "confirmed"
            assert active.pending_writes == 0

        asyncio.run(scenario())
        document = store.dump()[workspace_paths.target]
        assert document == {"address": "Calle 1", "coveredSurface": 80.0}

    def test_update_target_merges_remote_document(self, workspace_paths):
        store, active = _connected(workspace_paths)

        async def scenario():
            await active.update_target(address="Calle 1")
            await active.update_target({"coveredSurface": 70})
            await active.wait_for_persistence()

        asyncio.run(scenario())
        document = store.dump()[workspace_paths.target]
        assert document["address"] == "Calle 1"
        assert document["coveredSurface"] == 70.0

    def test_update_target_unknown_field(self, workspace_paths):
        _, active = _connected(workspace_paths)
        with pytest.raises(ValidationError):
            asyncio.run(active.update_target(colour="red"))
        assert not active.is_dirty

    def test_add_comparable_uses_store_id_and_defaults(self, workspace_paths):
        store, active = _connected(workspace_paths)

        async def scenario():
            comparable = await active.add_comparable(price=120000)
            await active.wait_for_persistence()
            return comparable

        comparable = asyncio.run(scenario())
        assert len(comparable.id) == 20
        docs = _comparable_docs(store, workspace_paths)
        assert list(docs) == [comparable.id]
        assert docs[comparable.id]["price"] == 120000
        assert docs[comparable.id]["coveredSurface"] == 50
        assert "id" not in docs[comparable.id]

    def test_update_comparable_writes_changed_fields(self, workspace_paths):
        store, active = _connected(workspace_paths)

        async def scenario():
            comparable = await active.add_comparable()
            await active.update_comparable(comparable.id, {"price": 99000, "surface_type": "Patio"})
            await active.wait_for_persistence()
            return comparable.id

        comparable_id = asyncio.run(scenario())
        doc = _comparable_docs(store, workspace_paths)[comparable_id]
        assert doc["price"] == 99000
        assert doc["surfaceType"] == "Patio"
        assert active.get_comparable(comparable_id).price == 99000

    def test_update_unknown_comparable(self, workspace_paths):
        _, active = _connected(workspace_paths)
        with pytest.raises(NotFoundError):
            asyncio.run(active.update_comparable("nope00", price=1))

    def test_failed_write_keeps_local_value(self, workspace_paths, monkeypatch):
        store, active = _connected(workspace_paths)

        def failing_apply(ops):
            raise DatabaseError("offline")

        async def scenario():
            monkeypatch.setattr(store, "_apply", failing_apply)
            await active.update_target(address="Calle 1")
            await active.wait_for_persistence()

        asyncio.run(scenario())
        assert active.target.address == "Calle 1"
        assert active.sync_status == "failed"
        assert isinstance(active.last_write_error, RemoteWriteError)

    def test_next_successful_write_clears_failure(self, workspace_paths, monkeypatch):
        store, active = _connected(workspace_paths)
        original_apply = store._apply

        def failing_apply(ops):
            raise DatabaseError("offline")

        async def scenario():
            monkeypatch.setattr(store, "_apply", failing_apply)
            await active.update_target(address="Calle 1")
            await active.wait_for_persistence()
            monkeypatch.setattr(store, "_apply", original_apply)
            await active.update_target(covered_surface=60)
            await active.wait_for_persistence()

        asyncio.run(scenario())
        assert active.sync_status == "confirmed"


class TestDeleteComparable:
    """Delete is the one mutation that rolls back."""

    def test_delete_removes_document(self, workspace_paths):
        store, active = _connected(workspace_paths)

        async def scenario():
            comparable = await active.add_comparable()
            await active.delete_comparable(comparable.id)
            await active.wait_for_persistence()

        asyncio.run(scenario())
        assert active.comparables == []
        assert _comparable_docs(store, workspace_paths) == {}

    def test_failed_delete_restores_comparable(self, workspace_paths, monkeypatch):
        store, active = _connected(workspace_paths)

        async def failing_delete(path):
            raise RemoteWriteError("network down", path=path)

        async def scenario():
            first = await active.add_comparable(address="Uno")
            second = await active.add_comparable(address="Dos")
            third = await active.add_comparable(address="Tres")
            await active.wait_for_persistence()
            before = [c.id for c in active.comparables]

            monkeypatch.setattr(store, "delete", failing_delete)
            with pytest.raises(RemoteWriteError):
                await active.delete_comparable(second.id)
            return before

        before = asyncio.run(scenario())
        assert [c.id for c in active.comparables] == before
        assert len(active.comparables) == 3

    def test_delete_unknown_comparable(self, workspace_paths):
        _, active = _connected(workspace_paths)
        with pytest.raises(NotFoundError):
            asyncio.run(active.delete_comparable("nope00"))


class TestNewValuation:
    """Tests for new_valuation."""

    def test_resets_state_and_remote(self, workspace_paths):
        store, active = _connected(workspace_paths)

        async def scenario():
            await active.update_target(address="Calle 1")
            await active.add_comparable()
            await active.add_comparable()
            assert await active.new_valuation(confirmed=True)
            await active.wait_for_persistence()

        asyncio.run(scenario())
        assert active.is_empty
        assert not active.is_dirty
        assert _comparable_docs(store, workspace_paths) == {}
        target = store.dump()[workspace_paths.target]
        assert target["address"] == ""
        assert target["surfaceType"] == "Balcón"
        assert target["homogenizationFactor"] == 0.10

    def test_asks_when_dirty_and_not_empty(self, workspace_paths):
        prompter = StaticPrompter(False)
        store, active = _connected(workspace_paths, prompter)

        async def scenario():
            await active.add_comparable()
            return await active.new_valuation()

        assert asyncio.run(scenario()) is False
        assert len(prompter.asked) == 1
        assert len(active.comparables) == 1

    def test_no_question_when_empty(self, workspace_paths):
        prompter = StaticPrompter(False)
        _, active = _connected(workspace_paths, prompter)
        assert asyncio.run(active.new_valuation()) is True
        assert prompter.asked == []

    def test_failed_transaction_keeps_everything(self, workspace_paths, monkeypatch):
        store, active = _connected(workspace_paths)

        async def scenario():
            await active.update_target(address="Calle 1")
            kept = [(await active.add_comparable()).id for _ in range(3)]
            await active.wait_for_persistence()

            original = store._apply_op
            calls = []

            def flaky(documents, op):
                calls.append(op.kind)
                if op.kind == "delete_collection":
                    raise DatabaseError("connection reset")
                return original(documents, op)

            monkeypatch.setattr(store, "_apply_op", flaky)
            with pytest.raises(TransactionError):
                await active.new_valuation(confirmed=True)
            assert calls == ["set", "delete_collection"]
            return kept

        kept = asyncio.run(scenario())
        # Local state and remote mirror both untouched
        assert [c.id for c in active.comparables] == kept
        assert active.target.address == "Calle 1"
        assert sorted(_comparable_docs(store, workspace_paths)) == sorted(kept)
        assert store.dump()[workspace_paths.target]["address"] == "Calle 1"


class TestAddComparables:
    """Tests for batch append."""

    def test_batch_append(self, workspace_paths):
        store, active = _connected(workspace_paths)
        payloads = [{"address": "A", "price": 1000}, {"address": "B", "price": 2000}]

        added = asyncio.run(active.add_comparables(payloads))
        assert [c.address for c in active.comparables] == ["A", "B"]
        assert sorted(_comparable_docs(store, workspace_paths)) == sorted(c.id for c in added)

    def test_empty_batch(self, workspace_paths):
        _, active = _connected(workspace_paths)
        assert asyncio.run(active.add_comparables([])) == []
        assert not active.is_dirty


class TestOfflineMode:
    """Without a store, ids are local and nothing is persisted."""

    def test_local_ids(self, workspace_paths):
        active = ActiveValuationStore(None, workspace_paths)

        async def scenario():
            comparable = await active.add_comparable()
            await active.update_comparable(comparable.id, price=5)
            await active.delete_comparable(comparable.id)
            await active.wait_for_persistence()
            return comparable

        comparable = asyncio.run(scenario())
        assert comparable.id.startswith("local-")
        assert not active.is_connected
        assert active.sync_status == "confirmed"


class TestComputedReads:
    """Statistics and value range follow the current state."""

    def test_value_range(self, workspace_paths, sample_comparables):
        active = ActiveValuationStore(None, workspace_paths)

        async def scenario():
            await active.update_target(covered_surface=50, uncovered_surface=0)
            for payload in sample_comparables:
                await active.add_comparable(payload)
            await active.add_comparable(price=0)

        asyncio.run(scenario())
        assert len(active.priced_comparables) == 3
        assert active.target_homogenized_surface == 50
        assert active.statistics.terciles == [2000, 2000, 3000]
        assert active.value_range.low == 100000
        assert active.value_range.high == 150000


def test_remote_snapshot_overrides_local(workspace_paths):
    store, active = _connected(workspace_paths)

    async def scenario():
        bridge = SyncBridge(
            store,
            workspace_paths,
            on_target=active.apply_remote_target,
            on_comparables=active.apply_remote_comparables,
        ).open()
        await store.flush()
        await active.add_comparable(address="Mine", days_on_market=10)
        await active.wait_for_persistence()
        # Another session of the same agent writes directly
        await store.set(workspace_paths.comparable("otherSession1"), {"address": "Theirs", "daysOnMarket": 1})
        await store.flush()
        bridge.close()

    asyncio.run(scenario())
    assert [c.address for c in active.comparables] == ["Theirs", "Mine"]
