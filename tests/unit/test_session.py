"""
Unit tests for ValuationSession (store + repository + sync together).
"""

import asyncio

import httpx
import pytest

from tasador.exceptions import ConfigurationError, ImportParseError, NotConnectedError, QuotaExceededError
from tasador.remote.memory import MemoryDocumentStore
from tasador.remote.sqlite import SqliteDocumentStore
from tasador.valuation.prompts import StaticPrompter
from tasador.valuation.session import ValuationSession, create_store


def _session(store=None, **kwargs):
    return ValuationSession("agent-1", store or MemoryDocumentStore(), prompter=StaticPrompter(True), **kwargs)


def _figures(session):
    return [(round(p.h_surface, 6), round(p.h_price, 6)) for p in session.active.priced_comparables]


class TestLifecycle:
    """Subscriptions open and close with the session."""

    def test_context_manager_releases_listeners(self):
        store = MemoryDocumentStore()

        async def scenario():
            async with _session(store) as session:
                assert session.is_open
                assert store.listener_count == 3
            return session

        session = asyncio.run(scenario())
        assert not session.is_open
        assert store.listener_count == 0

    def test_resumes_existing_workspace(self, temp_db, sample_target, sample_comparables):
        async def first_run():
            async with _session(SqliteDocumentStore(temp_db)) as session:
                await session.update_target(sample_target)
                for payload in sample_comparables:
                    await session.add_comparable(payload)

        async def second_run():
            async with _session(SqliteDocumentStore(temp_db)) as session:
                return session.snapshot()

        asyncio.run(first_run())
        snapshot = asyncio.run(second_run())
        assert snapshot["target"]["address"] == sample_target["address"]
        # Ordered by days on market
        assert [c["address"] for c in snapshot["comparables"]] == ["Calle B 200", "Calle A 100", "Calle C 300"]
        assert snapshot["dirty"] is False


class TestSaveAndLoad:
    """End-to-end save / load behavior."""

    def test_save_binds_and_cleans(self, sample_target, sample_comparables):
        async def scenario():
            async with _session() as session:
                await session.update_target(sample_target)
                for payload in sample_comparables:
                    await session.add_comparable(payload)
                first = await session.save("Ana")
                await session.update_comparable(session.active.comparables[0].id, price=150000)
                assert session.active.is_dirty
                second = await session.save()
                await session.sync()
                return session, first, second

        session, first, second = asyncio.run(scenario())
        assert first == second
        assert session.active.current_valuation_id == first
        assert not session.active.is_dirty
        assert [v.id for v in session.saved_valuations] == [first]

    def test_save_then_load_round_trip(self, sample_target, sample_comparables):
        async def scenario():
            async with _session() as session:
                await session.update_target(sample_target)
                for payload in sample_comparables:
                    await session.add_comparable(payload)
                await session.sync()
                target_before = session.active.target
                fields_before = sorted(
                    (c.business_fields() for c in session.active.comparables),
                    key=lambda d: d["address"],
                )
                valuation_id = await session.save("Ana")
                await session.new_valuation(confirmed=True)
                await session.load(valuation_id)
                await session.sync()
                fields_after = sorted(
                    (c.business_fields() for c in session.active.comparables),
                    key=lambda d: d["address"],
                )
                remote = await session.remote.list(session.paths.comparables)
                return session, target_before, fields_before, fields_after, remote

        session, target_before, fields_before, fields_after, remote = asyncio.run(scenario())
        assert session.active.target == target_before
        assert fields_after == fields_before
        assert sorted(s.id for s in remote) == sorted(c.id for c in session.active.comparables)

    def test_loading_twice_is_idempotent(self, sample_target, sample_comparables):
        async def scenario():
            async with _session() as session:
                await session.update_target(sample_target)
                for payload in sample_comparables:
                    await session.add_comparable(payload)
                valuation_id = await session.save()

                await session.load(valuation_id)
                await session.sync()
                first = (_figures(session), session.active.value_range)
                await session.load(valuation_id)
                await session.sync()
                second = (_figures(session), session.active.value_range)
                return first, second

        first, second = asyncio.run(scenario())
        assert first == second
        assert len(first[0]) == 3

    def test_quota_at_thirty(self, sample_target):
        documents = {
            f"workspace/agent-1/saved_valuations/saved{i:05d}": {"name": f"v{i}", "date": i}
            for i in range(30)
        }
        store = MemoryDocumentStore(documents)

        async def scenario():
            async with _session(store) as session:
                assert len(session.saved_valuations) == 30
                await session.update_target(sample_target)
                with pytest.raises(QuotaExceededError):
                    await session.save()
                await session.sync()
                return len(session.saved_valuations)

        assert asyncio.run(scenario()) == 30

    def test_delete_clears_binding(self, sample_target):
        async def scenario():
            async with _session() as session:
                await session.update_target(sample_target)
                valuation_id = await session.save()
                assert await session.delete_saved(valuation_id, confirmed=True)
                await session.sync()
                return session

        session = asyncio.run(scenario())
        assert session.active.current_valuation_id is None
        assert session.saved_valuations == []


class TestOffline:
    """Sessions without a store."""

    def test_edits_work_but_save_needs_store(self, sample_target):
        session = ValuationSession("agent-1")

        async def scenario():
            async with session:
                await session.update_target(sample_target)
                await session.add_comparable(price=100000, covered_surface=50)
                with pytest.raises(NotConnectedError):
                    await session.save()

        asyncio.run(scenario())
        assert session.active.value_range.market > 0
        assert session.saved_valuations == []


class TestImport:
    """Import through the session."""

    def test_import_from_table(self, sample_csv):
        async def scenario():
            async with _session() as session:
                report = await session.import_from_table(sample_csv, source="test.csv")
                await session.sync()
                return session, report

        session, report = asyncio.run(scenario())
        assert report.imported_count == 3
        assert [s.row_number for s in report.skipped] == [4]
        # Remote order is by days on market: 3, 12, 40
        assert [c.address for c in session.active.comparables] == [
            "Pasaje 9", "Calle Falsa 123", "Av. Siempreviva 742",
        ]
        assert session.active.comparables[1].price == 150000.5

    def test_import_from_sheet(self, sample_csv):
        requested = []

        def handler(request):
            requested.append(str(request.url))
            return httpx.Response(200, text=sample_csv)

        async def scenario():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                async with _session() as session:
                    report = await session.import_from_sheet(
                        "https://docs.google.com/spreadsheets/d/abc123/edit#gid=0", client=client
                    )
                    await session.sync()
                    return session, report

        session, report = asyncio.run(scenario())
        assert report.imported_count == 3
        assert len(session.active.comparables) == 3
        assert requested[0].startswith(
            "https://docs.google.com/spreadsheets/d/abc123/gviz/tq?tqx=out:csv&t="
        )

    def test_bad_payload_imports_nothing(self):
        async def scenario():
            async with _session() as session:
                with pytest.raises(ImportParseError):
                    await session.import_from_table("   ")
                return session

        session = asyncio.run(scenario())
        assert session.active.comparables == []


def test_create_store_from_config(test_config):
    assert isinstance(create_store(test_config), SqliteDocumentStore)
    test_config.store.backend = "memory"
    assert isinstance(create_store(test_config), MemoryDocumentStore)
    test_config.store.backend = "firebase"
    with pytest.raises(ConfigurationError):
        create_store(test_config)


def test_from_config_uses_workspace_settings(test_config):
    session = ValuationSession.from_config(test_config)
    assert session.agent_id == "test-agent"
    assert session.saved.max_saved == 30
