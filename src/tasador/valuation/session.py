"""
Valuation Session

One agent's working context: the active valuation, the saved snapshots and
the subscriptions that keep both in step with the remote store. Each session
is an explicit object owned by its caller, so several agents (or tests) can
run side by side.

Usage:
    async with ValuationSession("agent-1", MemoryDocumentStore()) as session:
        await session.update_target(address="Calle 123", covered_surface=70)
        await session.add_comparable(price=120000, covered_surface=60)
        valuation_id = await session.save("Cliente")
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from tasador.config import Config, get_config
from tasador.core.constants import MAX_SAVED_VALUATIONS
from tasador.core.models import Comparable, SavedValuation, TargetProperty
from tasador.exceptions import ConfigurationError, NotConnectedError
from tasador.importer.table_import import DEFAULT_TIMEOUT, ImportReport, fetch_and_parse, parse_table
from tasador.logging_config import get_agent_logger
from tasador.remote.base import DocumentStore
from tasador.remote.memory import MemoryDocumentStore
from tasador.remote.paths import WorkspacePaths
from tasador.remote.sqlite import SqliteDocumentStore
from tasador.remote.sync import SyncBridge
from tasador.valuation.active import ActiveValuationStore
from tasador.valuation.prompts import Prompter
from tasador.valuation.saved import SavedValuationRepository


def create_store(config: Optional[Config] = None) -> DocumentStore:
    """Build the document store selected by configuration.

    Raises:
        ConfigurationError: If the backend name is not known.
    """
    config = config or get_config()
    if config.store.backend == "memory":
        return MemoryDocumentStore()
    if config.store.backend == "sqlite":
        return SqliteDocumentStore(config.store.path)
    raise ConfigurationError(f"Unknown store backend: {config.store.backend}")


class ValuationSession:
    """Active valuation plus saved snapshots for one agent.

    Args:
        agent_id: Workspace owner.
        remote: Document store, or None for an offline session (nothing is
            persisted and saved snapshots are unavailable).
        prompter: Asked before unsaved work is discarded.
        max_saved: Saved snapshot limit.
        import_timeout: Seconds allowed for downloading a sheet.
    """

    def __init__(
        self,
        agent_id: str,
        remote: Optional[DocumentStore] = None,
        prompter: Optional[Prompter] = None,
        max_saved: int = MAX_SAVED_VALUATIONS,
        import_timeout: float = DEFAULT_TIMEOUT,
    ):
        self.paths = WorkspacePaths(agent_id)
        self._logger = get_agent_logger(__name__, agent_id)
        self.remote = remote
        self.import_timeout = import_timeout
        self.active = ActiveValuationStore(remote, self.paths, prompter)
        self.saved: Optional[SavedValuationRepository] = None
        self._bridge: Optional[SyncBridge] = None

        if remote is not None:
            self.saved = SavedValuationRepository(remote, self.paths, max_saved, prompter)
            self._bridge = SyncBridge(
                remote,
                self.paths,
                on_target=self.active.apply_remote_target,
                on_comparables=self.active.apply_remote_comparables,
                on_saved=self.saved.apply_remote_saved,
            )

    @classmethod
    def from_config(
        cls,
        config: Optional[Config] = None,
        prompter: Optional[Prompter] = None,
        agent_id: Optional[str] = None,
    ) -> "ValuationSession":
        config = config or get_config()
        return cls(
            agent_id or config.workspace.agent_id,
            create_store(config),
            prompter=prompter,
            max_saved=config.workspace.max_saved_valuations,
            import_timeout=config.importer.timeout,
        )

    @property
    def agent_id(self) -> str:
        return self.paths.agent_id

    @property
    def is_open(self) -> bool:
        return self._bridge is not None and self._bridge.is_open

    # -- lifecycle ----------------------------------------------------------

    async def open(self) -> "ValuationSession":
        """Start the subscriptions and wait for their first snapshots."""
        if self._bridge is not None and not self._bridge.is_open:
            self._bridge.open()
            await self.remote.flush()
            self._logger.info("Session opened")
        return self

    async def close(self) -> None:
        """Wait for background writes, then release every listener."""
        await self.active.wait_for_persistence()
        if self._bridge is not None and self._bridge.is_open:
            self._bridge.close()
            self._logger.info("Session closed")

    async def __aenter__(self) -> "ValuationSession":
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def sync(self) -> None:
        """Wait until local writes are confirmed and listeners caught up."""
        await self.active.wait_for_persistence()

    # -- active valuation ---------------------------------------------------

    async def update_target(self, changes: Optional[Mapping[str, Any]] = None, **fields) -> TargetProperty:
        return await self.active.update_target(changes, **fields)

    async def add_comparable(self, initial: Optional[Mapping[str, Any]] = None, **fields) -> Comparable:
        return await self.active.add_comparable(initial, **fields)

    async def update_comparable(self, comparable_id: str, changes: Optional[Mapping[str, Any]] = None, **fields) -> Comparable:
        return await self.active.update_comparable(comparable_id, changes, **fields)

    async def delete_comparable(self, comparable_id: str) -> Comparable:
        return await self.active.delete_comparable(comparable_id)

    async def new_valuation(self, confirmed: Optional[bool] = None) -> bool:
        return await self.active.new_valuation(confirmed)

    def set_client_name(self, client_name: str) -> None:
        self.active.set_client_name(client_name)

    # -- saved valuations ---------------------------------------------------

    @property
    def saved_valuations(self) -> List[SavedValuation]:
        return self.saved.saved_valuations if self.saved else []

    async def list_saved(self, property_id: Optional[str] = None) -> List[SavedValuation]:
        """Saved valuations, newest first; only those of one property when given."""
        if property_id and self.saved is not None:
            return self.saved.for_property(property_id)
        return list(self.saved_valuations)

    async def save(self, client_name: Optional[str] = None, property_id: Optional[str] = None) -> str:
        """Save the active valuation, updating the bound snapshot if any.

        Raises:
            NotConnectedError: In an offline session.
            ValidationError: If the target has no address.
            QuotaExceededError: If a new snapshot would exceed the limit.
        """
        repository = self._require_saved()
        if client_name is not None:
            self.active.set_client_name(client_name)

        valuation_id = await repository.save(
            self.active.target,
            self.active.comparables,
            self.active.client_name,
            existing_id=self.active.current_valuation_id,
            property_id=property_id,
        )
        self.active.mark_saved(valuation_id)
        return valuation_id

    async def delete_saved(self, valuation_id: str, confirmed: Optional[bool] = None) -> bool:
        """Delete a snapshot; the active set stops pointing at it."""
        deleted = await self._require_saved().delete(valuation_id, confirmed)
        if deleted:
            self.active.clear_binding(valuation_id)
        return deleted

    async def load(self, valuation_id: str, confirmed: Optional[bool] = None) -> Optional[SavedValuation]:
        """Open a saved snapshot as the active valuation.

        Returns:
            The applied snapshot, or None if the agent declined.
        """
        repository = self._require_saved()
        valuation = await repository.get(valuation_id)
        return await repository.load(valuation, self.active, confirmed)

    # -- import -------------------------------------------------------------

    async def import_from_table(self, text: str, source: Optional[str] = None) -> ImportReport:
        """Append the comparables found in CSV text."""
        report = parse_table(text, source=source)
        await self._append(report)
        return report

    async def import_from_sheet(self, url: str, client: Optional[httpx.AsyncClient] = None) -> ImportReport:
        """Download a sheet (or CSV link) and append its comparables."""
        report = await fetch_and_parse(url, timeout=self.import_timeout, client=client)
        await self._append(report)
        return report

    async def _append(self, report: ImportReport) -> None:
        if report.payloads:
            await self.active.add_comparables(report.payloads)

    # -- views --------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """The active valuation with derived figures, as plain data."""
        active = self.active
        priced = {p.id: p for p in active.priced_comparables}
        comparables = []
        for comparable in active.comparables:
            data = comparable.to_document()
            match = priced.get(comparable.id)
            data["hSurface"] = match.h_surface if match else 0.0
            data["hPrice"] = match.h_price if match else 0.0
            comparables.append(data)

        return {
            "agentId": self.agent_id,
            "target": active.target.to_document(),
            "targetHomogenizedSurface": active.target_homogenized_surface,
            "comparables": comparables,
            "statistics": active.statistics.to_dict(),
            "valueRange": active.value_range.to_dict(),
            "dirty": active.is_dirty,
            "phase": active.state.phase,
            "currentValuationId": active.current_valuation_id,
            "clientName": active.client_name,
            "syncStatus": active.sync_status,
            "connected": active.is_connected,
        }

    def _require_saved(self) -> SavedValuationRepository:
        if self.saved is None:
            raise NotConnectedError("Saved valuations need a document store")
        return self.saved


def saved_summaries(valuations: Iterable[SavedValuation]) -> List[Dict[str, Any]]:
    """List view of snapshots, newest first as received."""
    return [
        {
            "id": v.id,
            "name": v.name,
            "date": v.date,
            "clientName": v.client_name,
            "comparables": len(v.comparables),
            "valuation": v.value_range.to_dict() if v.value_range else None,
            "inmuebleId": v.property_id,
            "valuationStatus": v.valuation_status,
        }
        for v in valuations
    ]
