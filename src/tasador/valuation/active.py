"""
Active Valuation Store

Holds the open valuation of one agent and mirrors it to the remote store.

Every mutation is applied in two phases:

1. a pure transition from ``tasador.valuation.state`` updates local state
   immediately, so readers see the change before the store confirms it;
2. the matching write is sent to the remote store.

For target and comparable edits the write runs as a tracked background
task. A failed write is logged and the optimistic local value stands.
``sync_status`` reports it and ``wait_for_persistence()`` lets callers wait
for confirmation. Deleting a comparable waits for the store and restores
the row if the delete fails. Starting a new valuation and replacing the set
with a saved snapshot use one atomic batch and restore the prior state if
the batch fails.

Usage:
    store = ActiveValuationStore(remote, WorkspacePaths("agent-1"))
    await store.update_target(address="Av. Siempreviva 742", covered_surface=80)
    comparable = await store.add_comparable(price=150000)
    await store.wait_for_persistence()
    print(store.value_range)
"""

import asyncio
import functools
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from tasador.core.constants import CONFIRM_NEW_VALUATION
from tasador.core.homogenization import (
    compute_statistics,
    price_comparables,
    project_valuation,
    target_surface,
)
from tasador.core.models import (
    Comparable,
    PricedComparable,
    SavedValuation,
    TargetProperty,
    ValuationStats,
    ValueRange,
)
from tasador.exceptions import DocumentStoreError, RemoteWriteError, TransactionError
from tasador.logging_config import get_agent_logger
from tasador.remote.base import DocumentStore
from tasador.remote.paths import WorkspacePaths
from tasador.valuation import state as transitions
from tasador.valuation.identifiers import new_local_id
from tasador.valuation.prompts import Prompter, StaticPrompter
from tasador.valuation.state import ActiveState


SYNC_CONFIRMED = "confirmed"
SYNC_PENDING = "pending"
SYNC_FAILED = "failed"


class ActiveValuationStore:
    """The editable target property and comparables of one agent.

    Args:
        remote: Document store to mirror into, or None to work offline.
        paths: Workspace paths of the agent.
        prompter: Asked before discarding unsaved work.
    """

    def __init__(
        self,
        remote: Optional[DocumentStore],
        paths: WorkspacePaths,
        prompter: Optional[Prompter] = None,
    ):
        self._remote = remote
        self._paths = paths
        self._prompter = prompter or StaticPrompter(True)
        self._logger = get_agent_logger(__name__, paths.agent_id)
        self._state: ActiveState = transitions.initial_state()
        self._pending: Set[asyncio.Future] = set()
        self.last_write_error: Optional[Exception] = None

    # -- state --------------------------------------------------------------

    @property
    def state(self) -> ActiveState:
        return self._state

    @property
    def target(self) -> TargetProperty:
        return self._state.target

    @property
    def comparables(self) -> List[Comparable]:
        return list(self._state.comparables)

    @property
    def is_dirty(self) -> bool:
        return self._state.dirty

    @property
    def is_empty(self) -> bool:
        return self._state.is_empty

    @property
    def current_valuation_id(self) -> Optional[str]:
        return self._state.current_valuation_id

    @property
    def client_name(self) -> str:
        return self._state.client_name

    @property
    def is_connected(self) -> bool:
        return self._remote is not None

    def get_comparable(self, comparable_id: str) -> Optional[Comparable]:
        return self._state.find(comparable_id)

    # -- computed -----------------------------------------------------------

    @property
    def priced_comparables(self) -> List[PricedComparable]:
        return price_comparables(self._state.comparables)

    @property
    def target_homogenized_surface(self) -> float:
        return target_surface(self._state.target)

    @property
    def statistics(self) -> ValuationStats:
        return compute_statistics(p.h_price for p in self.priced_comparables)

    @property
    def value_range(self) -> ValueRange:
        return project_valuation(self.target_homogenized_surface, self.statistics)

    # -- persistence status -------------------------------------------------

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    @property
    def sync_status(self) -> str:
        if self._pending:
            return SYNC_PENDING
        if self.last_write_error is not None:
            return SYNC_FAILED
        return SYNC_CONFIRMED

    async def wait_for_persistence(self) -> None:
        """Wait for every background write and the notifications it caused."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
            # Done callbacks run on the next loop iteration
            await asyncio.sleep(0)
        if self._remote is not None:
            await self._remote.flush()

    # -- remote reducers ----------------------------------------------------

    def apply_remote_target(self, target: TargetProperty) -> None:
        self._state = transitions.with_remote_target(self._state, target)

    def apply_remote_comparables(self, comparables: Iterable[Comparable]) -> None:
        self._state = transitions.with_remote_comparables(self._state, comparables)

    # -- identifiers --------------------------------------------------------

    def allocate_id(self) -> str:
        """Stable id from the store when connected, tagged local id otherwise."""
        if self._remote is not None:
            return self._remote.new_id()
        return new_local_id()

    # -- mutations ----------------------------------------------------------

    async def update_target(self, changes: Optional[Mapping[str, Any]] = None, **fields) -> TargetProperty:
        """Merge fields into the target and persist them with a merge write."""
        changes = _merged(changes, fields)
        self._state = transitions.with_target_update(self._state, changes)
        if self._remote is not None and changes:
            path = self._paths.target
            data = self._state.target.document_subset(changes.keys())
            self._persist(self._remote.set(path, data, merge=True), path)
        return self._state.target

    async def add_comparable(self, initial: Optional[Mapping[str, Any]] = None, **fields) -> Comparable:
        """Append a comparable with defaults for every required number."""
        comparable = Comparable.new(self.allocate_id(), _merged(initial, fields))
        self._state = transitions.with_comparable_added(self._state, comparable)
        if self._remote is not None:
            path = self._paths.comparable(comparable.id)
            self._persist(self._remote.set(path, comparable.business_fields()), path)
        return comparable

    async def add_comparables(self, payloads: Iterable[Mapping[str, Any]]) -> List[Comparable]:
        """Append several comparables in one atomic write.

        Raises:
            TransactionError: If the batch fails; local state is restored.
        """
        comparables = [Comparable.new(self.allocate_id(), payload) for payload in payloads]
        if not comparables:
            return []

        previous = self._state
        self._state = transitions.with_comparables_added(self._state, comparables)
        if self._remote is not None:
            await self._drain()
            batch = self._remote.batch()
            for comparable in comparables:
                batch.set(self._paths.comparable(comparable.id), comparable.business_fields())
            await self._commit(batch, previous, "add comparables")
        self._logger.info("Added %d comparables", len(comparables))
        return comparables

    async def update_comparable(
        self,
        comparable_id: str,
        changes: Optional[Mapping[str, Any]] = None,
        **fields,
    ) -> Comparable:
        """Merge fields into one comparable.

        Raises:
            NotFoundError: If the comparable is not in the active set.
        """
        changes = {k: v for k, v in _merged(changes, fields).items() if k != "id"}
        self._state = transitions.with_comparable_updated(self._state, comparable_id, changes)
        comparable = self._state.find(comparable_id)
        if self._remote is not None and changes:
            path = self._paths.comparable(comparable_id)
            self._persist(self._remote.update(path, comparable.document_subset(changes.keys())), path)
        return comparable

    async def delete_comparable(self, comparable_id: str) -> Comparable:
        """Remove a comparable, restoring it if the remote delete fails.

        Raises:
            NotFoundError: If the comparable is not in the active set.
            RemoteWriteError: If the store rejected the delete.
        """
        self._state, removed, index = transitions.with_comparable_removed(self._state, comparable_id)
        if self._remote is None:
            return removed

        path = self._paths.comparable(comparable_id)
        try:
            await self._drain()
            await self._remote.delete(path)
        except DocumentStoreError as e:
            self._state = transitions.with_comparable_restored(self._state, removed, index)
            self._logger.error("Delete of %s failed, comparable restored: %s", path, e)
            raise RemoteWriteError(f"Could not delete comparable {comparable_id}", path=path) from e
        return removed

    def set_client_name(self, client_name: str) -> None:
        self._state = transitions.with_client_name(self._state, client_name)

    async def new_valuation(self, confirmed: Optional[bool] = None) -> bool:
        """Discard the working set and start from defaults.

        Asks for confirmation when there are unsaved, non-empty changes.

        Returns:
            False if the agent declined, True otherwise.

        Raises:
            TransactionError: If the reset could not be written; nothing changed.
        """
        if self._state.dirty and not self._state.is_empty:
            if not self._confirm(CONFIRM_NEW_VALUATION, confirmed):
                return False

        previous = self._state
        self._state = transitions.reset(self._state)
        if self._remote is not None:
            await self._drain()
            batch = self._remote.batch()
            batch.set(self._paths.target, self._state.target.to_document())
            batch.delete_collection(self._paths.comparables)
            await self._commit(batch, previous, "new valuation")
        self._logger.info("Started a new valuation")
        return True

    async def replace_with(self, valuation: SavedValuation) -> None:
        """Overwrite the working set and its remote mirror with a snapshot.

        Comparable ids must already be reconciled: they become the document
        keys of the recreated comparables.

        Raises:
            TransactionError: If the replace could not be written; nothing changed.
        """
        previous = self._state
        self._state = transitions.loaded(valuation)
        if self._remote is None:
            return

        await self._drain()
        batch = self._remote.batch()
        batch.set(self._paths.target, valuation.target.to_document())
        batch.delete_collection(self._paths.comparables)
        for comparable in valuation.comparables:
            batch.set(self._paths.comparable(comparable.id), comparable.business_fields())
        await self._commit(batch, previous, "load valuation")

    def mark_saved(self, valuation_id: str) -> None:
        self._state = transitions.with_saved(self._state, valuation_id)

    def clear_binding(self, valuation_id: str) -> None:
        self._state = transitions.with_binding_cleared(self._state, valuation_id)

    # -- helpers ------------------------------------------------------------

    def _confirm(self, message: str, confirmed: Optional[bool]) -> bool:
        if confirmed is not None:
            return bool(confirmed)
        return self._prompter.confirm(message)

    def _persist(self, write, path: str) -> None:
        task = asyncio.ensure_future(write)
        self._pending.add(task)
        task.add_done_callback(functools.partial(self._write_finished, path))

    def _write_finished(self, path: str, task: asyncio.Future) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.last_write_error = error
            self._logger.warning("Write to %s failed, keeping local value: %s", path, error)
        else:
            self.last_write_error = None

    async def _drain(self) -> None:
        # Earlier single-document writes must land before a batch that
        # deletes or rewrites the same documents.
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
            await asyncio.sleep(0)

    async def _commit(self, batch, previous: ActiveState, action: str) -> None:
        try:
            await batch.commit()
        except TransactionError:
            self._state = previous
            self._logger.error("Could not %s, local state restored", action)
            raise


def _merged(changes: Optional[Mapping[str, Any]], fields: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(changes or {})
    merged.update(fields)
    return merged
