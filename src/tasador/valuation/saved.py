"""
Saved Valuation Repository

Named snapshots of the active valuation. Each snapshot is one document that
embeds a full copy of the target and of the comparable list.

Usage:
    repo = SavedValuationRepository(remote, paths)
    valuation_id = await repo.save(active.target, active.comparables, "Cliente")
    await repo.load(await repo.get(valuation_id), active)
"""

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional

from tasador.core.constants import (
    CONFIRM_DELETE_VALUATION,
    CONFIRM_LOAD_VALUATION,
    MAX_SAVED_VALUATIONS,
    STATUS_OPEN,
)
from tasador.core.homogenization import valuate
from tasador.core.models import Comparable, SavedValuation, TargetProperty
from tasador.exceptions import NotFoundError, QuotaExceededError, ValidationError
from tasador.logging_config import get_agent_logger
from tasador.remote.base import DocumentStore
from tasador.remote.paths import WorkspacePaths
from tasador.utils.date_parser import format_short_date, now_millis
from tasador.valuation.identifiers import reconcile_identifiers
from tasador.valuation.prompts import Prompter, StaticPrompter


class SavedValuationRepository:
    """Save, list, delete and load the snapshots of one agent."""

    def __init__(
        self,
        remote: DocumentStore,
        paths: WorkspacePaths,
        max_saved: int = MAX_SAVED_VALUATIONS,
        prompter: Optional[Prompter] = None,
    ):
        self._remote = remote
        self._paths = paths
        self.max_saved = max_saved
        self._prompter = prompter or StaticPrompter(True)
        self._logger = get_agent_logger(__name__, paths.agent_id)
        self._saved: List[SavedValuation] = []

    @property
    def saved_valuations(self) -> List[SavedValuation]:
        """Snapshots as last received, newest first."""
        return list(self._saved)

    def apply_remote_saved(self, valuations: Iterable[SavedValuation]) -> None:
        self._saved = list(valuations)

    async def refresh(self) -> List[SavedValuation]:
        snapshots = await self._remote.list(self._paths.saved_valuations, order_by="date", descending=True)
        self._saved = [SavedValuation.from_document(s.data, id=s.id) for s in snapshots]
        return self.saved_valuations

    async def get(self, valuation_id: str) -> SavedValuation:
        """Fetch one snapshot.

        Raises:
            NotFoundError: If no snapshot has this id.
        """
        path = self._paths.saved_valuation(valuation_id)
        snapshot = await self._remote.get(path)
        if snapshot is None:
            raise NotFoundError(f"Saved valuation not found: {valuation_id}", path=path)
        return SavedValuation.from_document(snapshot.data, id=snapshot.id)

    def for_property(self, property_id: str) -> List[SavedValuation]:
        """Snapshots linked to one property (inmueble), newest first."""
        return [v for v in self._saved if v.property_id == property_id]

    async def save(
        self,
        target: TargetProperty,
        comparables: Iterable[Comparable],
        client_name: str = "",
        existing_id: Optional[str] = None,
        property_id: Optional[str] = None,
    ) -> str:
        """Write a snapshot, creating it or merging into ``existing_id``.

        Returns:
            The snapshot id, so later saves can bind to it.

        Raises:
            ValidationError: If the target has no address.
            QuotaExceededError: If a new snapshot would exceed the limit.
        """
        if not target.has_address():
            raise ValidationError("address required", field="address", value=target.address)

        if not existing_id:
            current = await self._remote.count(self._paths.saved_valuations)
            if current >= self.max_saved:
                raise QuotaExceededError(self.max_saved, current)

        comparables = list(comparables)
        _, _, value_range = valuate(target, comparables)
        date = now_millis()

        data: Dict[str, Any] = {
            "name": f"{target.address} - {format_short_date(date)}",
            "date": date,
            "target": target.to_document(),
            "comparables": [c.to_document() for c in comparables],
            "clientName": client_name or "",
            "valuation": value_range.to_dict(),
        }
        if property_id:
            data["inmuebleId"] = property_id
        if not existing_id:
            data["valuationStatus"] = STATUS_OPEN

        valuation_id = existing_id or self._remote.new_id()
        await self._remote.set(self._paths.saved_valuation(valuation_id), data, merge=True)
        self._logger.info("Saved valuation %s (%d comparables)", valuation_id, len(comparables))
        return valuation_id

    async def delete(self, valuation_id: str, confirmed: Optional[bool] = None) -> bool:
        """Remove one snapshot after confirmation.

        Returns:
            False if the agent declined.
        """
        if not self._confirm(CONFIRM_DELETE_VALUATION, confirmed):
            return False
        await self._remote.delete(self._paths.saved_valuation(valuation_id))
        self._saved = [v for v in self._saved if v.id != valuation_id]
        self._logger.info("Deleted saved valuation %s", valuation_id)
        return True

    async def load(self, valuation: SavedValuation, active, confirmed: Optional[bool] = None) -> Optional[SavedValuation]:
        """Replace the active set with a snapshot.

        Ephemeral or repeated comparable ids are replaced with ids from
        ``active.allocate_id`` before the snapshot is applied, so local state
        and the recreated documents share the same keys.

        Returns:
            The snapshot as applied, or None if the agent declined.

        Raises:
            TransactionError: If the active set could not be replaced.
        """
        if active.is_dirty and not self._confirm(CONFIRM_LOAD_VALUATION, confirmed):
            return None

        comparables, replaced = reconcile_identifiers(valuation.comparables, active.allocate_id)
        if replaced:
            self._logger.info("Replaced %d unstable comparable ids in %s", len(replaced), valuation.id)
        reconciled = replace(valuation, comparables=comparables)

        await active.replace_with(reconciled)
        self._logger.info("Loaded valuation %s", valuation.id)
        return reconciled

    def _confirm(self, message: str, confirmed: Optional[bool]) -> bool:
        if confirmed is not None:
            return bool(confirmed)
        return self._prompter.confirm(message)
