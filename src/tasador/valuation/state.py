"""
Active Valuation State

Immutable snapshot of the working set plus the pure transitions applied to
it. The store applies a transition synchronously, then persists in the
background; keeping the transitions pure lets them be tested and rolled
back without touching the remote store.
"""

from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Optional, Tuple

from tasador.core.models import Comparable, SavedValuation, TargetProperty
from tasador.exceptions import NotFoundError


@dataclass(frozen=True)
class ActiveState:
    """The open valuation: target, comparables and save bookkeeping."""

    target: TargetProperty
    comparables: Tuple[Comparable, ...] = ()
    dirty: bool = False
    current_valuation_id: Optional[str] = None
    client_name: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.comparables and not self.target.has_address()

    @property
    def phase(self) -> str:
        """'empty' or 'editing'."""
        return "empty" if self.is_empty else "editing"

    def find(self, comparable_id: str) -> Optional[Comparable]:
        for comparable in self.comparables:
            if comparable.id == comparable_id:
                return comparable
        return None


def initial_state() -> ActiveState:
    return ActiveState(target=TargetProperty.empty())


def reset(state: ActiveState) -> ActiveState:
    """Fresh valuation: default target, no comparables, no binding."""
    return initial_state()


def with_target_update(state: ActiveState, changes: Mapping[str, Any]) -> ActiveState:
    return replace(state, target=state.target.with_changes(changes), dirty=True)


def with_client_name(state: ActiveState, client_name: str) -> ActiveState:
    return replace(state, client_name=client_name or "", dirty=True)


def with_comparable_added(state: ActiveState, comparable: Comparable) -> ActiveState:
    return with_comparables_added(state, [comparable])


def with_comparables_added(state: ActiveState, comparables: Iterable[Comparable]) -> ActiveState:
    return replace(state, comparables=state.comparables + tuple(comparables), dirty=True)


def with_comparable_updated(
    state: ActiveState,
    comparable_id: str,
    changes: Mapping[str, Any],
) -> ActiveState:
    """Merge ``changes`` into one comparable. The id itself never changes.

    Raises:
        NotFoundError: If no comparable has ``comparable_id``.
    """
    if state.find(comparable_id) is None:
        raise NotFoundError(f"Comparable not found: {comparable_id}")

    changes = {k: v for k, v in changes.items() if k != "id"}
    comparables = tuple(
        c.with_changes(changes) if c.id == comparable_id else c
        for c in state.comparables
    )
    return replace(state, comparables=comparables, dirty=True)


def with_comparable_removed(
    state: ActiveState,
    comparable_id: str,
) -> Tuple[ActiveState, Comparable, int]:
    """Remove one comparable.

    Returns:
        (new state, removed comparable, its former index) so the removal
        can be undone with ``with_comparable_restored``.

    Raises:
        NotFoundError: If no comparable has ``comparable_id``.
    """
    for index, comparable in enumerate(state.comparables):
        if comparable.id == comparable_id:
            remaining = state.comparables[:index] + state.comparables[index + 1:]
            return replace(state, comparables=remaining, dirty=True), comparable, index
    raise NotFoundError(f"Comparable not found: {comparable_id}")


def with_comparable_restored(state: ActiveState, comparable: Comparable, index: int) -> ActiveState:
    if state.find(comparable.id) is not None:
        return state
    index = min(index, len(state.comparables))
    comparables = state.comparables[:index] + (comparable,) + state.comparables[index:]
    return replace(state, comparables=comparables)


def with_remote_target(state: ActiveState, target: TargetProperty) -> ActiveState:
    return replace(state, target=target)


def with_remote_comparables(state: ActiveState, comparables: Iterable[Comparable]) -> ActiveState:
    return replace(state, comparables=tuple(comparables))


def with_saved(state: ActiveState, valuation_id: str) -> ActiveState:
    return replace(state, current_valuation_id=valuation_id, dirty=False)


def with_binding_cleared(state: ActiveState, valuation_id: str) -> ActiveState:
    if state.current_valuation_id != valuation_id:
        return state
    return replace(state, current_valuation_id=None)


def loaded(valuation: SavedValuation) -> ActiveState:
    """State after opening a saved valuation (ids already reconciled)."""
    return ActiveState(
        target=valuation.target,
        comparables=tuple(valuation.comparables),
        dirty=False,
        current_valuation_id=valuation.id or None,
        client_name=valuation.client_name or "",
    )
