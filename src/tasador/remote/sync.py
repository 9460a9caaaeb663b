"""
Real-Time Synchronization Bridge

Opens the three independent subscriptions of an agent workspace and feeds
each one to its reducer:

- active target document       -> on_target(TargetProperty)
- active comparables           -> on_comparables(list of Comparable), by days on market
- saved valuation snapshots    -> on_saved(list of SavedValuation), newest first

The streams are not atomic with each other: a reducer may observe the new
comparables before the matching target arrives.
"""

from typing import Callable, List, Optional

from tasador.core.models import Comparable, SavedValuation, TargetProperty
from tasador.logging_config import get_logger
from tasador.remote.base import DocumentSnapshot, DocumentStore, Subscription
from tasador.remote.paths import WorkspacePaths

logger = get_logger(__name__)

TargetReducer = Callable[[TargetProperty], None]
ComparablesReducer = Callable[[List[Comparable]], None]
SavedReducer = Callable[[List[SavedValuation]], None]


class SyncBridge:
    """Subscription fan-in for one workspace.

    Use as an async context manager, or call ``open()`` / ``close()``.
    """

    def __init__(
        self,
        store: DocumentStore,
        paths: WorkspacePaths,
        on_target: Optional[TargetReducer] = None,
        on_comparables: Optional[ComparablesReducer] = None,
        on_saved: Optional[SavedReducer] = None,
    ):
        self._store = store
        self._paths = paths
        self._on_target = on_target
        self._on_comparables = on_comparables
        self._on_saved = on_saved
        self._subscriptions: List[Subscription] = []

    @property
    def is_open(self) -> bool:
        return bool(self._subscriptions)

    def open(self) -> "SyncBridge":
        if self.is_open:
            return self

        if self._on_target:
            self._subscriptions.append(self._store.subscribe_document(
                self._paths.target,
                self._handle_target,
                on_error=lambda e: logger.error("Error syncing target: %s", e),
            ))
        if self._on_comparables:
            self._subscriptions.append(self._store.subscribe_collection(
                self._paths.comparables,
                self._handle_comparables,
                order_by="daysOnMarket",
                on_error=lambda e: logger.error("Error syncing comparables: %s", e),
            ))
        if self._on_saved:
            self._subscriptions.append(self._store.subscribe_collection(
                self._paths.saved_valuations,
                self._handle_saved,
                order_by="date",
                descending=True,
                on_error=lambda e: logger.error("Error syncing saved valuations: %s", e),
            ))
        logger.debug("Opened %d subscriptions for %s", len(self._subscriptions), self._paths.base)
        return self

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        if self._subscriptions:
            logger.debug("Closed subscriptions for %s", self._paths.base)
        self._subscriptions = []

    async def __aenter__(self) -> "SyncBridge":
        return self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _handle_target(self, snapshot: Optional[DocumentSnapshot]) -> None:
        # A missing document leaves the local target untouched
        if snapshot is None:
            return
        self._on_target(TargetProperty.from_document(snapshot.data))

    def _handle_comparables(self, snapshots: List[DocumentSnapshot]) -> None:
        self._on_comparables([
            Comparable.from_document(s.data, id=s.id) for s in snapshots
        ])

    def _handle_saved(self, snapshots: List[DocumentSnapshot]) -> None:
        self._on_saved([
            SavedValuation.from_document(s.data, id=s.id) for s in snapshots
        ])
