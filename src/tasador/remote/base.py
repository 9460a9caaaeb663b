"""
Remote Document Store Interface

Async document store addressed by slash-separated paths
(``workspace/{agent}/comparables/{id}``) with atomic write batches and
real-time subscriptions.

Subclasses implement three primitives: ``_read``, ``_read_collection`` and
``_apply`` (apply a list of writes atomically). Everything else, including
notification fan-out, lives here.

Notifications are delivered asynchronously: after a write commits, every
affected listener is scheduled on the running event loop with the latest
state of its document or collection. ``await store.flush()`` waits until all
scheduled notifications have run.
"""

import asyncio
import copy
import secrets
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from tasador.core.constants import DOCUMENT_ID_LENGTH
from tasador.exceptions import (
    DocumentStoreError,
    NotFoundError,
    RemoteWriteError,
    TransactionError,
)
from tasador.logging_config import get_logger

logger = get_logger(__name__)

_ID_ALPHABET = string.ascii_letters + string.digits


def split_path(path: str):
    """Split a document path into (collection, doc_id)."""
    path = path.strip("/")
    if "/" not in path:
        raise ValueError(f"Not a document path: {path}")
    collection, doc_id = path.rsplit("/", 1)
    return collection, doc_id


def merge_documents(base: Mapping[str, Any], changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep-merge ``changes`` into a copy of ``base`` (nested maps merge, rest replace)."""
    merged = copy.deepcopy(dict(base))
    for key, value in changes.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_documents(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


@dataclass
class DocumentSnapshot:
    """A document as read from the store."""

    path: str
    data: Dict[str, Any]

    @property
    def id(self) -> str:
        return split_path(self.path)[1]

    @property
    def collection(self) -> str:
        return split_path(self.path)[0]


@dataclass
class WriteOp:
    """One write inside an atomic apply."""

    kind: str  # "set", "update", "delete", "delete_collection"
    path: str
    data: Optional[Dict[str, Any]] = None
    merge: bool = False


DocumentListener = Callable[[Optional[DocumentSnapshot]], None]
CollectionListener = Callable[[List[DocumentSnapshot]], None]
ErrorListener = Callable[[Exception], None]


@dataclass(eq=False)
class Subscription:
    """Handle for one real-time listener. Call ``unsubscribe()`` to release it."""

    store: "DocumentStore"
    target: str
    is_collection: bool
    listener: Callable
    on_error: Optional[ErrorListener] = None
    order_by: Optional[str] = None
    descending: bool = False
    active: bool = field(default=True)

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self.store._remove_subscription(self)


class WriteBatch:
    """Collects writes that are applied all together or not at all."""

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._ops: List[WriteOp] = []
        self._committed = False

    def set(self, path: str, data: Mapping[str, Any], merge: bool = False) -> "WriteBatch":
        self._ops.append(WriteOp("set", path, dict(data), merge))
        return self

    def update(self, path: str, data: Mapping[str, Any]) -> "WriteBatch":
        self._ops.append(WriteOp("update", path, dict(data)))
        return self

    def delete(self, path: str) -> "WriteBatch":
        self._ops.append(WriteOp("delete", path))
        return self

    def delete_collection(self, collection: str) -> "WriteBatch":
        """Delete every document of ``collection`` as of commit time."""
        self._ops.append(WriteOp("delete_collection", collection.strip("/")))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    async def commit(self) -> None:
        """Apply all writes atomically.

        Raises:
            TransactionError: If any write fails; none of them are applied.
        """
        if self._committed:
            raise TransactionError("Batch already committed")
        self._committed = True
        await self._store._commit(self._ops)


class DocumentStore(ABC):
    """Base class for async document stores with real-time listeners."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._deliveries: Set[asyncio.Task] = set()

    # -- primitives ---------------------------------------------------------

    @abstractmethod
    def _read(self, path: str) -> Optional[Dict[str, Any]]:
        """Return the data of one document, or None if it does not exist."""

    @abstractmethod
    def _read_collection(self, collection: str) -> Dict[str, Dict[str, Any]]:
        """Return {path: data} for every document directly in ``collection``."""

    @abstractmethod
    def _apply(self, ops: List[WriteOp]) -> Set[str]:
        """Apply ``ops`` atomically and return the affected document paths."""

    async def _call(self, func: Callable, *args):
        """Run a storage primitive from a coroutine.

        Runs inline; stores whose primitives block override this to keep
        the event loop free.
        """
        return func(*args)

    # -- identifiers --------------------------------------------------------

    def new_id(self) -> str:
        """Allocate a document identifier usable for later writes."""
        return "".join(secrets.choice(_ID_ALPHABET) for _ in range(DOCUMENT_ID_LENGTH))

    # -- reads --------------------------------------------------------------

    async def get(self, path: str) -> Optional[DocumentSnapshot]:
        data = await self._call(self._read, path.strip("/"))
        if data is None:
            return None
        return DocumentSnapshot(path=path.strip("/"), data=data)

    async def list(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[DocumentSnapshot]:
        """List the documents of a collection, optionally filtered and ordered."""
        rows = await self._call(self._read_collection, collection.strip("/"))
        return self._select(rows, order_by, descending, where)

    async def count(self, collection: str) -> int:
        return len(await self._call(self._read_collection, collection.strip("/")))

    @staticmethod
    def _select(
        rows: Mapping[str, Dict[str, Any]],
        order_by: Optional[str],
        descending: bool,
        where: Optional[Mapping[str, Any]] = None,
    ) -> List[DocumentSnapshot]:
        snapshots = [DocumentSnapshot(path=path, data=data) for path, data in rows.items()]
        if where:
            snapshots = [
                s for s in snapshots
                if all(s.data.get(key) == value for key, value in where.items())
            ]
        snapshots.sort(key=lambda s: s.id)
        if order_by:
            # Documents missing the field sort last, like an absent index entry
            present = [s for s in snapshots if s.data.get(order_by) is not None]
            missing = [s for s in snapshots if s.data.get(order_by) is None]
            present.sort(key=lambda s: s.data[order_by], reverse=descending)
            snapshots = present + missing
        return snapshots

    # -- writes -------------------------------------------------------------

    async def set(self, path: str, data: Mapping[str, Any], merge: bool = False) -> None:
        await self._write(WriteOp("set", path.strip("/"), dict(data), merge))

    async def update(self, path: str, data: Mapping[str, Any]) -> None:
        """Merge fields into an existing document.

        Raises:
            NotFoundError: If the document does not exist.
        """
        await self._write(WriteOp("update", path.strip("/"), dict(data)))

    async def delete(self, path: str) -> None:
        await self._write(WriteOp("delete", path.strip("/")))

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    async def _write(self, op: WriteOp) -> None:
        try:
            affected = await self._call(self._apply, [op])
        except NotFoundError:
            raise
        except DocumentStoreError as e:
            raise RemoteWriteError(f"Write to {op.path} failed: {e}", path=op.path) from e
        self._notify(affected)

    async def _commit(self, ops: List[WriteOp]) -> None:
        if not ops:
            return
        try:
            affected = await self._call(
                self._apply, [WriteOp(o.kind, o.path.strip("/"), o.data, o.merge) for o in ops]
            )
        except Exception as e:
            logger.error("Batch of %d writes failed: %s", len(ops), e)
            raise TransactionError(
                f"Transaction failed: {e}", paths=[o.path for o in ops], retryable=True
            ) from e
        logger.debug("Committed batch of %d writes", len(ops))
        self._notify(affected)

    # -- subscriptions ------------------------------------------------------

    def subscribe_document(
        self,
        path: str,
        listener: DocumentListener,
        on_error: Optional[ErrorListener] = None,
    ) -> Subscription:
        """Listen to one document. The current state is delivered first."""
        subscription = Subscription(self, path.strip("/"), False, listener, on_error)
        self._subscriptions.append(subscription)
        self._schedule(subscription)
        return subscription

    def subscribe_collection(
        self,
        collection: str,
        listener: CollectionListener,
        order_by: Optional[str] = None,
        descending: bool = False,
        on_error: Optional[ErrorListener] = None,
    ) -> Subscription:
        """Listen to a collection query. The current result is delivered first."""
        subscription = Subscription(
            self, collection.strip("/"), True, listener, on_error, order_by, descending
        )
        self._subscriptions.append(subscription)
        self._schedule(subscription)
        return subscription

    def _remove_subscription(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    @property
    def listener_count(self) -> int:
        return len(self._subscriptions)

    def _notify(self, affected: Iterable[str]) -> None:
        paths = set(affected)
        collections = {split_path(p)[0] for p in paths}
        for subscription in list(self._subscriptions):
            if subscription.is_collection:
                hit = subscription.target in collections
            else:
                hit = subscription.target in paths
            if hit:
                self._schedule(subscription)

    def _schedule(self, subscription: Subscription) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            self._deliver(subscription)
            return

        # Done callbacks also run for deliveries cancelled before they start
        task = loop.create_task(self._deliver_later(subscription))
        self._deliveries.add(task)
        task.add_done_callback(self._deliveries.discard)

    def _fetch(self, subscription: Subscription):
        if subscription.is_collection:
            rows = self._read_collection(subscription.target)
            return self._select(rows, subscription.order_by, subscription.descending)
        data = self._read(subscription.target)
        return None if data is None else DocumentSnapshot(subscription.target, data)

    def _deliver(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        try:
            payload = self._fetch(subscription)
        except DocumentStoreError as e:
            self._report(subscription, e)
            return
        self._call_listener(subscription, payload)

    async def _deliver_later(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        try:
            payload = await self._call(self._fetch, subscription)
        except DocumentStoreError as e:
            self._report(subscription, e)
            return
        # The listener may have been released while the read was running
        if subscription.active:
            self._call_listener(subscription, payload)

    def _report(self, subscription: Subscription, error: DocumentStoreError) -> None:
        logger.error("Error reading %s for listener: %s", subscription.target, error)
        if subscription.on_error:
            subscription.on_error(error)

    def _call_listener(self, subscription: Subscription, payload) -> None:
        try:
            subscription.listener(payload)
        except Exception:
            logger.exception("Listener for %s raised", subscription.target)

    async def flush(self) -> None:
        """Wait until every scheduled notification has been delivered."""
        while self._deliveries:
            await asyncio.sleep(0)

    def close(self) -> None:
        """Release every listener."""
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()
