"""
Remote document store and real-time synchronization.
"""

from tasador.remote.base import DocumentSnapshot, DocumentStore, Subscription, WriteBatch
from tasador.remote.memory import MemoryDocumentStore
from tasador.remote.paths import WorkspacePaths
from tasador.remote.sqlite import SqliteDocumentStore
from tasador.remote.sync import SyncBridge

__all__ = [
    "DocumentSnapshot",
    "DocumentStore",
    "Subscription",
    "WriteBatch",
    "MemoryDocumentStore",
    "SqliteDocumentStore",
    "WorkspacePaths",
    "SyncBridge",
]
