"""
SQLite Document Store

Persists documents as JSON rows in a single ``documents`` table so an
agent workspace survives restarts. Each atomic apply runs inside one
sqlite transaction.

Sqlite calls block, so they run in a worker thread one at a time, in the
order the coroutines asked for them. A write that waits on another
session's lock leaves the event loop free.
"""

import asyncio
import json
import sqlite3
from typing import Any, Callable, Dict, List, Optional, Set

from tasador.core.database import (
    execute,
    fetch_all,
    fetch_one,
    get_connection,
    init_documents_table,
    transaction,
)
from tasador.exceptions import NotFoundError
from tasador.logging_config import get_logger
from tasador.remote.base import DocumentStore, WriteOp, merge_documents, split_path

logger = get_logger(__name__)


class SqliteDocumentStore(DocumentStore):
    """Document store backed by a SQLite file."""

    def __init__(self, db_path: str):
        super().__init__()
        self._db_path = db_path
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        with get_connection(self._db_path) as conn:
            init_documents_table(conn)
        logger.debug("Document store ready at %s", db_path)

    @property
    def db_path(self) -> str:
        return self._db_path

    def _serial_lock(self) -> asyncio.Lock:
        # A lock belongs to one event loop; sessions may be reopened on another
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    async def _call(self, func: Callable, *args):
        async with self._serial_lock():
            return await asyncio.to_thread(func, *args)

    def _read(self, path: str) -> Optional[Dict[str, Any]]:
        with get_connection(self._db_path) as conn:
            row = fetch_one(conn, "SELECT data FROM documents WHERE path = ?", (path,))
        return json.loads(row["data"]) if row else None

    def _read_collection(self, collection: str) -> Dict[str, Dict[str, Any]]:
        with get_connection(self._db_path) as conn:
            rows = fetch_all(
                conn,
                "SELECT path, data FROM documents WHERE collection = ?",
                (collection,),
            )
        return {row["path"]: json.loads(row["data"]) for row in rows}

    def _apply(self, ops: List[WriteOp]) -> Set[str]:
        affected: Set[str] = set()
        with get_connection(self._db_path) as conn:
            with transaction(conn):
                for op in ops:
                    affected |= self._apply_op(conn, op)
        return affected

    def _apply_op(self, conn: sqlite3.Connection, op: WriteOp) -> Set[str]:
        if op.kind in ("set", "update"):
            row = fetch_one(conn, "SELECT data FROM documents WHERE path = ?", (op.path,))
            existing = json.loads(row["data"]) if row else None

            if op.kind == "update" and existing is None:
                raise NotFoundError(f"No document to update: {op.path}", path=op.path)

            if existing is not None and (op.merge or op.kind == "update"):
                data = merge_documents(existing, op.data)
            else:
                data = op.data

            collection, doc_id = split_path(op.path)
            execute(
                conn,
                """
                INSERT INTO documents (path, collection, doc_id, data, updated_at)
                VALUES (?, ?, ?, ?, datetime('now'))
                ON CONFLICT(path) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (op.path, collection, doc_id, json.dumps(data, ensure_ascii=False)),
                commit=False,
            )
            return {op.path}

        if op.kind == "delete":
            execute(conn, "DELETE FROM documents WHERE path = ?", (op.path,), commit=False)
            return {op.path}

        if op.kind == "delete_collection":
            rows = fetch_all(conn, "SELECT path FROM documents WHERE collection = ?", (op.path,))
            execute(conn, "DELETE FROM documents WHERE collection = ?", (op.path,), commit=False)
            return {row["path"] for row in rows}

        raise ValueError(f"Unknown write kind: {op.kind}")
