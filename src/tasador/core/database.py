"""
Database Helper Functions

SQLite plumbing for the file-backed document store: connections, explicit
transactions and small query helpers that turn ``sqlite3.Error`` into the
package's DatabaseError.

Several sessions (one per device of the same agent) may open the same file,
so connections use WAL journaling and wait on a locked database instead of
failing immediately.

Usage:
    from tasador.core.database import execute, get_connection, transaction

    with get_connection() as conn:
        with transaction(conn):
            execute(conn, "DELETE FROM documents WHERE collection = ?", (path,), commit=False)
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Tuple, Union

from tasador.config import get_config
from tasador.exceptions import DatabaseConnectionError, DatabaseError
from tasador.logging_config import get_logger

logger = get_logger(__name__)

Row = Dict[str, Any]
Params = Union[Tuple, Dict[str, Any], None]

# Milliseconds a writer waits for another connection's lock
BUSY_TIMEOUT_MS = 5000

DOCUMENTS_SCHEMA = """
    CREATE TABLE IF NOT EXISTS documents (
        path TEXT PRIMARY KEY,
        collection TEXT NOT NULL,
        doc_id TEXT NOT NULL,
        data TEXT NOT NULL,
        updated_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
"""
DOCUMENTS_INDEX = "CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents (collection)"


def dict_factory(cursor: sqlite3.Cursor, row: tuple) -> Row:
    """Row factory producing ``{column: value}`` dicts."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def _open(db_path: str, as_dict: bool) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=BUSY_TIMEOUT_MS / 1000)
    conn.row_factory = dict_factory if as_dict else sqlite3.Row
    if db_path != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    return conn


@contextmanager
def get_connection(
    db_path: Optional[str] = None,
    as_dict: bool = True,
) -> Generator[sqlite3.Connection, None, None]:
    """Open a connection for the duration of the block.

    Args:
        db_path: Database file; the configured store path when omitted.
            Missing parent directories are created.
        as_dict: Return rows as dicts instead of ``sqlite3.Row``.

    Raises:
        DatabaseConnectionError: If the file cannot be opened.
    """
    if db_path is None:
        db_path = get_config().store.path
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    try:
        conn = _open(db_path, as_dict)
    except sqlite3.Error as e:
        logger.error("Could not open %s: %s", db_path, e)
        raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e

    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """Run the enclosed statements as one transaction.

    The write lock is taken up front, so a second writer waits out the busy
    timeout instead of failing on its first write. Commits when the block
    exits normally. Any exception rolls everything back and is re-raised;
    sqlite errors are raised as DatabaseError.
    """
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error("Transaction rolled back: %s", e)
        raise DatabaseError(f"Transaction failed: {e}") from e
    except Exception:
        conn.rollback()
        logger.error("Transaction rolled back")
        raise


def _run(conn: sqlite3.Connection, query: str, params: Params) -> sqlite3.Cursor:
    try:
        return conn.execute(query, params) if params else conn.execute(query)
    except sqlite3.Error as e:
        logger.error("Query failed: %s - Error: %s", " ".join(query.split())[:100], e)
        raise DatabaseError(f"Query failed: {e}") from e


def fetch_all(conn: sqlite3.Connection, query: str, params: Params = None) -> List[Row]:
    """All rows of a query.

    Raises:
        DatabaseError: If the query fails.
    """
    return _run(conn, query, params).fetchall()


def fetch_one(conn: sqlite3.Connection, query: str, params: Params = None) -> Optional[Row]:
    """First row of a query, or None."""
    return _run(conn, query, params).fetchone()


def execute(
    conn: sqlite3.Connection,
    query: str,
    params: Params = None,
    commit: bool = True,
) -> int:
    """Run a statement and return the number of affected rows.

    Pass ``commit=False`` inside ``transaction()``.

    Raises:
        DatabaseError: If the statement fails.
    """
    rowcount = _run(conn, query, params).rowcount
    if commit:
        conn.commit()
    return rowcount


def table_exists(conn: sqlite3.Connection, table_name: str) -> bool:
    row = fetch_one(
        conn,
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table_name,),
    )
    return row is not None


def init_documents_table(conn: sqlite3.Connection) -> None:
    """Create the documents table and its index if missing."""
    if table_exists(conn, "documents"):
        return
    execute(conn, DOCUMENTS_SCHEMA)
    execute(conn, DOCUMENTS_INDEX)
    logger.info("Created documents table")
