"""
Unit tests for database module.
"""

import pytest

from tasador.core.database import (
    execute,
    fetch_all,
    fetch_one,
    get_connection,
    init_documents_table,
    table_exists,
    transaction,
)
from tasador.exceptions import DatabaseError


class TestGetConnection:
    """Tests for get_connection context manager."""

    def test_connection_opens_and_closes(self, temp_db):
        with get_connection(temp_db) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            assert cursor.fetchone() is not None

    def test_dict_factory_enabled_by_default(self, temp_db):
        with get_connection(temp_db) as conn:
            conn.execute("CREATE TABLE test (id INTEGER, name TEXT)")
            conn.execute("INSERT INTO test VALUES (1, 'test')")
            row = fetch_one(conn, "SELECT * FROM test")
            assert row == {"id": 1, "name": "test"}

    def test_uses_config_path_by_default(self, test_config):
        with get_connection() as conn:
            init_documents_table(conn)
        with get_connection(test_config.store.path) as conn:
            assert table_exists(conn, "documents")


class TestDocumentsTable:
    """Tests for documents table setup."""

    def test_init_is_idempotent(self, temp_db):
        with get_connection(temp_db) as conn:
            init_documents_table(conn)
            init_documents_table(conn)
            assert table_exists(conn, "documents")
            assert not table_exists(conn, "nope")


class TestQueries:
    """Tests for fetch/execute helpers."""

    def test_execute_and_fetch_all(self, temp_db):
        with get_connection(temp_db) as conn:
            execute(conn, "CREATE TABLE t (v INTEGER)")
            assert execute(conn, "INSERT INTO t VALUES (?)", (1,)) == 1
            execute(conn, "INSERT INTO t VALUES (?)", (2,))
            rows = fetch_all(conn, "SELECT v FROM t ORDER BY v")
            assert [r["v"] for r in rows] == [1, 2]

    def test_bad_query_raises_database_error(self, temp_db):
        with get_connection(temp_db) as conn:
            with pytest.raises(DatabaseError):
                fetch_all(conn, "SELECT * FROM missing_table")


class TestTransaction:
    """Tests for transaction context manager."""

    def test_commits(self, temp_db):
        with get_connection(temp_db) as conn:
            execute(conn, "CREATE TABLE t (v INTEGER)")
            with transaction(conn):
                execute(conn, "INSERT INTO t VALUES (1)", commit=False)
        with get_connection(temp_db) as conn:
            assert fetch_one(conn, "SELECT COUNT(*) AS n FROM t")["n"] == 1

    def test_rolls_back_on_error(self, temp_db):
        with get_connection(temp_db) as conn:
            execute(conn, "CREATE TABLE t (v INTEGER)")
            with pytest.raises(RuntimeError):
                with transaction(conn):
                    execute(conn, "INSERT INTO t VALUES (1)", commit=False)
                    raise RuntimeError("boom")
            assert fetch_one(conn, "SELECT COUNT(*) AS n FROM t")["n"] == 0
