"""
Clinic Signal Engine — Database Module

Provides the SQLite connection, transactions, and query helpers that back
the document store.
"""

import sqlite3
import threading
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from clinicops import paths


class Database:
    """
    Database connection and query manager.

    One connection is shared by all worker threads of a pass; a re-entrant
    lock serializes access so batch workers never interleave statements
    inside another worker's transaction.
    """

    def __init__(self, db_path: str | Path | None = None):
        """
        Initialize database manager.

        Args:
            db_path: Path to SQLite database file (default: paths.db_path())
        """
        self.db_path = str(db_path or paths.db_path())
        self._connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def get_connection(self) -> sqlite3.Connection:
        """
        Get a database connection.

        Returns a new connection if none exists, or reuses existing one.
        Uses dict row factory for convenient column access.
        """
        with self._lock:
            if self._connection is None:
                # Autocommit mode; transaction() issues BEGIN IMMEDIATE itself
                self._connection = sqlite3.connect(
                    self.db_path,
                    check_same_thread=False,
                    isolation_level=None,
                    timeout=30.0,
                )
                self._connection.row_factory = self._dict_factory
                self._connection.execute("PRAGMA journal_mode = WAL")
            return self._connection

    @staticmethod
    def _dict_factory(cursor: sqlite3.Cursor, row: tuple) -> dict[str, Any]:
        """Row factory that returns dicts instead of tuples."""
        return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database transactions.

        Takes the write lock up front (BEGIN IMMEDIATE) so a read-modify-write
        inside the block cannot race another writer. Commits on success, rolls
        back on exception. Nested calls join the outer transaction.

        Usage:
            with db.transaction() as conn:
                conn.execute("UPDATE ...")
        """
        with self._lock:
            conn = self.get_connection()
            outermost = self._depth == 0
            if outermost:
                conn.execute("BEGIN IMMEDIATE")
            self._depth += 1
            try:
                yield conn
            except Exception:
                self._depth -= 1
                if outermost:
                    conn.execute("ROLLBACK")
                raise
            else:
                self._depth -= 1
                if outermost:
                    conn.execute("COMMIT")

    # =========================================================================
    # Query Helpers
    # =========================================================================

    def execute(self, sql: str, params: tuple | dict | None = None) -> sqlite3.Cursor:
        """
        Execute a SQL statement.

        Args:
            sql: SQL statement
            params: Query parameters (tuple for ?, dict for :name)

        Returns:
            Cursor for the executed query
        """
        with self._lock:
            conn = self.get_connection()
            if params is None:
                return conn.execute(sql)
            return conn.execute(sql, params)

    def fetch_one(self, sql: str, params: tuple | dict | None = None) -> dict[str, Any] | None:
        """
        Execute query and return first row as dict.

        Returns:
            First row as dict, or None if no results
        """
        with self._lock:
            return self.execute(sql, params).fetchone()

    def fetch_all(self, sql: str, params: tuple | dict | None = None) -> list[dict[str, Any]]:
        """
        Execute query and return all rows as list of dicts.
        """
        with self._lock:
            return self.execute(sql, params).fetchall()

    def table_exists(self, table: str) -> bool:
        """Check if a table exists."""
        sql = "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?"
        return self.fetch_one(sql, (table,)) is not None
