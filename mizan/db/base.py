"""
Store module with connection ownership and explicit SQL transactions.

Provides the foundation for all database operations in Mizan. One Database
object owns the single SQLite connection and is handed to every repository
and service; nothing in the package opens a connection of its own.
"""

import logging
import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

from mizan.config import DB_TIMEOUT, DEFAULT_DB_PATH

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_identifier(name: str) -> str:
    """Validate a table/column name before it is interpolated into SQL."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


class Database:
    """
    Owner of the single SQLite connection.

    The connection runs in autocommit mode; atomicity comes only from
    transaction(), which issues BEGIN/COMMIT/ROLLBACK and nests through
    savepoints.
    """

    def __init__(self, db_path: Optional[Union[Path, str]] = None):
        """
        Initialize the store.

        Args:
            db_path: Path to the SQLite database file, or ":memory:".
                Defaults to data/mizan.db
        """
        if db_path is None:
            db_path = DEFAULT_DB_PATH
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self._conn: Optional[sqlite3.Connection] = None
        self._savepoint_depth = 0

    @property
    def is_memory(self) -> bool:
        return str(self.db_path) == ":memory:"

    def _ensure_db_directory(self):
        """Ensure the database directory exists."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Database directory ensured: {self.db_path.parent}")
        except Exception as e:
            logger.error(f"Failed to create database directory: {e}", exc_info=True)
            raise

    def connect(self) -> sqlite3.Connection:
        """Get or open the owned connection."""
        if self._conn is None:
            if not self.is_memory:
                self._ensure_db_directory()
            self._conn = sqlite3.connect(
                str(self.db_path), timeout=DB_TIMEOUT, isolation_level=None
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            logger.debug(f"Opened database connection: {self.db_path}")
        return self._conn

    def close(self) -> None:
        """Close the owned connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug(f"Closed database connection: {self.db_path}")

    def __enter__(self) -> "Database":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None and self._conn.in_transaction

    @contextmanager
    def transaction(self):
        """
        Context manager for one atomic unit of work.

        The outermost call issues BEGIN and COMMIT, or ROLLBACK when the
        block raises. Inner calls open a savepoint, so a failing inner unit
        is undone without touching the work around it.
        """
        conn = self.connect()

        if conn.in_transaction:
            self._savepoint_depth += 1
            name = f"mizan_sp_{self._savepoint_depth}"
            conn.execute(f"SAVEPOINT {name}")
            try:
                yield conn
            except BaseException:
                conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
                conn.execute(f"RELEASE SAVEPOINT {name}")
                raise
            else:
                conn.execute(f"RELEASE SAVEPOINT {name}")
            finally:
                self._savepoint_depth -= 1
            return

        conn.execute("BEGIN")
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Database error, rolling back: {e}", exc_info=True)
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    @contextmanager
    def foreign_keys_disabled(self):
        """Turn foreign key enforcement off for bulk DDL. SQLite ignores this inside a transaction."""
        conn = self.connect()
        conn.execute("PRAGMA foreign_keys = OFF")
        try:
            yield conn
        finally:
            conn.execute("PRAGMA foreign_keys = ON")

    # =========================================================================
    # Introspection
    # =========================================================================

    def table_exists(self, table: str) -> bool:
        row = (
            self.connect()
            .execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
                (table,),
            )
            .fetchone()
        )
        return row is not None

    def table_columns(self, table: str) -> list[str]:
        """Column names of a table, in declaration order. Empty if the table is missing."""
        rows = (
            self.connect()
            .execute(f"PRAGMA table_info({quote_identifier(table)})")
            .fetchall()
        )
        return [row["name"] for row in rows]

    def list_tables(self) -> list[str]:
        rows = (
            self.connect()
            .execute(
                "SELECT name FROM sqlite_master "
                "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
            )
            .fetchall()
        )
        return [row["name"] for row in rows]


class BaseRepository:
    """Base class for repositories; holds the shared store."""

    def __init__(self, db: Database):
        """
        Initialize the repository.

        Args:
            db: The store owning the connection
        """
        self.db = db

    def _conn(self) -> sqlite3.Connection:
        return self.db.connect()
