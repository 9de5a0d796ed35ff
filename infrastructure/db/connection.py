from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, ContextManager, Iterator, Protocol

import psycopg2
import psycopg2.pool

from domain.errors import IntegrityViolation, StorageError

logger = logging.getLogger(__name__)


class ConnectionProvider(Protocol):
    """
    Hands out one database connection per logical operation.

    `connection()` is used as a context manager: the block runs inside a
    transaction that is committed on normal exit and rolled back if the
    block raises. The connection is released either way. Driver errors
    leave the block as `StorageError` / `IntegrityViolation`.
    """

    def connection(self) -> ContextManager[Any]:
        ...


class SqliteConnectionProvider(ConnectionProvider):
    """
    SQLite-backed `ConnectionProvider`.

    Opens a fresh connection per call (SQLite connections are cheap) with
    foreign-key enforcement switched on, and closes it afterwards.
    """

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        except sqlite3.Error as exc:
            logger.error("Could not open SQLite database", extra={"db_path": self._db_path})
            raise StorageError(f"Could not open SQLite database at {self._db_path}") from exc

        try:
            conn.execute("PRAGMA foreign_keys = ON;")
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise IntegrityViolation(str(exc)) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc)) from exc
        except OverflowError as exc:
            # Integer parameter outside SQLite's signed 64-bit range.
            conn.rollback()
            raise StorageError(str(exc)) from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()


class PostgresConnectionProvider(ConnectionProvider):
    """
    Postgres-backed `ConnectionProvider` on top of a psycopg2 thread-safe pool.

    Connections are borrowed with `getconn()` and always handed back with
    `putconn()`. An exhausted or unreachable pool surfaces as `StorageError`.
    """

    def __init__(self, dsn: str, min_size: int = 1, max_size: int = 10) -> None:
        try:
            self._pool = psycopg2.pool.ThreadedConnectionPool(min_size, max_size, dsn)
        except psycopg2.Error as exc:
            raise StorageError("Could not create Postgres connection pool") from exc

    def _acquire(self):
        try:
            return self._pool.getconn()
        except psycopg2.Error as exc:
            logger.error("Could not acquire Postgres connection", exc_info=True)
            raise StorageError("Could not acquire a database connection") from exc

    @staticmethod
    def _rollback(conn) -> None:
        # A connection the server dropped cannot roll back; the original
        # error is the one worth raising.
        if conn.closed:
            return
        try:
            conn.rollback()
        except psycopg2.Error:
            logger.warning("Rollback failed on Postgres connection", exc_info=True)

    @contextmanager
    def connection(self) -> Iterator[Any]:
        conn = self._acquire()
        try:
            yield conn
            conn.commit()
        except psycopg2.IntegrityError as exc:
            self._rollback(conn)
            raise IntegrityViolation(str(exc)) from exc
        except psycopg2.Error as exc:
            self._rollback(conn)
            raise StorageError(str(exc)) from exc
        except Exception:
            self._rollback(conn)
            raise
        finally:
            # Broken connections are dropped from the pool rather than reused.
            self._pool.putconn(conn, close=bool(conn.closed))

    def close(self) -> None:
        self._pool.closeall()
