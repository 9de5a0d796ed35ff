from __future__ import annotations

import logging
import sqlite3
from dataclasses import replace
from typing import List, Optional

from domain.errors import StorageError
from domain.models import Account
from domain.repositories import AccountRepository
from domain.security import DEFAULT_ROUNDS, hash_password
from infrastructure.db.connection import ConnectionProvider

logger = logging.getLogger(__name__)

_COLUMNS = "account_id, username, password"


class SqliteAccountRepository(AccountRepository):
    """
    SQLite-backed implementation of `AccountRepository`.

    Manages the `account` table, which stores usernames and salted
    password hashes. The UNIQUE constraint on `username` is what finally
    rules out duplicate registrations; the application layer's lookup is
    only a fast path.
    """

    def __init__(self, provider: ConnectionProvider, bcrypt_rounds: int = DEFAULT_ROUNDS) -> None:
        self._provider = provider
        self._bcrypt_rounds = bcrypt_rounds
        self._ensure_table()

    def _ensure_table(self) -> None:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS account (
                    account_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    password TEXT NOT NULL
                )
                """
            )

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Account:
        return Account(
            account_id=int(row[0]),
            username=row[1],
            password=row[2],
        )

    def get(self, entity_id: int) -> Optional[Account]:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_COLUMNS} FROM account WHERE account_id = ?", (entity_id,))
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def get_all(self) -> List[Account]:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_COLUMNS} FROM account")
            return [self._to_domain(row) for row in cur.fetchall()]

    def find_by_username(self, username: str) -> Optional[Account]:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_COLUMNS} FROM account WHERE username = ?", (username,))
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def create(self, entity: Account) -> Account:
        password_hash = hash_password(entity.password, self._bcrypt_rounds)
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO account (username, password) VALUES (?, ?)",
                (entity.username, password_hash),
            )
            if cur.lastrowid is None:
                raise StorageError("Creating account failed, no ID obtained.")
            account_id = int(cur.lastrowid)

        logger.debug("Account created", extra={"account_id": account_id})
        return replace(entity, account_id=account_id, password=password_hash)

    def update(self, entity: Account) -> Account:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            if entity.password is None:
                # Keep the stored hash.
                cur.execute(
                    "UPDATE account SET username = ? WHERE account_id = ?",
                    (entity.username, entity.account_id),
                )
                fallback = entity
            else:
                password_hash = hash_password(entity.password, self._bcrypt_rounds)
                cur.execute(
                    "UPDATE account SET username = ?, password = ? WHERE account_id = ?",
                    (entity.username, password_hash, entity.account_id),
                )
                fallback = replace(entity, password=password_hash)

            cur.execute(f"SELECT {_COLUMNS} FROM account WHERE account_id = ?", (entity.account_id,))
            row = cur.fetchone()

        logger.debug("Account updated", extra={"account_id": entity.account_id, "matched": row is not None})
        return self._to_domain(row) if row else fallback

    def delete(self, entity_id: int) -> Optional[Account]:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            # Write lock before the snapshot read, so no other writer slips in between.
            cur.execute("BEGIN IMMEDIATE")
            cur.execute(f"SELECT {_COLUMNS} FROM account WHERE account_id = ?", (entity_id,))
            row = cur.fetchone()
            if not row:
                return None
            cur.execute("DELETE FROM account WHERE account_id = ?", (entity_id,))
            if cur.rowcount == 0:
                return None

        logger.debug("Account deleted", extra={"account_id": entity_id})
        return self._to_domain(row)
