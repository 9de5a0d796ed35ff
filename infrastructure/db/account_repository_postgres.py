from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional

from domain.errors import StorageError
from domain.models import Account
from domain.repositories import AccountRepository
from domain.security import DEFAULT_ROUNDS, hash_password
from infrastructure.db.connection import ConnectionProvider

logger = logging.getLogger(__name__)

_COLUMNS = "account_id, username, password"


class PostgresAccountRepository(AccountRepository):
    """
    Postgres-backed implementation of `AccountRepository`.

    Same table and semantics as `SqliteAccountRepository`; generated IDs
    come back through `RETURNING` instead of `lastrowid`.
    """

    def __init__(self, provider: ConnectionProvider, bcrypt_rounds: int = DEFAULT_ROUNDS) -> None:
        self._provider = provider
        self._bcrypt_rounds = bcrypt_rounds
        self._ensure_table()

    def _ensure_table(self) -> None:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS account (
                        account_id BIGSERIAL PRIMARY KEY,
                        username TEXT NOT NULL UNIQUE,
                        password TEXT NOT NULL
                    )
                    """
                )

    @staticmethod
    def _to_domain(row: tuple) -> Account:
        return Account(
            account_id=int(row[0]),
            username=row[1],
            password=row[2],
        )

    def _select_one(self, where: str, value) -> Optional[Account]:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM account WHERE {where} = %s", (value,))
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def get(self, entity_id: int) -> Optional[Account]:
        return self._select_one("account_id", entity_id)

    def find_by_username(self, username: str) -> Optional[Account]:
        return self._select_one("username", username)

    def get_all(self) -> List[Account]:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM account")
                return [self._to_domain(row) for row in cur.fetchall()]

    def create(self, entity: Account) -> Account:
        password_hash = hash_password(entity.password, self._bcrypt_rounds)
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO account (username, password)
                    VALUES (%s, %s)
                    RETURNING account_id
                    """,
                    (entity.username, password_hash),
                )
                row = cur.fetchone()
                if not row:
                    raise StorageError("Creating account failed, no ID obtained.")
                account_id = int(row[0])

        logger.debug("Account created", extra={"account_id": account_id})
        return replace(entity, account_id=account_id, password=password_hash)

    def update(self, entity: Account) -> Account:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                if entity.password is None:
                    cur.execute(
                        f"""
                        UPDATE account SET username = %s
                        WHERE account_id = %s
                        RETURNING {_COLUMNS}
                        """,
                        (entity.username, entity.account_id),
                    )
                    fallback = entity
                else:
                    password_hash = hash_password(entity.password, self._bcrypt_rounds)
                    cur.execute(
                        f"""
                        UPDATE account SET username = %s, password = %s
                        WHERE account_id = %s
                        RETURNING {_COLUMNS}
                        """,
                        (entity.username, password_hash, entity.account_id),
                    )
                    fallback = replace(entity, password=password_hash)
                row = cur.fetchone()

        return self._to_domain(row) if row else fallback

    def delete(self, entity_id: int) -> Optional[Account]:
        # DELETE ... RETURNING hands back the pre-deletion row in one statement.
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"DELETE FROM account WHERE account_id = %s RETURNING {_COLUMNS}",
                    (entity_id,),
                )
                row = cur.fetchone()

        if not row:
            return None
        logger.debug("Account deleted", extra={"account_id": entity_id})
        return self._to_domain(row)
