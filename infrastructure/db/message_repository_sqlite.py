from __future__ import annotations

import logging
import sqlite3
from dataclasses import replace
from typing import List, Optional

from domain.errors import StorageError
from domain.models import Message
from domain.repositories import MessageRepository
from infrastructure.db.connection import ConnectionProvider

logger = logging.getLogger(__name__)

_COLUMNS = "message_id, posted_by, message_text, time_posted_epoch"


class SqliteMessageRepository(MessageRepository):
    """
    SQLite-backed implementation of `MessageRepository`.

    This repository owns the `message` table. `posted_by` is a foreign key
    to `account`, and deleting an account removes its messages with it.
    """

    def __init__(self, provider: ConnectionProvider) -> None:
        self._provider = provider
        self._ensure_table()

    def _ensure_table(self) -> None:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS message (
                    message_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    posted_by INTEGER NOT NULL
                        REFERENCES account (account_id) ON DELETE CASCADE,
                    message_text TEXT NOT NULL,
                    time_posted_epoch INTEGER NOT NULL
                )
                """
            )

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Message:
        return Message(
            message_id=int(row[0]),
            posted_by=int(row[1]),
            message_text=row[2],
            time_posted_epoch=int(row[3]),
        )

    def get(self, entity_id: int) -> Optional[Message]:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_COLUMNS} FROM message WHERE message_id = ?", (entity_id,))
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def get_all(self) -> List[Message]:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_COLUMNS} FROM message")
            return [self._to_domain(row) for row in cur.fetchall()]

    def find_all_by_author(self, account_id: int) -> List[Message]:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_COLUMNS} FROM message WHERE posted_by = ?", (account_id,))
            return [self._to_domain(row) for row in cur.fetchall()]

    def create(self, entity: Message) -> Message:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO message (posted_by, message_text, time_posted_epoch)
                VALUES (?, ?, ?)
                """,
                (entity.posted_by, entity.message_text, entity.time_posted_epoch),
            )
            if cur.lastrowid is None:
                raise StorageError("Creating message failed, no ID obtained.")
            message_id = int(cur.lastrowid)

        logger.debug("Message created", extra={"message_id": message_id, "posted_by": entity.posted_by})
        return replace(entity, message_id=message_id)

    def update(self, entity: Message) -> Message:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "UPDATE message SET message_text = ? WHERE message_id = ?",
                (entity.message_text, entity.message_id),
            )
            cur.execute(f"SELECT {_COLUMNS} FROM message WHERE message_id = ?", (entity.message_id,))
            row = cur.fetchone()

        logger.debug("Message updated", extra={"message_id": entity.message_id, "matched": row is not None})
        return self._to_domain(row) if row else entity

    def delete(self, entity_id: int) -> Optional[Message]:
        with self._provider.connection() as conn:
            cur = conn.cursor()
            # Write lock before the snapshot read, so no other writer slips in between.
            cur.execute("BEGIN IMMEDIATE")
            cur.execute(f"SELECT {_COLUMNS} FROM message WHERE message_id = ?", (entity_id,))
            row = cur.fetchone()
            if not row:
                return None
            cur.execute("DELETE FROM message WHERE message_id = ?", (entity_id,))
            if cur.rowcount == 0:
                return None

        logger.debug("Message deleted", extra={"message_id": entity_id})
        return self._to_domain(row)
