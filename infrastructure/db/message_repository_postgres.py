from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional

from domain.errors import StorageError
from domain.models import Message
from domain.repositories import MessageRepository
from infrastructure.db.connection import ConnectionProvider

logger = logging.getLogger(__name__)

_COLUMNS = "message_id, posted_by, message_text, time_posted_epoch"


class PostgresMessageRepository(MessageRepository):
    """
    Postgres-backed implementation of `MessageRepository`.

    Expects the `account` table to exist already, since `posted_by`
    references it.
    """

    def __init__(self, provider: ConnectionProvider) -> None:
        self._provider = provider
        self._ensure_table()

    def _ensure_table(self) -> None:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS message (
                        message_id BIGSERIAL PRIMARY KEY,
                        posted_by BIGINT NOT NULL
                            REFERENCES account (account_id) ON DELETE CASCADE,
                        message_text TEXT NOT NULL,
                        time_posted_epoch BIGINT NOT NULL
                    )
                    """
                )

    @staticmethod
    def _to_domain(row: tuple) -> Message:
        return Message(
            message_id=int(row[0]),
            posted_by=int(row[1]),
            message_text=row[2],
            time_posted_epoch=int(row[3]),
        )

    def get(self, entity_id: int) -> Optional[Message]:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM message WHERE message_id = %s", (entity_id,))
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def get_all(self) -> List[Message]:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM message")
                return [self._to_domain(row) for row in cur.fetchall()]

    def find_all_by_author(self, account_id: int) -> List[Message]:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM message WHERE posted_by = %s", (account_id,))
                return [self._to_domain(row) for row in cur.fetchall()]

    def create(self, entity: Message) -> Message:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO message (posted_by, message_text, time_posted_epoch)
                    VALUES (%s, %s, %s)
                    RETURNING message_id
                    """,
                    (entity.posted_by, entity.message_text, entity.time_posted_epoch),
                )
                row = cur.fetchone()
                if not row:
                    raise StorageError("Creating message failed, no ID obtained.")
                message_id = int(row[0])

        logger.debug("Message created", extra={"message_id": message_id, "posted_by": entity.posted_by})
        return replace(entity, message_id=message_id)

    def update(self, entity: Message) -> Message:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE message SET message_text = %s
                    WHERE message_id = %s
                    RETURNING {_COLUMNS}
                    """,
                    (entity.message_text, entity.message_id),
                )
                row = cur.fetchone()

        return self._to_domain(row) if row else entity

    def delete(self, entity_id: int) -> Optional[Message]:
        with self._provider.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"DELETE FROM message WHERE message_id = %s RETURNING {_COLUMNS}",
                    (entity_id,),
                )
                row = cur.fetchone()

        if not row:
            return None
        logger.debug("Message deleted", extra={"message_id": entity_id})
        return self._to_domain(row)
