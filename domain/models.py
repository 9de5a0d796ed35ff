from dataclasses import dataclass
from typing import Optional


@dataclass
class Account:
    """
    A registered user of the platform.

    `password` holds plaintext only on the way in (a registration or
    password-change candidate). Anything read back from storage carries
    the salted hash, and anything handed out by the application layer
    carries `None`.
    """

    username: str
    password: Optional[str]
    account_id: Optional[int] = None


@dataclass
class Message:
    """
    A message posted by an account.

    `posted_by` and `time_posted_epoch` are fixed at creation; only
    `message_text` can change afterwards.
    """

    posted_by: int
    message_text: str
    time_posted_epoch: int
    message_id: Optional[int] = None


# Widest integer either backend can store (SQLite INTEGER, Postgres BIGINT).
MIN_STORED_INT = -(2**63)
MAX_STORED_INT = 2**63 - 1


def fits_storage_int(value) -> bool:
    """True for a real `int` (not `bool`) that an INTEGER/BIGINT column can hold."""

    return isinstance(value, int) and not isinstance(value, bool) and MIN_STORED_INT <= value <= MAX_STORED_INT
