from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional

from application.results import ErrorKind, OperationResult, failure, ok
from domain.errors import IntegrityViolation, StorageError
from domain.models import Message, fits_storage_int
from domain.repositories import AccountRepository, MessageRepository

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 254

STORAGE_FAILURE = "The message store is unavailable."


def _validate_text(text: Optional[str]) -> Optional[str]:
    if not isinstance(text, str) or not text.strip():
        return "Message text must not be blank."
    if len(text) > MAX_MESSAGE_LENGTH:
        return f"Message text must be at most {MAX_MESSAGE_LENGTH} characters."
    return None


def _storage_failure(operation: str) -> OperationResult:
    logger.error("Message storage failure", extra={"operation": operation}, exc_info=True)
    return failure(ErrorKind.STORAGE, STORAGE_FAILURE)


def post_message(
    candidate: Message,
    message_repo: MessageRepository,
    account_repo: AccountRepository,
) -> OperationResult[Message]:
    """
    Publish a new message.

    - The text must be non-blank and shorter than 255 characters.
    - `posted_by` must name an existing account; unknown authors are
      rejected, never created on the fly.
    """

    error = _validate_text(candidate.message_text)
    if error is None and not fits_storage_int(candidate.posted_by):
        error = "Message author does not exist."
    if error is None and not fits_storage_int(candidate.time_posted_epoch):
        error = "Message timestamp is missing or out of range."
    if error:
        logger.info("Message rejected", extra={"reason": error})
        return failure(ErrorKind.VALIDATION, error)

    try:
        if account_repo.get(candidate.posted_by) is None:
            logger.info("Message rejected: unknown author", extra={"posted_by": candidate.posted_by})
            return failure(ErrorKind.VALIDATION, "Message author does not exist.")

        created = message_repo.create(candidate)
    except IntegrityViolation:
        # The author was removed between the lookup and the insert.
        return failure(ErrorKind.VALIDATION, "Message author does not exist.")
    except StorageError:
        return _storage_failure("post")

    return ok(created)


def edit_message(
    message_id: int,
    new_text: str,
    message_repo: MessageRepository,
) -> OperationResult[Message]:
    """
    Replace the text of an existing message.

    Author and timestamp are carried over unchanged.
    """

    error = _validate_text(new_text)
    if error:
        return failure(ErrorKind.VALIDATION, error)
    if not fits_storage_int(message_id):
        return failure(ErrorKind.NOT_FOUND, "Message not found.")

    try:
        existing = message_repo.get(message_id)
        if existing is None:
            return failure(ErrorKind.NOT_FOUND, "Message not found.")
        updated = message_repo.update(replace(existing, message_text=new_text))
    except StorageError:
        return _storage_failure("edit")

    return ok(updated)


def list_messages_by_author(
    account_id: int,
    message_repo: MessageRepository,
) -> OperationResult[List[Message]]:
    """All messages by `account_id`; an unknown author simply has none."""

    if not fits_storage_int(account_id):
        return ok([])

    try:
        return ok(message_repo.find_all_by_author(account_id))
    except StorageError:
        return _storage_failure("list_by_author")


def list_messages(message_repo: MessageRepository) -> OperationResult[List[Message]]:
    try:
        return ok(message_repo.get_all())
    except StorageError:
        return _storage_failure("list")


def get_message(message_id: int, message_repo: MessageRepository) -> OperationResult[Message]:
    """Look up one message; a missing message is a success with no value."""

    if not fits_storage_int(message_id):
        return ok(None)

    try:
        return ok(message_repo.get(message_id))
    except StorageError:
        return _storage_failure("get")


def delete_message(message_id: int, message_repo: MessageRepository) -> OperationResult[Message]:
    """
    Delete a message and return what it held.

    Deleting a message that is already gone is not an error; the result
    just has no value.
    """

    if not fits_storage_int(message_id):
        return ok(None)

    try:
        deleted = message_repo.delete(message_id)
    except StorageError:
        return _storage_failure("delete")

    if deleted is not None:
        logger.info("Message deleted", extra={"message_id": message_id})
    return ok(deleted)
