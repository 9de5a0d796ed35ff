from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from application.results import ErrorKind, OperationResult, failure, ok
from domain.errors import IntegrityViolation, StorageError
from domain.models import Account, fits_storage_int
from domain.repositories import AccountRepository
from domain.security import verify_password

logger = logging.getLogger(__name__)

MAX_USERNAME_LENGTH = 254
MIN_PASSWORD_LENGTH = 4
MAX_PASSWORD_LENGTH = 254

INVALID_CREDENTIALS = "Invalid username or password."
STORAGE_FAILURE = "The account store is unavailable."


def _validate_username(username: Optional[str]) -> Optional[str]:
    if not isinstance(username, str) or not username.strip():
        return "Username must not be blank."
    if len(username) > MAX_USERNAME_LENGTH:
        return f"Username must be at most {MAX_USERNAME_LENGTH} characters."
    return None


def _validate_password(password: Optional[str]) -> Optional[str]:
    if not isinstance(password, str) or not password.strip():
        return "Password must not be blank."
    if not MIN_PASSWORD_LENGTH <= len(password) <= MAX_PASSWORD_LENGTH:
        return (
            f"Password must be between {MIN_PASSWORD_LENGTH} and "
            f"{MAX_PASSWORD_LENGTH} characters."
        )
    return None


def _scrubbed(account: Account) -> Account:
    """Copy of `account` that is safe to hand to a caller: no password, no hash."""

    return replace(account, password=None)


def _storage_failure(operation: str) -> OperationResult:
    logger.error("Account storage failure", extra={"operation": operation}, exc_info=True)
    return failure(ErrorKind.STORAGE, STORAGE_FAILURE)


def register_account(candidate: Account, account_repo: AccountRepository) -> OperationResult[Account]:
    """
    Register a new account.

    - Username and password are validated before any storage access.
    - A username that is already taken is a conflict; nothing is written.
    - The stored password is a salted hash; the returned account carries
      neither the plaintext nor the hash.
    """

    error = _validate_username(candidate.username) or _validate_password(candidate.password)
    if error:
        logger.info("Registration rejected", extra={"reason": error})
        return failure(ErrorKind.VALIDATION, error)

    try:
        if account_repo.find_by_username(candidate.username) is not None:
            logger.info("Registration rejected: duplicate username")
            return failure(ErrorKind.CONFLICT, "Username is already taken.")

        created = account_repo.create(candidate)
    except IntegrityViolation:
        # Lost a race with a concurrent registration of the same username.
        logger.info("Registration rejected: duplicate username")
        return failure(ErrorKind.CONFLICT, "Username is already taken.")
    except StorageError:
        return _storage_failure("register")

    logger.info("Account registered", extra={"account_id": created.account_id})
    return ok(_scrubbed(created))


def authenticate_account(
    username: str,
    password: str,
    account_repo: AccountRepository,
) -> OperationResult[Account]:
    """
    Check a username/password pair.

    An unknown username and a wrong password produce the same failure so a
    caller cannot tell which usernames exist.
    """

    if not isinstance(username, str) or not isinstance(password, str) or not username or not password:
        return failure(ErrorKind.CREDENTIAL, INVALID_CREDENTIALS)

    try:
        account = account_repo.find_by_username(username)
    except StorageError:
        return _storage_failure("authenticate")

    if account is None or not verify_password(password, account.password):
        logger.info("Authentication failed")
        return failure(ErrorKind.CREDENTIAL, INVALID_CREDENTIALS)

    return ok(_scrubbed(account))


def change_password(
    account_id: int,
    new_password: str,
    account_repo: AccountRepository,
) -> OperationResult[Account]:
    """Replace an account's password; the new one is hashed on write."""

    error = _validate_password(new_password)
    if error:
        return failure(ErrorKind.VALIDATION, error)
    if not fits_storage_int(account_id):
        return failure(ErrorKind.NOT_FOUND, "Account not found.")

    try:
        existing = account_repo.get(account_id)
        if existing is None:
            return failure(ErrorKind.NOT_FOUND, "Account not found.")
        updated = account_repo.update(replace(existing, password=new_password))
    except StorageError:
        return _storage_failure("change_password")

    return ok(_scrubbed(updated))


def delete_account(account_id: int, account_repo: AccountRepository) -> OperationResult[Account]:
    """
    Remove an account.

    Its messages go with it (the message table cascades on `posted_by`).
    """

    if not fits_storage_int(account_id):
        return failure(ErrorKind.NOT_FOUND, "Account not found.")

    try:
        deleted = account_repo.delete(account_id)
    except StorageError:
        return _storage_failure("delete_account")

    if deleted is None:
        return failure(ErrorKind.NOT_FOUND, "Account not found.")

    logger.info("Account deleted", extra={"account_id": account_id})
    return ok(_scrubbed(deleted))
