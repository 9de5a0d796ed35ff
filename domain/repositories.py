from __future__ import annotations

from typing import List, Optional, Protocol, TypeVar

from .models import Account, Message

T = TypeVar("T")


class Repository(Protocol[T]):
    """
    Storage contract shared by every entity type.

    Implementations are responsible for:
    - Mapping between database rows and the domain model.
    - Borrowing one connection per call and releasing it on every exit path.
    - Raising `StorageError` when the store itself fails. Absence is never
      an error and is reported as `None`.
    """

    def get(self, entity_id: int) -> Optional[T]:
        """Return the entity with the given ID, or None if not found."""

        ...

    def get_all(self) -> List[T]:
        """Return every stored entity, in no particular order."""

        ...

    def create(self, entity: T) -> T:
        """
        Persist a new entity and return it with its generated ID.

        Any ID already set on `entity` is ignored.
        """

        ...

    def update(self, entity: T) -> T:
        """
        Persist the mutable fields of an existing entity.

        Existence is not checked first; updating a missing ID is a no-op.
        """

        ...

    def delete(self, entity_id: int) -> Optional[T]:
        """Remove the entity and return its last state, or None if absent."""

        ...


class AccountRepository(Repository[Account], Protocol):
    """
    Persistence for accounts.

    Owns password hashing: plaintext on a `create`/`update` input is hashed
    before it reaches storage.
    """

    def find_by_username(self, username: str) -> Optional[Account]:
        """Exact, case-sensitive username lookup."""

        ...


class MessageRepository(Repository[Message], Protocol):
    """
    Persistence for messages.

    `update` writes `message_text` only.
    """

    def find_all_by_author(self, account_id: int) -> List[Message]:
        ...
