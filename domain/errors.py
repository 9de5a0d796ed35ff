class StorageError(RuntimeError):
    """
    Raised when the underlying store or the connection provider fails.

    Wraps driver-level exceptions (sqlite3 / psycopg2) so the application
    layer never depends on a particular database driver.
    """


class IntegrityViolation(StorageError):
    """
    Raised when a write is rejected by a storage constraint.

    Covers duplicate usernames and messages referencing a missing account.
    """
