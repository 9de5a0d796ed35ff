import logging
from typing import Tuple

from config import Settings, load_settings
from domain.repositories import AccountRepository, MessageRepository
from infrastructure.db.account_repository_postgres import PostgresAccountRepository
from infrastructure.db.account_repository_sqlite import SqliteAccountRepository
from infrastructure.db.connection import (
    ConnectionProvider,
    PostgresConnectionProvider,
    SqliteConnectionProvider,
)
from infrastructure.db.message_repository_postgres import PostgresMessageRepository
from infrastructure.db.message_repository_sqlite import SqliteMessageRepository
from logging_config import configure_logging

logger = logging.getLogger("main")


def build_provider(settings: Settings) -> ConnectionProvider:
    if settings.db_backend == "postgres":
        return PostgresConnectionProvider(
            settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
        )
    return SqliteConnectionProvider(settings.db_path)


def build_repositories(
    settings: Settings,
) -> Tuple[ConnectionProvider, AccountRepository, MessageRepository]:
    """Wire the provider and repositories for the configured backend."""

    provider = build_provider(settings)

    # Accounts first: the message table references it.
    if settings.db_backend == "postgres":
        account_repo = PostgresAccountRepository(provider, bcrypt_rounds=settings.bcrypt_rounds)
        message_repo = PostgresMessageRepository(provider)
    else:
        account_repo = SqliteAccountRepository(provider, bcrypt_rounds=settings.bcrypt_rounds)
        message_repo = SqliteMessageRepository(provider)

    return provider, account_repo, message_repo


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)

    provider, account_repo, message_repo = build_repositories(settings)
    logger.info(
        "Storage ready",
        extra={
            "backend": settings.db_backend,
            "accounts": len(account_repo.get_all()),
            "messages": len(message_repo.get_all()),
        },
    )

    if isinstance(provider, PostgresConnectionProvider):
        provider.close()


if __name__ == "__main__":
    main()
