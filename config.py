"""Runtime settings.

Values come from the process environment, optionally seeded from a ``.env``
file through ``python-dotenv``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

BACKENDS = ("sqlite", "postgres")


@dataclass(frozen=True)
class Settings:
    db_backend: str = "sqlite"
    db_path: str = "socialmedia.db"
    database_url: Optional[str] = None
    pool_min_size: int = 1
    pool_max_size: int = 10
    bcrypt_rounds: int = 12
    log_level: str = "INFO"


def _int_var(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.") from None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build `Settings` from `env` (defaults to ``os.environ`` after loading
    ``.env``). Raises `RuntimeError` for missing or malformed values.
    """

    if env is None:
        load_dotenv()
        env = os.environ

    backend = env.get("DB_BACKEND", "sqlite").lower()
    if backend not in BACKENDS:
        raise RuntimeError(f"DB_BACKEND must be one of {', '.join(BACKENDS)}, got {backend!r}.")

    database_url = env.get("DATABASE_URL") or None
    if backend == "postgres" and not database_url:
        raise RuntimeError("DATABASE_URL environment variable is not set.")

    pool_min = _int_var(env, "DB_POOL_MIN", 1)
    pool_max = _int_var(env, "DB_POOL_MAX", 10)
    if pool_min < 1 or pool_max < pool_min:
        raise RuntimeError("DB_POOL_MIN must be >= 1 and DB_POOL_MAX >= DB_POOL_MIN.")

    rounds = _int_var(env, "BCRYPT_ROUNDS", 12)
    if not 4 <= rounds <= 31:
        raise RuntimeError("BCRYPT_ROUNDS must be between 4 and 31.")

    return Settings(
        db_backend=backend,
        db_path=env.get("DB_PATH", "socialmedia.db"),
        database_url=database_url,
        pool_min_size=pool_min,
        pool_max_size=pool_max,
        bcrypt_rounds=rounds,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
