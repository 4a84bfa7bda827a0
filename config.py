# config.py
# Role: Environment-driven settings for the finance tracker.
#       Loads the project .env once and exposes a cached Settings instance.

"""
Application configuration.

Values come from environment variables (optionally from a .env file at the
project root). Use get_settings() everywhere instead of reading os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent

load_dotenv(BASE_DIR / ".env")

# Default SQLite location (same place the app always kept it)
DEFAULT_DB_PATH = BASE_DIR / "database" / "finance.db"


def _env_truthy(name: str, default: str = "0") -> bool:
    v = os.getenv(name, default)
    return str(v).strip().lower() in ("1", "true", "yes", "y", "on")


@dataclass(frozen=True)
class Settings:
    """Top-level application configuration container."""

    database_url: str
    sqlalchemy_echo: bool = False
    log_level: str = "INFO"
    default_user_id: str = "local-user"
    pending_batch_ttl_hours: int = 24

    @classmethod
    def from_env(cls) -> "Settings":
        """Load configuration values from environment variables."""

        return cls(
            database_url=os.getenv("DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}"),
            sqlalchemy_echo=_env_truthy("SQLALCHEMY_ECHO", "0"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            default_user_id=os.getenv("DEFAULT_USER_ID", "local-user"),
            pending_batch_ttl_hours=int(os.getenv("PENDING_BATCH_TTL_HOURS", "24")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings.from_env()
