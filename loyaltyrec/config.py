"""Runtime configuration for LoyaltyRec.

Settings are read from environment variables, optionally seeded from a
``.env`` file in the working directory. Algorithm defaults live next to the
code that uses them; this module only covers deployment concerns.
"""

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

# Configure module logger
logger = logging.getLogger(__name__)

# Environment variable prefix
ENV_PREFIX = "LOYALTYREC_"

DEFAULT_DATABASE_URL = "sqlite:///./loyaltyrec.db"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_BASKET_WINDOW_MINUTES = 5
DEFAULT_TRANSACTION_LIMIT = 100000
DEFAULT_SCHEDULE_INTERVAL_DAYS = 14


def _env(name: str, default: str) -> str:
    return os.environ.get(f"{ENV_PREFIX}{name}", default)


def _env_int(name: str, default: int) -> int:
    raw = _env(name, str(default))
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            f"Invalid integer for {ENV_PREFIX}{name}: {raw!r}, using {default}"
        )
        return default


@dataclass(frozen=True)
class Settings:
    """Deployment settings.

    Attributes:
        database_url: SQLAlchemy URL of the backing relational store.
        log_level: Root logging level for the API process.
        basket_window_minutes: Width of the time bucket used for synthetic
            basket keys when a transaction has no reference number.
        transaction_limit: Maximum number of transaction lines read per run.
        schedule_interval_days: Interval of the scheduled batch recompute.
    """

    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = DEFAULT_LOG_LEVEL
    basket_window_minutes: int = DEFAULT_BASKET_WINDOW_MINUTES
    transaction_limit: int = DEFAULT_TRANSACTION_LIMIT
    schedule_interval_days: int = DEFAULT_SCHEDULE_INTERVAL_DAYS

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment and ``.env``."""
        load_dotenv()
        return cls(
            database_url=_env("DATABASE_URL", DEFAULT_DATABASE_URL),
            log_level=_env("LOG_LEVEL", DEFAULT_LOG_LEVEL),
            basket_window_minutes=_env_int(
                "BASKET_WINDOW_MINUTES", DEFAULT_BASKET_WINDOW_MINUTES
            ),
            transaction_limit=_env_int(
                "TRANSACTION_LIMIT", DEFAULT_TRANSACTION_LIMIT
            ),
            schedule_interval_days=_env_int(
                "SCHEDULE_INTERVAL_DAYS", DEFAULT_SCHEDULE_INTERVAL_DAYS
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings.from_env()
