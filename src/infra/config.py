"""
Runtime configuration.

Settings are read from the environment (a .env file is loaded first by the
entry points via python-dotenv).

Environment Variables:
- API_FOOTBALL_KEY: API-Football key (placeholder value counts as missing)
- API_FOOTBALL_BASE_URL: API root (default: https://v3.football.api-sports.io)
- API_RATE_LIMIT_PER_MINUTE: Request ceiling per minute (default: 100)
- STORE_BACKEND: "sqlite" or "supabase" (default: sqlite)
- SUPABASE_URL / SUPABASE_SERVICE_KEY: Supabase project credentials
- SQLITE_DB_PATH: Local data store (default: data/football.db)
- SCHEDULER_DB_PATH: Job config + execution log (default: data/scheduler.db)
- NOTIFY_WEBHOOK_URL: Webhook for failure alerts (default: none, log only)
- SYNC_PACE_SECONDS: Pause between leagues in multi-league syncs (default: 2)
- LOG_LEVEL / LOG_DIR: Logging (default: INFO / logs)
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from src.provider.client import DEFAULT_BASE_URL, PLACEHOLDER_KEY


logger = logging.getLogger(__name__)


STORE_BACKENDS = ("sqlite", "supabase")


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    val = os.getenv(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    elif val in ("false", "0", "no", "off"):
        return False
    return default


def _get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    val = os.getenv(key)
    if val is not None:
        try:
            return int(val)
        except ValueError:
            logger.warning(f"[Config] Invalid integer for {key}: {val}, using default: {default}")
    return default


def _get_env_float(key: str, default: float) -> float:
    """Get float value from environment variable."""
    val = os.getenv(key)
    if val is not None:
        try:
            return float(val)
        except ValueError:
            logger.warning(f"[Config] Invalid number for {key}: {val}, using default: {default}")
    return default


@dataclass
class Settings:
    """Process-wide configuration snapshot."""

    api_football_key: Optional[str] = None
    api_football_base_url: str = DEFAULT_BASE_URL
    rate_limit_per_minute: int = 100
    store_backend: str = "sqlite"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    sqlite_db_path: str = "data/football.db"
    scheduler_db_path: str = "data/scheduler.db"
    notify_webhook_url: Optional[str] = None
    sync_pace_seconds: float = 2.0
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_env(cls) -> "Settings":
        backend = os.getenv("STORE_BACKEND", "sqlite").lower()
        if backend not in STORE_BACKENDS:
            logger.warning(f"[Config] Unknown STORE_BACKEND '{backend}', using sqlite")
            backend = "sqlite"

        return cls(
            api_football_key=os.getenv("API_FOOTBALL_KEY") or None,
            api_football_base_url=os.getenv("API_FOOTBALL_BASE_URL", DEFAULT_BASE_URL),
            rate_limit_per_minute=max(1, _get_env_int("API_RATE_LIMIT_PER_MINUTE", 100)),
            store_backend=backend,
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_service_key=os.getenv("SUPABASE_SERVICE_KEY") or None,
            sqlite_db_path=os.getenv("SQLITE_DB_PATH", "data/football.db"),
            scheduler_db_path=os.getenv("SCHEDULER_DB_PATH", "data/scheduler.db"),
            notify_webhook_url=os.getenv("NOTIFY_WEBHOOK_URL") or None,
            sync_pace_seconds=max(0.0, _get_env_float("SYNC_PACE_SECONDS", 2.0)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_dir=os.getenv("LOG_DIR", "logs"),
        )

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_football_key) and self.api_football_key != PLACEHOLDER_KEY

    def describe(self) -> dict:
        """Loggable view with secrets masked."""
        return {
            "api_football_key": "set" if self.has_api_key else "missing",
            "api_football_base_url": self.api_football_base_url,
            "rate_limit_per_minute": self.rate_limit_per_minute,
            "store_backend": self.store_backend,
            "supabase_url": self.supabase_url,
            "sqlite_db_path": self.sqlite_db_path,
            "scheduler_db_path": self.scheduler_db_path,
            "notify_webhook": bool(self.notify_webhook_url),
            "sync_pace_seconds": self.sync_pace_seconds,
        }
