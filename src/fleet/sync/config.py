"""Sync engine configuration loaded from environment variables.

A ``.env`` file in the working directory is loaded first, if present.
"""

import os
from typing import Optional

from dotenv import load_dotenv

from ..api.exceptions import ConfigurationError

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class SyncConfig:
    """Configuration loaded from environment variables."""

    def __init__(self):
        self.database_url: Optional[str] = os.getenv("DATABASE_URL") or None
        self.admin_api_key: Optional[str] = os.getenv("ADMIN_API_KEY") or None
        self.export_base_dir: Optional[str] = os.getenv("EXPORT_BASE_DIR") or None
        self.api_prefix = os.getenv("API_PREFIX", "/api/v1")
        self.cors_origins = [
            o.strip()
            for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
            if o.strip()
        ]
        try:
            self.result_cache_size = int(os.getenv("RESULT_CACHE_SIZE", "1000"))
            self.scheduler_tick_seconds = float(os.getenv("SCHEDULER_TICK_SECONDS", "5"))
            self.scheduler_run_timeout_seconds = float(
                os.getenv("SCHEDULER_RUN_TIMEOUT_SECONDS", "300")
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}", cause=e)
        self.scheduler_enabled = _env_bool("SCHEDULER_ENABLED", "true")
        self.scheduler_requester_mode = os.getenv("SCHEDULER_REQUESTER_MODE", "scheduler").lower()
        self.scheduler_identity = os.getenv("SCHEDULER_IDENTITY", "scheduler")
        self.validate()

    def validate(self) -> None:
        if self.result_cache_size < 1:
            raise ConfigurationError("RESULT_CACHE_SIZE must be positive")
        if self.scheduler_tick_seconds <= 0:
            raise ConfigurationError("SCHEDULER_TICK_SECONDS must be positive")
        if self.scheduler_requester_mode not in ("scheduler", "creator"):
            raise ConfigurationError(
                "SCHEDULER_REQUESTER_MODE must be 'scheduler' or 'creator'",
            )

    def __repr__(self):
        return (
            f"SyncConfig("
            f"database={'set' if self.database_url else 'memory'}, "
            f"admin_key={'set' if self.admin_api_key else 'unset'}, "
            f"base_dir={self.export_base_dir}, "
            f"cache={self.result_cache_size}, "
            f"scheduler={self.scheduler_enabled}/{self.scheduler_tick_seconds}s, "
            f"requester_mode={self.scheduler_requester_mode})"
        )
