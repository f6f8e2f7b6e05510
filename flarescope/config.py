"""Runtime configuration: env-driven.

Centralized settings using pydantic-settings.  Reads from a .env file and
FLARESCOPE_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from flarescope.models.state import StateLayout


class ScopeSettings(BaseSettings):
    """Flarescope settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export FLARESCOPE_PORT=9000
        export FLARESCOPE_LOG_LEVEL=DEBUG
        export FLARESCOPE_STATE_DIR=/work/app/.wrangler/state/v3

    Nested layout values use a double underscore::

        export FLARESCOPE_LAYOUT__DB_SUFFIX=.db
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="FLARESCOPE_",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    log_level: str = "INFO"
    debug: bool = False

    # Dashboard API
    host: str = "127.0.0.1"
    port: int = 8788
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:5174",
    ]

    # Host-side actor storage listener (0 picks a free port)
    storage_host: str = "127.0.0.1"
    storage_port: int = 0

    # SQLite lock contention window
    busy_timeout_ms: int = 5000

    # State discovery
    state_dir: Path | None = None
    max_parent_hops: int = 5
    layout: StateLayout = StateLayout()

    # Bridges
    actor_storage_url: str | None = None
    runtime_url: str | None = None
    bridge_timeout_seconds: float = 30.0
    bridge_connect_timeout_seconds: float = 2.0


# Module-level singleton, import as `from flarescope.config import settings`
settings = ScopeSettings()
