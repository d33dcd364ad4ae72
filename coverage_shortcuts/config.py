"""Configuration settings for coverage_shortcuts.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

import json
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CI_BASE_URL = (
    "https://circleci.com/api/v1.1/project/github/determined-ai/determined"
)


def _default_db_url() -> str:
    """Return the default database URL (SQLite)."""
    db_path = Path.home() / ".local" / "share" / "coverage-shortcuts" / "db.sqlite"
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the COV_SHORTCUTS_
    prefix. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="COV_SHORTCUTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    db_url: str = Field(
        default_factory=_default_db_url,
        description="Database connection URL",
    )

    # CI provider
    ci_base_url: str = Field(
        default=DEFAULT_CI_BASE_URL,
        description="CircleCI v1.1 project API URL",
    )
    ci_token: str | None = Field(
        default=None,
        description="Optional CircleCI API token (sent as Circle-Token)",
    )
    github_repo: str = Field(
        default="determined-ai/determined",
        description="GitHub owner/repo used when linking pull requests",
    )

    # Synchronization
    retention_days: int = Field(
        default=30,
        ge=1,
        description="Days the provider keeps artifacts; bootstrap stops here",
    )
    refresh_interval: float = Field(
        default=15.0,
        gt=0,
        description="Seconds between incremental build refreshes",
    )
    page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Builds requested per list-builds page",
    )
    allow_bootstrap: bool = Field(
        default=True,
        description="Allow the startup refresh to bootstrap an empty ledger",
    )

    # Operational
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for CI provider requests (seconds)",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON, with the API token redacted.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    data = settings.model_dump(mode="json")
    if data.get("ci_token"):
        data["ci_token"] = "***"
    return json.dumps(data, indent=2)


__all__ = ["DEFAULT_CI_BASE_URL", "Settings", "get_settings", "print_settings_json"]
