"""Tests for configuration module."""

import json
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from coverage_shortcuts.config import (
    DEFAULT_CI_BASE_URL,
    Settings,
    get_settings,
    print_settings_json,
)


class TestSettings:
    """Test Settings class."""

    def test_default_settings(self) -> None:
        """Settings should have sensible defaults."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings()

        assert "sqlite" in settings.db_url
        assert settings.db_url.endswith("coverage-shortcuts/db.sqlite")
        assert settings.ci_base_url == DEFAULT_CI_BASE_URL
        assert settings.ci_token is None
        assert settings.retention_days == 30
        assert settings.refresh_interval == 15.0
        assert settings.page_size == 100
        assert settings.allow_bootstrap is True
        assert settings.log_level == "INFO"

    def test_settings_from_env(self) -> None:
        """Settings should be loadable from environment variables."""
        with patch.dict(
            os.environ,
            {
                "COV_SHORTCUTS_DB_URL": "sqlite:////tmp/ledger.db",
                "COV_SHORTCUTS_RETENTION_DAYS": "14",
                "COV_SHORTCUTS_REFRESH_INTERVAL": "60",
                "COV_SHORTCUTS_ALLOW_BOOTSTRAP": "false",
                "COV_SHORTCUTS_LOG_LEVEL": "DEBUG",
            },
        ):
            settings = Settings()
            assert settings.db_url == "sqlite:////tmp/ledger.db"
            assert settings.retention_days == 14
            assert settings.refresh_interval == 60.0
            assert settings.allow_bootstrap is False
            assert settings.log_level == "DEBUG"

    def test_page_size_capped(self) -> None:
        """Page size should not exceed what the provider serves."""
        with pytest.raises(ValidationError):
            Settings(page_size=101)

    def test_invalid_log_level(self) -> None:
        """Unknown log levels should be rejected."""
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")


class TestGetSettings:
    """Test get_settings function."""

    def test_returns_settings(self) -> None:
        """get_settings should return a Settings instance."""
        assert isinstance(get_settings(), Settings)


class TestPrintSettingsJson:
    """Test print_settings_json function."""

    def test_outputs_json(self) -> None:
        """Settings JSON should include every field."""
        data = json.loads(print_settings_json(Settings()))
        assert set(data) >= {
            "db_url",
            "ci_base_url",
            "ci_token",
            "github_repo",
            "retention_days",
            "refresh_interval",
            "page_size",
            "allow_bootstrap",
            "request_timeout",
            "log_level",
        }

    def test_redacts_token(self) -> None:
        """The API token must never be printed."""
        data = json.loads(print_settings_json(Settings(ci_token="secret")))
        assert data["ci_token"] == "***"

    def test_no_token_stays_null(self) -> None:
        """A missing token should stay null."""
        with patch.dict(os.environ, {}, clear=True):
            data = json.loads(print_settings_json())
        assert data["ci_token"] is None
