"""Tests for the CLI.

These tests run commands against a temporary SQLite ledger with the CI
client replaced by a fake, so no network access is needed.
"""

import json
from unittest.mock import patch

import pytest
from conftest import FakeCIClient, make_build
from typer.testing import CliRunner

from coverage_shortcuts import __version__
from coverage_shortcuts import cli as cli_module
from coverage_shortcuts.builds.store import BuildStore
from coverage_shortcuts.ci.client import TransportError
from coverage_shortcuts.cli import app

runner = CliRunner()

HARNESS = "https://3-1-gh.example.com/0/cov-html/harness/index.html"


@pytest.fixture
def env(db_url):
    """Point the CLI at a temporary database."""
    with patch.dict("os.environ", {"COV_SHORTCUTS_DB_URL": db_url}):
        yield db_url


@pytest.fixture
def ci(monkeypatch):
    """Replace the CLI's CI client with a fake."""
    fake = FakeCIClient(artifacts={3: [HARNESS]})
    monkeypatch.setattr(cli_module, "_open_client", lambda: fake)
    return fake


@pytest.fixture
def ledger(env):
    """A ledger with three builds of pull/9, the middle one still running."""
    store = BuildStore.from_url(env)
    store.upsert_build(make_build(1, branch="pull/9"))
    store.upsert_build(make_build(2, outcome=None, branch="pull/9"))
    store.upsert_build(make_build(3, branch="pull/9"))
    return store


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Coverage Shortcuts" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """CLI -V should print version and exit 0."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.output


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command(self, env) -> None:
        """CLI config should show every section."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "Storage:" in result.stdout
        assert "CI provider:" in result.stdout
        assert "Synchronization:" in result.stdout
        assert "Operational:" in result.stdout

    def test_config_json_redacts_token(self, env) -> None:
        """CLI config --json should hide the API token."""
        with patch.dict("os.environ", {"COV_SHORTCUTS_CI_TOKEN": "secret"}):
            result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["ci_token"] == "***"
        assert data["db_url"] == env


class TestCLIRefresh:
    """Test CLI refresh command."""

    def test_refresh_requires_bootstrap_flag(self, env, ci) -> None:
        """An empty ledger should not be bootstrapped without --bootstrap."""
        ci.history = [make_build(1, days_ago=None)]
        result = runner.invoke(app, ["refresh"])
        assert result.exit_code == 1
        assert "--bootstrap" in result.stdout

    def test_refresh_bootstrap_json(self, env, ci) -> None:
        """refresh --bootstrap --json should report what was ingested."""
        ci.history = [make_build(n, days_ago=None) for n in (3, 2, 1)]
        result = runner.invoke(app, ["refresh", "--bootstrap", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["mode"] == "bootstrap"
        assert data["ingested"] == 3

    def test_refresh_incremental(self, ledger, ci) -> None:
        """A populated ledger should be refreshed incrementally."""
        ci.history = [make_build(n, branch="pull/9") for n in (4, 3, 2, 1)]
        result = runner.invoke(app, ["refresh"])
        assert result.exit_code == 0
        assert "Incremental refresh complete" in result.stdout

    def test_refresh_failure(self, ledger, ci) -> None:
        """A CI failure should print an error and exit 1."""
        ci.builds_error = TransportError("down")
        result = runner.invoke(app, ["refresh"])
        assert result.exit_code == 1
        assert "network_error" in result.stdout


class TestCLIArchive:
    """Test CLI archive command."""

    def test_archive(self, ledger, ci) -> None:
        """archive should cache every finished build."""
        result = runner.invoke(app, ["archive"])
        assert result.exit_code == 0
        assert "Archived 2 build(s)" in result.stdout
        assert ledger.get_build(3).archived is True
        assert ledger.get_build(2).archived is False

    def test_archive_failure(self, ledger, ci) -> None:
        """archive should exit 1 when a build could not be archived."""
        ci.artifacts_error = TransportError("down")
        result = runner.invoke(app, ["archive"])
        assert result.exit_code == 1
        assert "still archivable" in result.stdout


class TestCLIBuilds:
    """Test CLI builds commands."""

    def test_builds_show_json(self, ledger) -> None:
        """builds show --json should print the ledger row."""
        result = runner.invoke(app, ["builds", "show", "3", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["build_num"] == 3
        assert data["branch"] == "pull/9"

    def test_builds_show_not_found(self, env) -> None:
        """builds show should exit 1 for unknown builds."""
        result = runner.invoke(app, ["builds", "show", "404"])
        assert result.exit_code == 1
        assert "Build not found" in result.stdout

    def test_builds_unarchived_json(self, ledger) -> None:
        """builds unarchived --json should list builds newest first."""
        result = runner.invoke(app, ["builds", "unarchived", "--json"])
        assert result.exit_code == 0
        assert [b["build_num"] for b in json.loads(result.stdout)] == [3, 2, 1]

    def test_builds_unarchived_empty(self, env) -> None:
        """builds unarchived should say so when everything is archived."""
        result = runner.invoke(app, ["builds", "unarchived"])
        assert result.exit_code == 0
        assert "All builds are archived" in result.stdout

    def test_builds_artifacts_json(self, ledger, ci) -> None:
        """builds artifacts --json should list and cache a finished build."""
        result = runner.invoke(app, ["builds", "artifacts", "3", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == [{"url": HARNESS, "build_num": 3}]
        assert ledger.get_build(3).archived is True


class TestCLIPull:
    """Test CLI pull command."""

    def test_pull_json(self, ledger, ci) -> None:
        """pull --json should map report names to URLs."""
        result = runner.invoke(app, ["pull", "9", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["pull"] == 9
        assert data["reports"]["harness"] == HARNESS
        assert data["reports"]["webui"] is None

    def test_pull_text(self, ledger, ci) -> None:
        """pull should list ready and missing reports."""
        result = runner.invoke(app, ["pull", "9"])
        assert result.exit_code == 0
        assert "pull/9" in result.stdout
        assert "(not ready)" in result.stdout

    def test_pull_failure(self, ledger, ci) -> None:
        """A CI failure should print an error and exit 1."""
        ci.artifacts_error = TransportError("down")
        result = runner.invoke(app, ["pull", "9"])
        assert result.exit_code == 1
        assert "Lookup failed" in result.stdout
