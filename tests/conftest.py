"""Shared fixtures for coverage_shortcuts tests.

Provides a file-backed SQLite build store and an in-memory stand-in for
the CircleCI client that serves a fixed build history.
"""

from datetime import datetime, timedelta, timezone

import pytest

from coverage_shortcuts.builds.models import Artifact, Build
from coverage_shortcuts.builds.store import BuildStore
from coverage_shortcuts.ci.client import TransportError

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_build(
    build_num: int,
    outcome: str | None = "success",
    branch: str = "master",
    days_ago: float | None = 1,
    subject: str | None = None,
) -> Build:
    """Create a transient Build as the CI client would return it."""
    start_time = NOW - timedelta(days=days_ago) if days_ago is not None else None
    return Build(
        build_num=build_num,
        outcome=outcome,
        url=f"https://ci.example.com/gh/org/repo/{build_num}",
        subject=subject if subject is not None else f"commit {build_num}",
        branch=branch,
        commit=f"{build_num:040x}",
        parallel=1,
        workflow="test-e2e",
        start_time=start_time,
        archived=False,
    )


class FakeCIClient:
    """CI client serving a fixed, newest-first build history.

    Attributes:
        history: Builds in the order the provider lists them.
        artifacts: Artifact URLs per build number.
        list_builds_calls: (limit, offset) of every list_builds call.
        artifact_calls: Build numbers passed to list_artifacts.
        builds_error: Raised by list_builds when set.
        artifacts_error: Raised by list_artifacts when set.
        fail_after_pages: list_builds fails once this many pages were served.
    """

    def __init__(
        self,
        history: list[Build] | None = None,
        artifacts: dict[int, list[str]] | None = None,
    ) -> None:
        self.history = list(history or [])
        self.artifacts = dict(artifacts or {})
        self.list_builds_calls: list[tuple[int, int]] = []
        self.artifact_calls: list[int] = []
        self.builds_error: Exception | None = None
        self.artifacts_error: Exception | None = None
        self.fail_after_pages: int | None = None

    def list_builds(self, limit: int = 100, offset: int = 0) -> list[Build]:
        if self.builds_error is not None:
            raise self.builds_error
        if (
            self.fail_after_pages is not None
            and len(self.list_builds_calls) >= self.fail_after_pages
        ):
            raise TransportError("connection reset")
        self.list_builds_calls.append((limit, offset))
        return [_copy_build(b) for b in self.history[offset : offset + limit]]

    def list_artifacts(self, build_num: int) -> list[Artifact]:
        self.artifact_calls.append(build_num)
        if self.artifacts_error is not None:
            raise self.artifacts_error
        return [
            Artifact(url=url, build_num=build_num)
            for url in self.artifacts.get(build_num, [])
        ]

    def __enter__(self) -> "FakeCIClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        pass


def _copy_build(build: Build) -> Build:
    return Build(
        build_num=build.build_num,
        outcome=build.outcome,
        url=build.url,
        subject=build.subject,
        branch=build.branch,
        commit=build.commit,
        parallel=build.parallel,
        workflow=build.workflow,
        start_time=build.start_time,
        archived=False,
    )


@pytest.fixture
def db_url(tmp_path):
    """Database URL for a fresh SQLite file in tmp_path."""
    return f"sqlite:///{tmp_path / 'ledger.db'}"


@pytest.fixture
def store(db_url):
    """Create a build store backed by a fresh SQLite file."""
    build_store = BuildStore.from_url(db_url)
    yield build_store
    build_store.session_factory.kw["bind"].dispose()


@pytest.fixture
def fake_ci():
    """Create an empty fake CI client."""
    return FakeCIClient()
