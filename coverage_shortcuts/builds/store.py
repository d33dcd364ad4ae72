"""Build ledger and artifact cache storage.

This module provides the ledger operations used by the refresh coordinator,
the artifact cache and the request layer:

- Ledger: the operations interface shared by both handles
- BuildStore: root handle, every call auto-commits in its own session
- LedgerTransaction: handle bound to one session, committed or rolled back
  as a whole by BuildStore.transaction()

Upserts use the dialect's native INSERT ... ON CONFLICT so that re-ingesting
a build never touches its ``archived`` flag.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from coverage_shortcuts.builds.models import Artifact, Build
from coverage_shortcuts.db import (
    create_all_tables,
    get_engine,
    get_session,
    get_session_factory,
)

logger = logging.getLogger(__name__)

# Provider-owned columns refreshed on every sighting of a build
MUTABLE_BUILD_COLUMNS = (
    "outcome",
    "url",
    "subject",
    "branch",
    "commit",
    "parallel",
    "workflow",
    "start_time",
)


class StoreError(Exception):
    """Raised when a ledger read or write fails."""

    def __init__(self, message: str, code: str = "store_error") -> None:
        """Initialize StoreError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


class Ledger(Protocol):
    """Ledger operations shared by the root and transactional handles."""

    def upsert_build(self, build: Build) -> None: ...

    def get_build(self, build_num: int) -> Build | None: ...

    def get_builds_for_branch(self, branch_pattern: str) -> list[Build]: ...

    def get_builds_for_pull(self, pull: int) -> list[Build]: ...

    def oldest_unfinished_build(self) -> Build | None: ...

    def latest_finished_before(self, cursor: Build | None) -> Build | None: ...

    def get_archivable_build(self) -> Build | None: ...

    def unarchived_builds(self) -> list[Build]: ...

    def archive_build(self, build_num: int) -> None: ...

    def upsert_artifacts(self, artifacts: Iterable[Artifact]) -> None: ...

    def get_artifacts(self, build_num: int) -> list[Artifact]: ...


def pull_branch(pull: int) -> str:
    """Return the branch name the provider uses for a pull request."""
    return f"pull/{pull}"


def _insert(session: Session, model: type[Any]) -> Any:
    """Create a dialect-specific INSERT supporting ON CONFLICT."""
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    elif dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    else:
        raise StoreError(
            f"Unsupported database dialect: {dialect}",
            code="unsupported_dialect",
        )
    return insert(model)


def _build_values(build: Build) -> dict[str, Any]:
    """Extract insertable column values from a (possibly transient) Build."""
    return {
        "build_num": build.build_num,
        "outcome": build.outcome,
        "url": build.url or "",
        "subject": build.subject or "",
        "branch": build.branch or "",
        "commit": build.commit or "",
        "parallel": build.parallel if build.parallel is not None else 1,
        "workflow": build.workflow,
        "start_time": build.start_time,
    }


def upsert_build(session: Session, build: Build) -> None:
    """Insert a build or refresh its provider-owned columns.

    Args:
        session: Database session.
        build: Build to upsert; it is never attached to the session.
    """
    stmt = _insert(session, Build).values(**_build_values(build))
    stmt = stmt.on_conflict_do_update(
        index_elements=[Build.build_num],
        set_={column: stmt.excluded[column] for column in MUTABLE_BUILD_COLUMNS},
    )
    session.execute(stmt)


def get_build(session: Session, build_num: int) -> Build | None:
    """Get a build by number, or None if it is not in the ledger."""
    return session.get(Build, build_num)


def get_builds_for_branch(session: Session, branch_pattern: str) -> list[Build]:
    """List builds whose branch matches a SQL LIKE pattern, newest first.

    Args:
        session: Database session.
        branch_pattern: LIKE pattern; a plain branch name matches exactly.

    Returns:
        Matching builds ordered by build number descending.
    """
    stmt = (
        select(Build)
        .where(Build.branch.like(branch_pattern))
        .order_by(Build.build_num.desc())
    )
    return list(session.execute(stmt).scalars().all())


def oldest_unfinished_build(session: Session) -> Build | None:
    """Get the build with the smallest number that has no outcome yet."""
    stmt = (
        select(Build)
        .where(Build.outcome.is_(None))
        .order_by(Build.build_num.asc())
        .limit(1)
    )
    return session.execute(stmt).scalars().first()


def latest_finished_before(session: Session, cursor: Build | None) -> Build | None:
    """Get the newest finished build, optionally older than ``cursor``.

    Args:
        session: Database session.
        cursor: If given, only builds with a strictly smaller number qualify.

    Returns:
        Build instance or None.
    """
    stmt = select(Build).where(Build.outcome.is_not(None))
    if cursor is not None:
        stmt = stmt.where(Build.build_num < cursor.build_num)
    stmt = stmt.order_by(Build.build_num.desc()).limit(1)
    return session.execute(stmt).scalars().first()


def get_archivable_build(session: Session) -> Build | None:
    """Get the newest finished build whose artifacts are not cached yet."""
    stmt = (
        select(Build)
        .where(Build.outcome.is_not(None), Build.archived.is_(False))
        .order_by(Build.build_num.desc())
        .limit(1)
    )
    return session.execute(stmt).scalars().first()


def unarchived_builds(session: Session) -> list[Build]:
    """List every build not yet archived, newest first."""
    stmt = (
        select(Build).where(Build.archived.is_(False)).order_by(Build.build_num.desc())
    )
    return list(session.execute(stmt).scalars().all())


def archive_build(session: Session, build_num: int) -> None:
    """Mark a build's artifacts as cached. No-op if the build is unknown."""
    session.execute(
        update(Build).where(Build.build_num == build_num).values(archived=True)
    )


def upsert_artifacts(session: Session, artifacts: Iterable[Artifact]) -> None:
    """Insert artifacts, ignoring URLs that are already cached.

    Args:
        session: Database session.
        artifacts: Artifacts to cache; an empty input is a no-op.
    """
    rows = [{"url": a.url, "build_num": a.build_num} for a in artifacts]
    if not rows:
        return
    stmt = _insert(session, Artifact).values(rows)
    stmt = stmt.on_conflict_do_nothing(index_elements=[Artifact.url])
    session.execute(stmt)


def get_artifacts(session: Session, build_num: int) -> list[Artifact]:
    """List the cached artifacts of a build."""
    stmt = (
        select(Artifact)
        .where(Artifact.build_num == build_num)
        .order_by(Artifact.url)
    )
    return list(session.execute(stmt).scalars().all())


class LedgerTransaction:
    """Ledger handle bound to a single session.

    Nothing written through this handle is visible to other connections
    until the enclosing BuildStore.transaction() block exits cleanly.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def upsert_build(self, build: Build) -> None:
        upsert_build(self.session, build)

    def get_build(self, build_num: int) -> Build | None:
        return get_build(self.session, build_num)

    def get_builds_for_branch(self, branch_pattern: str) -> list[Build]:
        return get_builds_for_branch(self.session, branch_pattern)

    def get_builds_for_pull(self, pull: int) -> list[Build]:
        return get_builds_for_branch(self.session, pull_branch(pull))

    def oldest_unfinished_build(self) -> Build | None:
        return oldest_unfinished_build(self.session)

    def latest_finished_before(self, cursor: Build | None) -> Build | None:
        return latest_finished_before(self.session, cursor)

    def get_archivable_build(self) -> Build | None:
        return get_archivable_build(self.session)

    def unarchived_builds(self) -> list[Build]:
        return unarchived_builds(self.session)

    def archive_build(self, build_num: int) -> None:
        archive_build(self.session, build_num)

    def upsert_artifacts(self, artifacts: Iterable[Artifact]) -> None:
        upsert_artifacts(self.session, artifacts)

    def get_artifacts(self, build_num: int) -> list[Artifact]:
        return get_artifacts(self.session, build_num)


class BuildStore:
    """Root ledger handle.

    Each operation runs in its own short-lived session and commits on
    return. Use transaction() to batch several operations atomically.
    Returned builds and artifacts are detached but fully loaded.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    @classmethod
    def from_url(cls, db_url: str | None = None) -> BuildStore:
        """Create a store for a database URL, creating tables if needed.

        Args:
            db_url: Database URL. If not provided, uses settings default.

        Returns:
            Initialized BuildStore.
        """
        engine = get_engine(db_url)
        create_all_tables(engine)
        return cls(get_session_factory(engine))

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a committed session, wrapping database failures."""
        try:
            with get_session(self.session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            raise StoreError(f"Database operation failed: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[LedgerTransaction]:
        """Run ledger operations in one atomic transaction.

        Commits when the block exits cleanly; any exception, including
        ones raised by non-database code inside the block, rolls back
        every write made through the yielded handle.

        Yields:
            LedgerTransaction bound to the transaction's session.
        """
        with self.session_scope() as session:
            yield LedgerTransaction(session)

    def upsert_build(self, build: Build) -> None:
        with self.session_scope() as session:
            upsert_build(session, build)

    def get_build(self, build_num: int) -> Build | None:
        with self.session_scope() as session:
            return get_build(session, build_num)

    def get_builds_for_branch(self, branch_pattern: str) -> list[Build]:
        with self.session_scope() as session:
            return get_builds_for_branch(session, branch_pattern)

    def get_builds_for_pull(self, pull: int) -> list[Build]:
        with self.session_scope() as session:
            return get_builds_for_branch(session, pull_branch(pull))

    def oldest_unfinished_build(self) -> Build | None:
        with self.session_scope() as session:
            return oldest_unfinished_build(session)

    def latest_finished_before(self, cursor: Build | None) -> Build | None:
        with self.session_scope() as session:
            return latest_finished_before(session, cursor)

    def get_archivable_build(self) -> Build | None:
        with self.session_scope() as session:
            return get_archivable_build(session)

    def unarchived_builds(self) -> list[Build]:
        with self.session_scope() as session:
            return unarchived_builds(session)

    def archive_build(self, build_num: int) -> None:
        with self.session_scope() as session:
            archive_build(session, build_num)
        logger.debug("Archived build %d", build_num)

    def upsert_artifacts(self, artifacts: Iterable[Artifact]) -> None:
        with self.session_scope() as session:
            upsert_artifacts(session, artifacts)

    def get_artifacts(self, build_num: int) -> list[Artifact]:
        with self.session_scope() as session:
            return get_artifacts(session, build_num)


__all__ = [
    "MUTABLE_BUILD_COLUMNS",
    "BuildStore",
    "Ledger",
    "LedgerTransaction",
    "StoreError",
    "archive_build",
    "get_archivable_build",
    "get_artifacts",
    "get_build",
    "get_builds_for_branch",
    "latest_finished_before",
    "oldest_unfinished_build",
    "pull_branch",
    "unarchived_builds",
    "upsert_artifacts",
    "upsert_build",
]
