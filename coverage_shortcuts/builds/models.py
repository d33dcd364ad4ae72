"""Build ORM models.

This module defines the Build and Artifact models backing the build ledger
and the artifact cache. Table and column names are part of the persisted
state contract and must not change.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    Text,
    TypeDecorator,
    false,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapped, mapped_column

from coverage_shortcuts.db import Base


class IsoDateTime(TypeDecorator[datetime]):
    """Timezone-aware datetime stored as ISO-8601 text in UTC."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return str(value.astimezone(timezone.utc).isoformat())

    def process_result_value(self, value: Any, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


class Build(Base):
    """ORM model for one CI build.

    The build number is assigned by the provider and never reused. All
    columns except ``archived`` mirror provider data and are overwritten on
    every sighting; ``archived`` is local metadata that only ever moves from
    false to true.

    Attributes:
        build_num: Provider build number (primary key).
        url: Build page URL.
        branch: Source branch (``pull/<n>`` for pull requests).
        subject: Commit subject line.
        commit: Source commit SHA.
        parallel: Parallelism of the build.
        workflow: Workflow name.
        start_time: When the build started; None if it never started.
        outcome: Terminal outcome (success, failed, ...); None while running.
        archived: Whether the build's artifacts are committed to the cache.
    """

    __tablename__ = "builds"

    build_num: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False
    )
    url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    branch: Mapped[str] = mapped_column(Text, nullable=False, default="", index=True)
    subject: Mapped[str] = mapped_column(Text, nullable=False, default="")
    commit: Mapped[str] = mapped_column(Text, nullable=False, default="")
    parallel: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    workflow: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime | None] = mapped_column(IsoDateTime, nullable=True)
    outcome: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)

    # Local metadata, never part of an upsert
    archived: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )

    def __repr__(self) -> str:
        """Return string representation of Build."""
        return (
            f"<Build(build_num={self.build_num}, branch='{self.branch}', "
            f"outcome={self.outcome!r}, archived={self.archived})>"
        )

    @property
    def is_finished(self) -> bool:
        """Check if the build has reached a terminal outcome."""
        return self.outcome is not None

    def started_before(self, boundary: datetime) -> bool:
        """Check if the build started strictly before ``boundary``.

        Builds without a start time are never considered older.
        """
        if self.start_time is None:
            return False
        start = self.start_time
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        return start < boundary

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "build_num": self.build_num,
            "url": self.url,
            "branch": self.branch,
            "subject": self.subject,
            "commit": self.commit,
            "parallel": self.parallel,
            "workflow": self.workflow,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "outcome": self.outcome,
            "archived": self.archived,
        }


class Artifact(Base):
    """ORM model for a cached build artifact.

    Only the artifact URL is cached, never its content. Rows are written
    once and never updated.

    Attributes:
        url: Artifact URL (primary key).
        build_num: Owning build number.
    """

    __tablename__ = "artifacts"

    url: Mapped[str] = mapped_column(Text, primary_key=True)
    build_num: Mapped[int] = mapped_column(
        Integer, ForeignKey("builds.build_num"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        """Return string representation of Artifact."""
        return f"<Artifact(build_num={self.build_num}, url='{self.url}')>"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {"url": self.url, "build_num": self.build_num}


__all__ = ["Artifact", "Build", "IsoDateTime"]
