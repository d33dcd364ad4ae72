"""Shared type definitions for coverage_shortcuts.

This module contains dataclasses, enums, and type aliases shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass, field
from enum import Enum


class RefreshMode(str, Enum):
    """Strategy chosen for bringing the build ledger up to date."""

    BOOTSTRAP = "bootstrap"
    INCREMENTAL = "incremental"


@dataclass
class RefreshPlan:
    """Decision computed from the ledger before a refresh.

    Attributes:
        mode: Bootstrap or incremental refresh.
        cursor: Build number that an incremental refresh walks back to.
            None when a bootstrap is required.
        oldest_unfinished: Smallest unfinished build number in the ledger.
    """

    mode: RefreshMode
    cursor: int | None = None
    oldest_unfinished: int | None = None


@dataclass
class RefreshResult:
    """Outcome of one refresh attempt."""

    mode: RefreshMode
    ingested: int
    cursor: int | None = None
    reached_retention_boundary: bool = False
    build_nums: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class CoverageReport:
    """A coverage report published as a CI artifact.

    Attributes:
        name: Short report name used in links.
        suffix: URL suffix identifying the report's entry page.
        fragment: Anchor appended to the artifact URL when linking.
    """

    name: str
    suffix: str
    fragment: str = ""

    def matches(self, url: str) -> bool:
        """Check whether an artifact URL is this report's entry page."""
        return url.endswith(self.suffix)


__all__ = [
    "CoverageReport",
    "RefreshMode",
    "RefreshPlan",
    "RefreshResult",
]
