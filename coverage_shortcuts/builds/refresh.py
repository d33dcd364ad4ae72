"""Build ledger refresh.

This module keeps the build ledger in step with the CI provider:
- plan_refresh(): decide between bootstrap and incremental refresh
- bootstrap_builds(): walk history back to the artifact retention window
- refresh_builds(): ingest builds newer than a known finished build
- refresh_ledger(): main entry point, runs the chosen walk atomically

The decision is recomputed from the ledger on every attempt. The cursor is
the newest finished build older than every unfinished build, so any build
that was still running at the last refresh is seen again and its outcome
updated.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from coverage_shortcuts.types import RefreshMode, RefreshPlan, RefreshResult

if TYPE_CHECKING:
    from coverage_shortcuts.builds.store import BuildStore, Ledger
    from coverage_shortcuts.ci.client import CIClient

logger = logging.getLogger(__name__)

# Provider artifact retention; older builds have nothing left to link to
RETENTION_DAYS = 30

PAGE_SIZE = 100

# Bootstrap progress is logged each time this many more builds are ingested
PROGRESS_EVERY = 1000


class ConsistencyError(Exception):
    """Raised when a refresh runs out of builds before reaching its cursor."""

    def __init__(self, message: str, code: str = "consistency_error") -> None:
        """Initialize ConsistencyError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


class BootstrapRequiredError(Exception):
    """Raised when the ledger needs a bootstrap that was not allowed."""

    def __init__(
        self,
        message: str = "Build ledger needs a bootstrap",
        code: str = "bootstrap_required",
    ) -> None:
        """Initialize BootstrapRequiredError.

        Args:
            message: Error description.
            code: Error code for structured error handling.
        """
        super().__init__(message)
        self.code = code


def plan_refresh(ledger: Ledger) -> RefreshPlan:
    """Decide how to bring the ledger up to date.

    Args:
        ledger: Ledger to inspect.

    Returns:
        RefreshPlan; BOOTSTRAP when no finished build precedes the oldest
        unfinished one (including an empty ledger), INCREMENTAL otherwise.
    """
    oldest = ledger.oldest_unfinished_build()
    cursor = ledger.latest_finished_before(oldest)
    oldest_num = oldest.build_num if oldest is not None else None

    if cursor is None:
        return RefreshPlan(mode=RefreshMode.BOOTSTRAP, oldest_unfinished=oldest_num)
    return RefreshPlan(
        mode=RefreshMode.INCREMENTAL,
        cursor=cursor.build_num,
        oldest_unfinished=oldest_num,
    )


def bootstrap_builds(
    ledger: Ledger,
    client: CIClient,
    retention_days: int = RETENTION_DAYS,
    page_size: int = PAGE_SIZE,
    now: datetime | None = None,
) -> RefreshResult:
    """Ingest every build still inside the artifact retention window.

    Pages through the provider from the newest build and stops at an empty
    page or at the first build that started before the retention boundary,
    which is not ingested.

    Args:
        ledger: Ledger to write to (normally a transaction handle).
        client: CI client.
        retention_days: Artifact retention window in days.
        page_size: Builds per page.
        now: Reference time; defaults to the current UTC time.

    Returns:
        RefreshResult with the number of builds ingested.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    boundary = now - timedelta(days=retention_days)

    logger.info("Bootstrapping build ledger, this may take a while...")

    ingested: list[int] = []
    reported = 0
    reached_boundary = False
    offset = 0

    while not reached_boundary:
        builds = client.list_builds(limit=page_size, offset=offset)
        if not builds:
            break

        for build in builds:
            if build.started_before(boundary):
                logger.info(
                    "Stopping at build %d: started before the %d-day "
                    "artifact retention window",
                    build.build_num,
                    retention_days,
                )
                reached_boundary = True
                break
            ledger.upsert_build(build)
            ingested.append(build.build_num)

        if len(ingested) >= reported + PROGRESS_EVERY:
            reported = len(ingested)
            logger.info("%d builds found so far...", reported)
        offset += len(builds)

    logger.info("Bootstrap complete, %d builds found", len(ingested))
    return RefreshResult(
        mode=RefreshMode.BOOTSTRAP,
        ingested=len(ingested),
        reached_retention_boundary=reached_boundary,
        build_nums=ingested,
    )


def refresh_builds(
    ledger: Ledger,
    client: CIClient,
    after_build_num: int,
    page_size: int = PAGE_SIZE,
) -> RefreshResult:
    """Ingest every build newer than ``after_build_num``.

    Relies on the provider listing builds newest first: the walk stops at
    the first build number at or below the cursor.

    Args:
        ledger: Ledger to write to (normally a transaction handle).
        client: CI client.
        after_build_num: Cursor; only strictly newer builds are ingested.
        page_size: Builds per page.

    Returns:
        RefreshResult with the build numbers ingested.

    Raises:
        ConsistencyError: If the provider runs out of builds first.
    """
    ingested: list[int] = []
    offset = 0

    while True:
        builds = client.list_builds(limit=page_size, offset=offset)
        if not builds:
            raise ConsistencyError(
                f"Ran out of builds after offset {offset} before reaching "
                f"build {after_build_num}"
            )
        for build in builds:
            if build.build_num <= after_build_num:
                logger.debug(
                    "Refreshed %d builds newer than %d",
                    len(ingested),
                    after_build_num,
                )
                return RefreshResult(
                    mode=RefreshMode.INCREMENTAL,
                    ingested=len(ingested),
                    cursor=after_build_num,
                    build_nums=ingested,
                )
            ledger.upsert_build(build)
            ingested.append(build.build_num)
        offset += len(builds)


def refresh_ledger(
    store: BuildStore,
    client: CIClient,
    allow_bootstrap: bool = False,
    retention_days: int = RETENTION_DAYS,
    page_size: int = PAGE_SIZE,
    now: datetime | None = None,
) -> RefreshResult:
    """Bring the ledger up to date in a single transaction.

    This is the main entry point for ledger maintenance. It plans the
    refresh from the current ledger and runs the chosen walk; any failure
    rolls back every write of the attempt.

    Args:
        store: Build store.
        client: CI client.
        allow_bootstrap: Permit the potentially long historical walk.
        retention_days: Artifact retention window in days.
        page_size: Builds per page.
        now: Reference time for the retention boundary.

    Returns:
        RefreshResult describing what was ingested.

    Raises:
        BootstrapRequiredError: If a bootstrap is needed but not allowed.
        ConsistencyError: If an incremental refresh runs out of builds.
        TransportError: If a CI request fails.
        DecodeError: If a CI response is malformed.
        StoreError: If a ledger write fails.
    """
    with store.transaction() as tx:
        plan = plan_refresh(tx)

        if plan.mode is RefreshMode.BOOTSTRAP:
            if not allow_bootstrap:
                raise BootstrapRequiredError(
                    "Build ledger has no finished builds and needs a bootstrap"
                )
            return bootstrap_builds(
                tx,
                client,
                retention_days=retention_days,
                page_size=page_size,
                now=now,
            )

        if plan.cursor is None:
            raise ConsistencyError(
                "Incremental refresh planned without a cursor build"
            )
        return refresh_builds(tx, client, plan.cursor, page_size=page_size)


__all__ = [
    "BootstrapRequiredError",
    "ConsistencyError",
    "PAGE_SIZE",
    "PROGRESS_EVERY",
    "RETENTION_DAYS",
    "bootstrap_builds",
    "plan_refresh",
    "refresh_builds",
    "refresh_ledger",
]
