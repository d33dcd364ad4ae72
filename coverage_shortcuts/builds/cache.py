"""Write-once artifact cache.

A build's artifacts are fetched live while it runs. The first fetch after
it reaches a terminal outcome is committed to the ledger and the build is
marked archived; from then on its artifacts are served from storage and
the CI provider is never asked again.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coverage_shortcuts.builds.models import Artifact, Build
    from coverage_shortcuts.builds.store import Ledger
    from coverage_shortcuts.ci.client import CIClient

logger = logging.getLogger(__name__)


def cache_artifacts(ledger: Ledger, build_num: int, artifacts: list[Artifact]) -> None:
    """Commit a finished build's artifacts and mark the build archived.

    Artifacts are written before the flag, so an interruption between the
    two steps only costs one redundant fetch later.

    Args:
        ledger: Ledger to write to.
        build_num: Build that owns the artifacts.
        artifacts: Artifacts fetched after the build finished.
    """
    ledger.upsert_artifacts(artifacts)
    ledger.archive_build(build_num)
    logger.info("Cached %d artifacts for build %d", len(artifacts), build_num)


def get_artifacts_with_cache(
    ledger: Ledger,
    client: CIClient,
    build: Build,
) -> list[Artifact]:
    """Get a build's artifacts, from the cache when it is authoritative.

    Args:
        ledger: Ledger holding the cache.
        client: CI client used for live fetches.
        build: Build whose artifacts are wanted.

    Returns:
        Cached artifacts for archived builds; otherwise the live list.

    Raises:
        TransportError: If a live fetch fails.
        DecodeError: If a live response is malformed.
        StoreError: If reading or committing the cache fails.
    """
    if build.archived:
        return ledger.get_artifacts(build.build_num)

    artifacts = client.list_artifacts(build.build_num)

    if build.is_finished:
        cache_artifacts(ledger, build.build_num, artifacts)
    else:
        logger.debug(
            "Build %d still running, not caching %d artifacts",
            build.build_num,
            len(artifacts),
        )

    return artifacts


__all__ = ["cache_artifacts", "get_artifacts_with_cache"]
