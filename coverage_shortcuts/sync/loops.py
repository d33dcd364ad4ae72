"""Background synchronization loops.

Two long-lived threads keep the artifact cache ahead of the provider's
retention window:

- BuildRefresher: every ``interval`` seconds, incrementally refreshes the
  build ledger, then wakes the archiver (also after a failed refresh).
- ArtifactArchiver: drains finished, unarchived builds newest first,
  caching their artifacts; blocks on the wake signal once nothing is left.

Neither loop retries a failed step itself. A failure is logged and the
loop waits for its next trigger.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from coverage_shortcuts.builds.cache import cache_artifacts
from coverage_shortcuts.builds.refresh import (
    PAGE_SIZE,
    RETENTION_DAYS,
    BootstrapRequiredError,
    ConsistencyError,
    refresh_ledger,
)
from coverage_shortcuts.builds.store import StoreError
from coverage_shortcuts.ci.client import CIClientError
from coverage_shortcuts.sync.signal import WakeSignal

if TYPE_CHECKING:
    from coverage_shortcuts.builds.models import Build
    from coverage_shortcuts.builds.store import BuildStore
    from coverage_shortcuts.ci.client import CIClient
    from coverage_shortcuts.config import Settings
    from coverage_shortcuts.types import RefreshResult

logger = logging.getLogger(__name__)

# Refresh poll interval (seconds)
REFRESH_INTERVAL = 15.0

# Expected failures of one loop step; anything else is logged with a traceback
SYNC_ERRORS = (
    CIClientError,
    StoreError,
    ConsistencyError,
    BootstrapRequiredError,
)


class _LoopThread(ABC):
    """Owns the single thread a loop runs on."""

    name = "loop"

    def __init__(self) -> None:
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @abstractmethod
    def run(self) -> None:
        """Loop body; returns once the stop event is set."""

    def start(self) -> None:
        """Start the loop on a daemon thread."""
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, daemon=True, name=self.name)
        self._thread.start()
        logger.info("Started %s", self.name)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Signal the loop to stop and wait for its thread.

        If the thread outlives ``timeout`` it is kept, so ``running`` stays
        true until the current step returns.
        """
        self._stop.set()
        self._interrupt()
        if self._thread is None:
            return
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("%s did not stop within %ss", self.name, timeout)
            return
        self._thread = None
        logger.info("Stopped %s", self.name)

    def _interrupt(self) -> None:
        pass

    @property
    def running(self) -> bool:
        """Whether the loop thread is alive."""
        return self._thread is not None and self._thread.is_alive()


class BuildRefresher(_LoopThread):
    """Periodically refreshes the build ledger and wakes the archiver.

    Args:
        store: Build store.
        client: CI client.
        wake: Signal shared with the archiver.
        interval: Seconds to sleep between refreshes.
        page_size: Builds per list-builds page.
        retention_days: Artifact retention window in days.
    """

    name = "build-refresher"

    def __init__(
        self,
        store: BuildStore,
        client: CIClient,
        wake: WakeSignal,
        interval: float = REFRESH_INTERVAL,
        page_size: int = PAGE_SIZE,
        retention_days: int = RETENTION_DAYS,
    ) -> None:
        super().__init__()
        self.store = store
        self.client = client
        self.wake = wake
        self.interval = interval
        self.page_size = page_size
        self.retention_days = retention_days

    def refresh_once(self) -> RefreshResult | None:
        """Run one incremental refresh and wake the archiver.

        Bootstrap is never attempted here; it happens once at startup.

        Returns:
            RefreshResult on success, None if the refresh failed.
        """
        logger.info("Refreshing builds")
        try:
            result = refresh_ledger(
                self.store,
                self.client,
                allow_bootstrap=False,
                retention_days=self.retention_days,
                page_size=self.page_size,
            )
        except SYNC_ERRORS as e:
            logger.error("Build refresh failed (%s): %s", e.code, e)
            return None
        except Exception:
            logger.exception("Unexpected error refreshing builds")
            return None
        finally:
            self.wake.notify()

        logger.info(
            "Refreshed builds: %d new or updated since build %s",
            result.ingested,
            result.cursor,
        )
        return result

    def run(self) -> None:
        """Sleep, refresh, repeat until stopped."""
        while not self._stop.wait(self.interval):
            self.refresh_once()


class ArtifactArchiver(_LoopThread):
    """Drains finished builds into the artifact cache.

    Args:
        store: Build store.
        client: CI client.
        wake: Signal posted by the refresher.
    """

    name = "artifact-archiver"

    def __init__(self, store: BuildStore, client: CIClient, wake: WakeSignal) -> None:
        super().__init__()
        self.store = store
        self.client = client
        self.wake = wake

    def archive_next(self) -> Build | None:
        """Cache the artifacts of the newest archivable build.

        Returns:
            The archived build, or None if no build is archivable.

        Raises:
            TransportError: If fetching artifacts fails.
            DecodeError: If the artifact list is malformed.
            StoreError: If reading or writing the ledger fails.
        """
        build = self.store.get_archivable_build()
        if build is None:
            return None

        logger.info("Fetching artifacts for build %d", build.build_num)
        artifacts = self.client.list_artifacts(build.build_num)
        cache_artifacts(self.store, build.build_num, artifacts)
        return build

    def drain(self) -> int:
        """Archive builds until none is left or a step fails.

        Returns:
            Number of builds archived during this pass.
        """
        archived = 0
        last_build_num: int | None = None
        while not self._stop.is_set():
            try:
                build = self.archive_next()
            except SYNC_ERRORS as e:
                logger.error("Artifact archiving failed (%s): %s", e.code, e)
                break
            except Exception:
                logger.exception("Unexpected error archiving artifacts")
                break

            if build is None:
                break
            if build.build_num == last_build_num:
                # archive_build() must have matched no row
                logger.warning(
                    "Build %d is still archivable after archiving, pausing",
                    build.build_num,
                )
                break
            last_build_num = build.build_num
            archived += 1

        if archived:
            logger.info("Archived %d builds", archived)
        return archived

    def run(self) -> None:
        """Drain, block until woken, repeat until stopped."""
        while not self._stop.is_set():
            self.drain()
            self.wake.wait()

    def _interrupt(self) -> None:
        self.wake.notify()


class SyncService:
    """Owns both sync loops and the signal that links them.

    The ledger must already be bootstrapped (see refresh_ledger) before
    start() is called.

    Args:
        store: Build store shared by both loops.
        client: CI client shared by both loops.
        interval: Refresh poll interval in seconds.
        page_size: Builds per list-builds page.
        retention_days: Artifact retention window in days.
    """

    def __init__(
        self,
        store: BuildStore,
        client: CIClient,
        interval: float = REFRESH_INTERVAL,
        page_size: int = PAGE_SIZE,
        retention_days: int = RETENTION_DAYS,
    ) -> None:
        self.wake = WakeSignal()
        self.refresher = BuildRefresher(
            store,
            client,
            self.wake,
            interval=interval,
            page_size=page_size,
            retention_days=retention_days,
        )
        self.archiver = ArtifactArchiver(store, client, self.wake)

    @classmethod
    def from_settings(
        cls, store: BuildStore, client: CIClient, settings: Settings
    ) -> SyncService:
        """Create a service configured from application settings."""
        return cls(
            store,
            client,
            interval=settings.refresh_interval,
            page_size=settings.page_size,
            retention_days=settings.retention_days,
        )

    def start(self) -> None:
        """Start the archiver, then the refresher."""
        self.archiver.start()
        self.refresher.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop both loops."""
        self.refresher.stop(timeout=timeout)
        self.archiver.stop(timeout=timeout)

    @property
    def running(self) -> bool:
        """Whether both loop threads are alive."""
        return self.refresher.running and self.archiver.running


__all__ = [
    "ArtifactArchiver",
    "BuildRefresher",
    "REFRESH_INTERVAL",
    "SYNC_ERRORS",
    "SyncService",
]
