"""FastAPI application factory and main app.

This module creates the FastAPI application with all routers and owns the
process lifetime of the synchronization engine: the ledger is refreshed
(bootstrapped if allowed) before the app starts serving, then the two
background loops run until shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from coverage_shortcuts import __version__
from coverage_shortcuts.builds.refresh import refresh_ledger
from coverage_shortcuts.builds.store import BuildStore
from coverage_shortcuts.ci.client import CIClient
from coverage_shortcuts.config import get_settings
from coverage_shortcuts.sync.loops import SyncService
from web.routers import builds, config, health, pulls

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager.

    Initializes the build store, brings the ledger up to date and starts
    the sync loops on startup; stops the loops on shutdown. A failed
    startup refresh aborts startup.
    """
    settings = get_settings()
    store = BuildStore.from_url(settings.db_url)
    client = CIClient.from_settings(settings)
    sync: SyncService | None = None

    try:
        result = refresh_ledger(
            store,
            client,
            allow_bootstrap=settings.allow_bootstrap,
            retention_days=settings.retention_days,
            page_size=settings.page_size,
        )
        logger.info(
            "Startup %s refresh ingested %d builds", result.mode.value, result.ingested
        )

        sync = SyncService.from_settings(store, client, settings)
        sync.start()

        app.state.settings = settings
        app.state.store = store
        app.state.ci_client = client
        app.state.sync = sync
        yield
    finally:
        if sync is not None:
            sync.stop()
        if sync is not None and (sync.refresher.running or sync.archiver.running):
            logger.warning("Sync loops still running, leaving the CI client open")
        else:
            client.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application.
    """
    application = FastAPI(
        title="Coverage Shortcuts",
        description="Stable links to the newest CI coverage reports of a pull request",
        version=__version__,
        lifespan=lifespan,
    )

    # Include routers
    application.include_router(health.router, tags=["health"])
    application.include_router(config.router, prefix="/config", tags=["config"])
    application.include_router(pulls.router, prefix="/pull", tags=["pulls"])
    application.include_router(builds.router, prefix="/builds", tags=["builds"])

    return application


# Create the default application instance
app = create_app()
