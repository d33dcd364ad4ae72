"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, Request

from coverage_shortcuts import __version__

router = APIRouter()


@router.get("/health")
def health(request: Request) -> dict[str, Any]:
    """Health check endpoint.

    Returns:
        Health status with version and whether the sync loops are running.
    """
    sync = getattr(request.app.state, "sync", None)
    return {
        "status": "ok",
        "version": __version__,
        "sync_running": bool(sync is not None and sync.running),
    }


@router.get("/")
def root() -> dict[str, str]:
    """Root endpoint.

    Returns:
        API name and version.
    """
    return {"name": "Coverage Shortcuts", "version": __version__}
