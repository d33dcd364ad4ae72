"""Shared dependencies for FastAPI routes.

The build store, CI client and settings are constructed once in the app
lifespan and stored on ``app.state``; these helpers hand them to route
handlers via FastAPI dependency injection.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from coverage_shortcuts.builds.store import BuildStore
from coverage_shortcuts.ci.client import CIClient
from coverage_shortcuts.config import Settings, get_settings


def get_store(request: Request) -> BuildStore:
    """Get the build store from app state.

    Args:
        request: FastAPI request object.

    Returns:
        Shared BuildStore.
    """
    store: Any = request.app.state.store
    return store  # type: ignore[no-any-return]


def get_ci_client(request: Request) -> CIClient:
    """Get the CI client from app state.

    Args:
        request: FastAPI request object.

    Returns:
        Shared CIClient.
    """
    client: Any = request.app.state.ci_client
    return client  # type: ignore[no-any-return]


def get_app_settings(request: Request) -> Settings:
    """Get the settings the app was started with, or the defaults."""
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        return get_settings()
    return settings  # type: ignore[no-any-return]
