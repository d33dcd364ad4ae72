"""Router modules for FastAPI web API."""

from web.routers import builds, config, health, pulls

__all__ = ["builds", "config", "health", "pulls"]
