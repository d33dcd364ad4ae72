"""FastAPI web application for Coverage Shortcuts.

This module provides the HTTP API that resolves pull requests to coverage
report links and exposes the build ledger for diagnostics.

All business logic is delegated to core modules in coverage_shortcuts/.
"""

from web.app import app, create_app

__all__ = ["app", "create_app"]
