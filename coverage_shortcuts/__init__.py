"""Coverage Shortcuts - stable links to CI coverage reports.

This package tracks CircleCI builds, caches the artifacts they publish
before the provider expires them, and resolves a pull request number to
the newest coverage report of each kind.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
