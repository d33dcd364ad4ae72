"""Build ledger module.

This module handles:
- Build and artifact records
- Ledger storage with transactional multi-row writes
- Bootstrap and incremental refresh of the ledger
- The write-once artifact cache
"""

from coverage_shortcuts.builds.models import Artifact, Build
from coverage_shortcuts.builds.store import BuildStore, Ledger, StoreError

__all__ = ["Artifact", "Build", "BuildStore", "Ledger", "StoreError"]

# Access refresh and cache via coverage_shortcuts.builds.refresh, etc.
