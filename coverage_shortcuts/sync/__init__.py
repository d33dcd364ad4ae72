"""Background synchronization module.

This module handles:
- The coalescing wake-up signal between the loops
- The build refresher loop
- The artifact archiver loop
"""

from coverage_shortcuts.sync.loops import ArtifactArchiver, BuildRefresher, SyncService
from coverage_shortcuts.sync.signal import WakeSignal

__all__ = ["ArtifactArchiver", "BuildRefresher", "SyncService", "WakeSignal"]
