"""Coalescing wake-up signal between the sync loops."""

from __future__ import annotations

import queue


class WakeSignal:
    """Single-slot, non-blocking notification.

    At most one wake-up is ever pending: notifying while one is already
    pending is a no-op. The waiter re-checks the ledger after every wake-up,
    so dropped duplicates never lose work.
    """

    def __init__(self) -> None:
        self._slot: queue.Queue[None] = queue.Queue(maxsize=1)

    def notify(self) -> bool:
        """Post a wake-up without blocking.

        Returns:
            True if the wake-up was queued, False if one was already pending.
        """
        try:
            self._slot.put_nowait(None)
        except queue.Full:
            return False
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a wake-up is posted, consuming it.

        Args:
            timeout: Seconds to wait; None waits forever.

        Returns:
            True if a wake-up was consumed, False on timeout.
        """
        try:
            self._slot.get(timeout=timeout)
        except queue.Empty:
            return False
        return True

    @property
    def pending(self) -> bool:
        """Whether a wake-up is waiting to be consumed."""
        return not self._slot.empty()


__all__ = ["WakeSignal"]
