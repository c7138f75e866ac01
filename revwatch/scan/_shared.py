"""State shared between the worker threads of one scan.

Both objects own an independent lock. Claiming work and talking to the
gateway never contend with each other, and neither lock is held while a
backend performs network I/O.
"""

from __future__ import annotations

import threading
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

    from revwatch.persistence import PersistenceGateway


class ClaimCursor:
    """Hand out indices ``0..total-1`` exactly once across threads."""

    def __init__(self, total: int) -> None:
        """Start the cursor before the first of ``total`` targets."""
        self._total = total
        self._next = 0
        self._lock = threading.Lock()

    @property
    def claimed(self) -> int:
        """Number of indices handed out so far."""
        with self._lock:
            return self._next

    def claim(self) -> int | None:
        """Return the next unclaimed index, or ``None`` once exhausted."""
        with self._lock:
            if self._next >= self._total:
                return None
            index = self._next
            self._next += 1
            return index


class SerializedGateway:
    """Wrap a gateway so every call runs under one lock.

    Each method is exactly one gateway call, keeping the critical section to
    a single query.
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        """Wrap ``gateway``."""
        self._gateway = gateway
        self._lock = threading.Lock()

    def latest_baseline_timestamp(self, target_id: str) -> dt.datetime | None:
        """Read the baseline for ``target_id`` under the lock."""
        with self._lock:
            return self._gateway.latest_baseline_timestamp(target_id)

    def record_update(self, target_id: str) -> None:
        """Record an update for ``target_id`` under the lock."""
        with self._lock:
            self._gateway.record_update(target_id)
