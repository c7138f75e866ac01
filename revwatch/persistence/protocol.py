"""Gateway protocol the scan engine consumes."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

    from .models import LedgerEntry, Target


class PersistenceGateway(typ.Protocol):
    """Storage collaborator for targets, baselines and the update ledger.

    Implementations need not be thread-safe. The scan coordinator serializes
    every call behind its own lock and keeps each call to a single query.
    """

    def list_tracked_targets(self) -> list[Target]:
        """Return every target eligible for update scans."""
        ...

    def latest_baseline_timestamp(self, target_id: str) -> dt.datetime | None:
        """Return the newest known commit time for the target's project."""
        ...

    def begin_update_ledger(self) -> None:
        """Prepare an empty ledger; raise ``LedgerPrepareError`` on failure."""
        ...

    def record_update(self, target_id: str) -> None:
        """Mark ``target_id`` as having newer upstream activity."""
        ...

    def summarize_ledger(self) -> list[LedgerEntry]:
        """Return ledger rows grouped by target and ordered by name."""
        ...

    def end_update_ledger(self) -> None:
        """Discard the ledger."""
        ...

    def set_baseline_timestamp(self, target_id: str, timestamp: dt.datetime) -> None:
        """Overwrite the stored commit time of ``target_id``."""
        ...

    def set_note(self, target_id: str, note: str) -> None:
        """Overwrite the stored note of ``target_id``."""
        ...

    def set_baseline_and_note(
        self, target_id: str, timestamp: dt.datetime, note: str
    ) -> None:
        """Overwrite the commit time and note of ``target_id`` together."""
        ...
