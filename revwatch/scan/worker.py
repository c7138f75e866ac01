"""Per-target scan step: fetch, compare with the baseline, record.

Every per-target failure is caught here and turned into a ``FAILED``
outcome, so one unreachable repository never stops a scan. Only the
documented error families are caught: fetch errors, unrecognized backends
and persistence failures.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

from revwatch.persistence.errors import PersistenceError
from revwatch.vcs.errors import FetchError, UnrecognizedBackendError
from revwatch.vcs.models import CommitInfo, ForcedUpdate, ManualCheckRequired, Skipped

from .observability import ProgressMarker

if typ.TYPE_CHECKING:
    from revwatch.persistence import Target
    from revwatch.vcs import BackendRegistry, FetchResult

    from ._shared import SerializedGateway
    from .observability import ScanEventLogger


class TargetOutcome(enum.StrEnum):
    """What a scan concluded about one target."""

    UPDATED = "updated"
    CURRENT = "current"
    FAILED = "failed"
    MANUAL = "manual"
    SKIPPED = "skipped"

    @property
    def marker(self) -> ProgressMarker:
        """Progress character printed for this outcome."""
        return ProgressMarker[self.name]


@dataclasses.dataclass(frozen=True, slots=True)
class TargetResult:
    """Outcome of processing one target.

    Attributes
    ----------
    target
        The target that was processed.
    outcome
        Classification of the result.
    reason
        Why a target was skipped or needs a manual check; the error text for
        failures. Empty otherwise.
    commit
        Commit metadata when the backend resolved one.
    error
        The caught exception for ``FAILED`` outcomes.

    """

    target: Target
    outcome: TargetOutcome
    reason: str = ""
    commit: CommitInfo | None = None
    error: BaseException | None = None


def process_target(
    target: Target,
    backends: BackendRegistry,
    gateway: SerializedGateway,
    events: ScanEventLogger,
) -> TargetResult:
    """Process ``target`` and return its outcome.

    The backend fetch runs without holding any lock; only the baseline read
    and the ledger write go through ``gateway``.
    """
    try:
        backend = backends.for_target(target)
    except UnrecognizedBackendError as exc:
        events.log_target_skipped(target, str(exc))
        return TargetResult(target, TargetOutcome.SKIPPED, reason=str(exc))

    try:
        fetched = backend.fetch_latest(target.descriptor, target.location)
    except FetchError as exc:
        events.log_target_failed(target, exc)
        return TargetResult(target, TargetOutcome.FAILED, reason=str(exc), error=exc)

    try:
        return _apply(target, fetched, gateway, events)
    except PersistenceError as exc:
        events.log_target_failed(target, exc)
        return TargetResult(target, TargetOutcome.FAILED, reason=str(exc), error=exc)


def _apply(
    target: Target,
    fetched: FetchResult,
    gateway: SerializedGateway,
    events: ScanEventLogger,
) -> TargetResult:
    match fetched:
        case ForcedUpdate():
            gateway.record_update(target.id)
            events.log_target_updated(target)
            return TargetResult(target, TargetOutcome.UPDATED)
        case ManualCheckRequired(reason=reason):
            events.log_target_manual_check(target, reason)
            return TargetResult(target, TargetOutcome.MANUAL, reason=reason)
        case Skipped(reason=reason):
            events.log_target_skipped(target, reason)
            return TargetResult(target, TargetOutcome.SKIPPED, reason=reason)
        case CommitInfo() as commit:
            baseline = gateway.latest_baseline_timestamp(target.id)
            # No recorded version yet: anything upstream is news.
            if baseline is None or commit.timestamp > baseline:
                gateway.record_update(target.id)
                events.log_target_updated(target, commit)
                return TargetResult(target, TargetOutcome.UPDATED, commit=commit)
            return TargetResult(target, TargetOutcome.CURRENT, commit=commit)
        case _:
            typ.assert_never(fetched)
