"""Observability primitives for update scans.

Provides structured log events and error categorization for scan runs,
per-target outcomes and single-target refreshes. Events are emitted as
``[event.type] key=value`` lines through the femtologging helpers so log
aggregators can parse them.
"""

from __future__ import annotations

import enum
import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from revwatch.logging import (
    format_log_message,
    get_logger,
    log_error,
    log_exception,
    log_info,
    log_warning,
)
from revwatch.persistence.errors import PersistenceError
from revwatch.vcs.errors import (
    FetchTimeoutError,
    NetworkFailureError,
    RefreshNotSupportedError,
    ResolutionFailureError,
    ToolNotFoundError,
    UnrecognizedBackendError,
    UnsupportedDescriptorKindError,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from revwatch.logging import _SupportsLog  # noqa: PLC2701
    from revwatch.persistence import Target
    from revwatch.vcs import CommitInfo

_default_logger = get_logger(__name__)


class ScanEventType(enum.StrEnum):
    """Structured log event types for scan observability."""

    RUN_STARTED = "scan.run.started"
    RUN_COMPLETED = "scan.run.completed"
    RUN_CANCELLED = "scan.run.cancelled"
    RUN_FAILED = "scan.run.failed"
    RUN_ABORTED = "scan.run.aborted"
    LEDGER_TEARDOWN_FAILED = "scan.ledger.teardown_failed"
    TARGET_UPDATED = "scan.target.updated"
    TARGET_FAILED = "scan.target.failed"
    TARGET_SKIPPED = "scan.target.skipped"
    TARGET_MANUAL_CHECK = "scan.target.manual_check"
    REFRESH_COMPLETED = "scan.refresh.completed"
    REFRESH_FAILED = "scan.refresh.failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in log lines."""

    UNSUPPORTED_DESCRIPTOR = "unsupported_descriptor"
    NETWORK = "network"
    TIMEOUT = "timeout"
    RESOLUTION = "resolution"
    TOOL_MISSING = "tool_missing"
    UNRECOGNIZED_BACKEND = "unrecognized_backend"
    DATABASE = "database"
    UNKNOWN = "unknown"


class ProgressMarker(enum.StrEnum):
    """Single-character progress output per processed target."""

    UPDATED = "!"
    CURRENT = "."
    FAILED = "x"
    MANUAL = "?"
    SKIPPED = "-"


# Order matters: subclasses precede their bases.
_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (UnsupportedDescriptorKindError, ErrorCategory.UNSUPPORTED_DESCRIPTOR),
    (RefreshNotSupportedError, ErrorCategory.UNSUPPORTED_DESCRIPTOR),
    (FetchTimeoutError, ErrorCategory.TIMEOUT),
    (NetworkFailureError, ErrorCategory.NETWORK),
    (ResolutionFailureError, ErrorCategory.RESOLUTION),
    (ToolNotFoundError, ErrorCategory.TOOL_MISSING),
    (UnrecognizedBackendError, ErrorCategory.UNRECOGNIZED_BACKEND),
    (PersistenceError, ErrorCategory.DATABASE),
    (SQLAlchemyError, ErrorCategory.DATABASE),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for log routing.

    Returns:
        ErrorCategory describing the failure family.

    """
    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category
    return ErrorCategory.UNKNOWN


class ScanEventLogger:
    """Emit structured scan events via femtologging.

    Successful runs log at INFO, skipped and manual targets at WARNING, and
    failures at ERROR. Methods are safe to call from worker threads.
    """

    def __init__(self, logger: _SupportsLog | None = None) -> None:
        """Use ``logger`` or the module logger."""
        self._logger = logger or _default_logger

    def log_run_started(self, target_count: int, workers: int) -> None:
        """Log scan start."""
        log_info(
            self._logger,
            "[%s] targets=%d workers=%d",
            ScanEventType.RUN_STARTED,
            target_count,
            workers,
        )

    def log_run_completed(  # noqa: PLR0913
        self,
        *,
        update_count: int,
        targets_claimed: int,
        manual_checks: int,
        skipped: int,
        failures: int,
        duration: dt.timedelta,
        cancelled: bool,
    ) -> None:
        """Log scan completion with per-outcome counts."""
        event = (
            ScanEventType.RUN_CANCELLED if cancelled else ScanEventType.RUN_COMPLETED
        )
        log_info(
            self._logger,
            "[%s] duration_seconds=%.3f targets_claimed=%d updates=%d "
            "manual_checks=%d skipped=%d failures=%d",
            event,
            duration.total_seconds(),
            targets_claimed,
            update_count,
            manual_checks,
            skipped,
            failures,
        )

    def log_run_failed(self, error: BaseException) -> None:
        """Log a scan that could not start."""
        log_error(
            self._logger,
            "[%s] error_type=%s error_category=%s error_message=%s",
            ScanEventType.RUN_FAILED,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )

    def log_run_aborted(self, error: BaseException) -> None:
        """Log a scan stopped by an error no worker step handles."""
        log_exception(
            self._logger,
            format_log_message(
                "[%s] error_type=%s error_message=%s",
                ScanEventType.RUN_ABORTED,
                type(error).__name__,
                str(error),
            ),
            error,
        )

    def log_ledger_teardown_failed(self, error: BaseException) -> None:
        """Log a ledger that could not be dropped at scan end."""
        log_error(
            self._logger,
            "[%s] error_type=%s error_message=%s",
            ScanEventType.LEDGER_TEARDOWN_FAILED,
            type(error).__name__,
            str(error),
            exc_info=error,
        )

    def log_target_updated(
        self, target: Target, commit: CommitInfo | None = None
    ) -> None:
        """Log a target with newer upstream activity."""
        log_info(
            self._logger,
            "[%s] target_id=%s name=%s vcs=%s commit=%s",
            ScanEventType.TARGET_UPDATED,
            target.id,
            target.name,
            target.vcs,
            commit.identifier if commit is not None else "-",
        )

    def log_target_failed(self, target: Target, error: BaseException) -> None:
        """Log a target whose fetch or bookkeeping failed."""
        log_error(
            self._logger,
            "[%s] target_id=%s name=%s location=%s error_type=%s "
            "error_category=%s error_message=%s",
            ScanEventType.TARGET_FAILED,
            target.id,
            target.name,
            target.location,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )

    def log_target_skipped(self, target: Target, reason: str) -> None:
        """Log a target excluded from comparison."""
        log_warning(
            self._logger,
            "[%s] target_id=%s name=%s vcs=%s reason=%s",
            ScanEventType.TARGET_SKIPPED,
            target.id,
            target.name,
            target.vcs,
            reason,
        )

    def log_target_manual_check(self, target: Target, reason: str) -> None:
        """Log a target that needs checking by hand."""
        log_warning(
            self._logger,
            "[%s] target_id=%s name=%s location=%s reason=%s",
            ScanEventType.TARGET_MANUAL_CHECK,
            target.id,
            target.name,
            target.location,
            reason,
        )

    def log_refresh_completed(self, target: Target, commit: CommitInfo) -> None:
        """Log a refreshed baseline."""
        log_info(
            self._logger,
            "[%s] target_id=%s name=%s commit=%s timestamp=%s",
            ScanEventType.REFRESH_COMPLETED,
            target.id,
            target.name,
            commit.identifier,
            commit.timestamp.isoformat(),
        )

    def log_refresh_failed(self, target: Target, error: BaseException) -> None:
        """Log a refresh that wrote nothing."""
        log_error(
            self._logger,
            "[%s] target_id=%s name=%s error_type=%s error_category=%s "
            "error_message=%s",
            ScanEventType.REFRESH_FAILED,
            target.id,
            target.name,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )
