"""Command-line entry point for revwatch.

Usage:
    revwatch init-db                 # Create the tables
    revwatch scan                    # Scan every tracked target
    revwatch scan --json             # Emit the scan report as JSON
    revwatch refresh VERSION_ID      # Re-baseline one tracked version

Environment variables:
    REVWATCH_DATABASE_URL  - SQLAlchemy database URL (default: sqlite:///revwatch.db)
    REVWATCH_LOG_LEVEL     - femtologging level (default: INFO)
    REVWATCH_SCAN_WORKERS  - Worker threads per scan (default: 8)
    REVWATCH_FETCH_TIMEOUT - Seconds per clone or query (default: 300)
"""

from __future__ import annotations

import dataclasses
import signal
import sys
import threading
import typing as typ

import msgspec
from cyclopts import App, Parameter

from revwatch.logging import configure_logging, get_logger, log_warning
from revwatch.persistence import (
    LedgerEntry,
    PersistenceError,
    SqlPersistenceGateway,
    build_engine,
    init_storage,
)
from revwatch.scan import (
    ScanConfig,
    ScanCoordinator,
    ScanReport,
    SingleTargetRefresher,
    TargetResult,
)
from revwatch.vcs import BackendRegistry, FetchError, UnrecognizedBackendError

if typ.TYPE_CHECKING:
    import types

logger = get_logger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///revwatch.db"

app = App(
    name="revwatch",
    help="Watch tracked projects for upstream changes",
    version="0.1.0",
)

DatabaseUrl = typ.Annotated[str, Parameter(env_var="REVWATCH_DATABASE_URL")]
LogLevel = typ.Annotated[str, Parameter(env_var="REVWATCH_LOG_LEVEL")]


class NoticePayload(msgspec.Struct, kw_only=True):
    """Target surfaced in the JSON report with a reason."""

    target_id: str
    name: str
    location: str
    reason: str


class FailurePayload(msgspec.Struct, kw_only=True):
    """Failed target in the JSON report."""

    target_id: str
    name: str
    location: str
    category: str
    message: str


class ScanPayload(msgspec.Struct, kw_only=True):
    """JSON rendering of a :class:`ScanReport`."""

    update_count: int
    targets_claimed: int
    cancelled: bool
    duration_seconds: float
    updates: list[LedgerEntry]
    manual_checks: list[NoticePayload]
    skipped: list[NoticePayload]
    failures: list[FailurePayload]


def report_payload(report: ScanReport) -> ScanPayload:
    """Convert ``report`` into its JSON payload."""
    return ScanPayload(
        update_count=report.update_count,
        targets_claimed=report.targets_claimed,
        cancelled=report.cancelled,
        duration_seconds=round(report.duration.total_seconds(), 3),
        updates=list(report.summary),
        manual_checks=[
            NoticePayload(
                target_id=notice.target.id,
                name=notice.target.name,
                location=notice.target.location,
                reason=notice.reason,
            )
            for notice in report.manual_checks
        ],
        skipped=[
            NoticePayload(
                target_id=notice.target.id,
                name=notice.target.name,
                location=notice.target.location,
                reason=notice.reason,
            )
            for notice in report.skipped
        ],
        failures=[
            FailurePayload(
                target_id=failure.target.id,
                name=failure.target.name,
                location=failure.target.location,
                category=str(failure.category),
                message=str(failure.error),
            )
            for failure in report.failures
        ],
    )


def render_report(report: ScanReport) -> list[str]:
    """Render the human-readable scan summary lines."""
    lines = [f"{report.update_count} target(s) have upstream updates"]
    lines.extend(
        f"  {entry.target_name}  {entry.location} ({entry.vcs})"
        for entry in report.summary
    )
    if report.manual_checks:
        lines.append("Check manually:")
        lines.extend(
            f"  {notice.target.name}  {notice.target.location}"
            for notice in report.manual_checks
        )
    if report.failures:
        lines.append(f"{len(report.failures)} target(s) could not be checked:")
        lines.extend(
            f"  {failure.target.name}: [{failure.category}] {failure.error}"
            for failure in report.failures
        )
    if report.cancelled:
        lines.append(
            f"Scan cancelled after {report.targets_claimed} target(s) were claimed"
        )
    return lines


def _print_marker(result: TargetResult) -> None:
    sys.stdout.write(result.outcome.marker)
    sys.stdout.flush()


def _setup_logging(log_level: str) -> None:
    normalized, invalid = configure_logging(log_level)
    if invalid:
        log_warning(
            logger,
            "Invalid REVWATCH_LOG_LEVEL %r, falling back to %s",
            log_level,
            normalized,
        )


class _InterruptToCancel:
    """Turn SIGINT into a cancellation request while a scan runs.

    The first Ctrl-C cancels the scan and restores the previous handler, so a
    second Ctrl-C interrupts in-flight fetches as usual.
    """

    def __init__(self, cancel: threading.Event) -> None:
        self._cancel = cancel
        self._previous: typ.Any = None

    def _handle(self, signum: int, frame: types.FrameType | None) -> None:
        del signum, frame
        self._cancel.set()
        if self._previous is not None:
            signal.signal(signal.SIGINT, self._previous)
        log_warning(logger, "Cancelling scan; press Ctrl-C again to abort")

    def __enter__(self) -> _InterruptToCancel:
        if threading.current_thread() is threading.main_thread():
            self._previous = signal.signal(signal.SIGINT, self._handle)
        return self

    def __exit__(self, *exc_info: object) -> None:
        if self._previous is not None:
            signal.signal(signal.SIGINT, self._previous)


@app.command(name="init-db")
def init_db(
    *,
    database_url: DatabaseUrl = DEFAULT_DATABASE_URL,
    log_level: LogLevel = "INFO",
) -> int:
    """Create the revwatch tables in the configured database.

    Args:
        database_url: SQLAlchemy URL of the revwatch database.
        log_level: femtologging level name.

    Returns:
        Exit code (0 for success, non-zero for failure).

    """
    _setup_logging(log_level)
    init_storage(build_engine(database_url))
    print(f"Initialised revwatch tables in {database_url}")
    return 0


@app.command
def scan(  # noqa: PLR0913
    *,
    database_url: DatabaseUrl = DEFAULT_DATABASE_URL,
    log_level: LogLevel = "INFO",
    workers: int | None = None,
    timeout: float | None = None,
    as_json: typ.Annotated[bool, Parameter(name="--json")] = False,
) -> int:
    """Scan every tracked target for upstream activity.

    Prints one progress marker per target (``!`` updated, ``.`` current,
    ``x`` failed, ``?`` manual check, ``-`` skipped), then the targets with
    updates grouped by name. Ctrl-C stops claiming new targets and reports
    what was checked so far.

    Args:
        database_url: SQLAlchemy URL of the revwatch database.
        log_level: femtologging level name.
        workers: Worker thread count (overrides REVWATCH_SCAN_WORKERS).
        timeout: Seconds per clone or query (overrides REVWATCH_FETCH_TIMEOUT).
        as_json: Print the report as JSON instead of text.

    Returns:
        Exit code (0 for success, non-zero for failure).

    """
    _setup_logging(log_level)
    try:
        config = ScanConfig.from_env()
        overrides: dict[str, typ.Any] = {}
        if workers is not None:
            overrides["workers"] = workers
        if timeout is not None:
            overrides["fetch_timeout"] = timeout
        if overrides:
            config = dataclasses.replace(config, **overrides)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    coordinator = ScanCoordinator(
        SqlPersistenceGateway(build_engine(database_url)),
        BackendRegistry.default(config),
        config=config,
        progress=None if as_json else _print_marker,
    )
    cancel = threading.Event()
    try:
        with _InterruptToCancel(cancel):
            report = coordinator.run_scan(cancel=cancel)
    except PersistenceError as exc:
        print(f"Scan failed: {exc}", file=sys.stderr)
        return 1

    if as_json:
        print(msgspec.json.encode(report_payload(report)).decode())
    else:
        print()
        print("\n".join(render_report(report)))
    return 0


@app.command
def refresh(
    version_id: str,
    *,
    database_url: DatabaseUrl = DEFAULT_DATABASE_URL,
    log_level: LogLevel = "INFO",
) -> int:
    """Overwrite one tracked version's commit time and note from upstream.

    Args:
        version_id: Identifier of the tracked version to refresh.
        database_url: SQLAlchemy URL of the revwatch database.
        log_level: femtologging level name.

    Returns:
        Exit code (0 for success, non-zero for failure).

    """
    _setup_logging(log_level)
    try:
        config = ScanConfig.from_env()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    refresher = SingleTargetRefresher(
        SqlPersistenceGateway(build_engine(database_url)),
        BackendRegistry.default(config),
    )
    try:
        commit = refresher.refresh_by_id(version_id)
    except (FetchError, UnrecognizedBackendError, PersistenceError) as exc:
        print(f"Refresh failed: {exc}", file=sys.stderr)
        return 1
    print(f"{commit.note} ({commit.timestamp.isoformat()})")
    return 0


def main() -> int:
    """Entry point for the CLI."""
    return app()


if __name__ == "__main__":
    sys.exit(main())
