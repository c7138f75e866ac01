"""Concurrent update-scan coordinator.

The coordinator prepares the transient update ledger, fans the target list
out over a fixed pool of worker threads and, once every worker has
finished, summarises and tears the ledger down.

Workers share exactly two things: a :class:`ClaimCursor` that hands out
target indices and a :class:`SerializedGateway` for persistence calls.
Each owns its own lock. All other state is created per scan, so one
coordinator can run any number of scans one after another.

Usage
-----
>>> coordinator = ScanCoordinator(gateway, BackendRegistry.default())
>>> report = coordinator.run_scan()
>>> report.update_count
3

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import datetime as dt
import time
import typing as typ
from concurrent.futures import ThreadPoolExecutor

from revwatch.logging import get_logger, log_debug
from revwatch.persistence.errors import LedgerPrepareError, PersistenceError

from ._shared import ClaimCursor, SerializedGateway
from .config import ScanConfig
from .observability import ErrorCategory, ScanEventLogger, categorize_error
from .worker import TargetOutcome, TargetResult, process_target

if typ.TYPE_CHECKING:
    import threading

    from revwatch.persistence import LedgerEntry, PersistenceGateway, Target
    from revwatch.vcs import BackendRegistry

logger = get_logger(__name__)

ProgressCallback = cabc.Callable[[TargetResult], None]


@dataclasses.dataclass(frozen=True, slots=True)
class TargetNotice:
    """A target surfaced to the operator with a reason."""

    target: Target
    reason: str


@dataclasses.dataclass(frozen=True, slots=True)
class TargetFailure:
    """A target whose check failed."""

    target: Target
    error: BaseException
    category: ErrorCategory


@dataclasses.dataclass(frozen=True, slots=True)
class ScanReport:
    """Result of one scan pass.

    Attributes
    ----------
    update_count
        Targets with upstream activity newer than their baseline, plus
        targets without version control.
    targets_claimed
        Targets a worker picked up. Less than the target count only when
        the scan was cancelled.
    summary
        Ledger rows ordered by target name.
    manual_checks
        Targets an operator has to check by hand, in list order.
    skipped
        Archived targets and targets with an unrecognized backend.
    failures
        Targets whose fetch or bookkeeping failed.
    cancelled
        Whether cancellation stopped workers before every target was
        claimed.
    duration
        Wall-clock time of the scan.

    """

    update_count: int
    targets_claimed: int
    summary: tuple[LedgerEntry, ...] = ()
    manual_checks: tuple[TargetNotice, ...] = ()
    skipped: tuple[TargetNotice, ...] = ()
    failures: tuple[TargetFailure, ...] = ()
    cancelled: bool = False
    duration: dt.timedelta = dt.timedelta(0)


@dataclasses.dataclass(slots=True)
class _WorkerTally:
    """Results gathered by one worker; merged after all workers join."""

    updated: int = 0
    results: list[tuple[int, TargetResult]] = dataclasses.field(default_factory=list)

    def add(self, index: int, result: TargetResult) -> None:
        if result.outcome is TargetOutcome.UPDATED:
            self.updated += 1
        self.results.append((index, result))


@dataclasses.dataclass(frozen=True, slots=True)
class _ScanState:
    """Per-scan state handed to every worker."""

    targets: tuple[Target, ...]
    cursor: ClaimCursor
    gateway: SerializedGateway
    cancel: threading.Event | None


class ScanCoordinator:
    """Run update scans over a fixed-size worker pool."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        backends: BackendRegistry,
        *,
        config: ScanConfig | None = None,
        event_logger: ScanEventLogger | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        """Wire the coordinator to its collaborators.

        Parameters
        ----------
        gateway
            Persistence collaborator. It need not be thread-safe; workers
            reach it only through a lock.
        backends
            Backend strategies keyed by version-control kind.
        config
            Scan configuration; ``ScanConfig()`` when omitted.
        event_logger
            Structured event sink.
        progress
            Called from worker threads once per processed target.

        """
        self._gateway = gateway
        self._backends = backends
        self._config = config or ScanConfig()
        self._events = event_logger or ScanEventLogger()
        self._progress = progress

    @property
    def config(self) -> ScanConfig:
        """Configuration this coordinator scans with."""
        return self._config

    def run_scan(
        self,
        targets: cabc.Iterable[Target] | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> ScanReport:
        """Scan ``targets`` (all tracked targets when omitted).

        Raises
        ------
        LedgerPrepareError
            If the update ledger cannot be prepared. No worker starts.

        """
        started = time.monotonic()
        snapshot = tuple(
            self._gateway.list_tracked_targets() if targets is None else targets
        )
        self._events.log_run_started(len(snapshot), self._config.workers)

        try:
            self._gateway.begin_update_ledger()
        except LedgerPrepareError as exc:
            self._events.log_run_failed(exc)
            raise

        state = _ScanState(
            targets=snapshot,
            cursor=ClaimCursor(len(snapshot)),
            gateway=SerializedGateway(self._gateway),
            cancel=cancel,
        )
        try:
            tallies = self._run_workers(state)
            summary = tuple(self._gateway.summarize_ledger())
        except Exception as exc:
            self._events.log_run_aborted(exc)
            raise
        finally:
            self._end_ledger()

        report = self._build_report(
            state, tallies, summary, dt.timedelta(seconds=time.monotonic() - started)
        )
        self._events.log_run_completed(
            update_count=report.update_count,
            targets_claimed=report.targets_claimed,
            manual_checks=len(report.manual_checks),
            skipped=len(report.skipped),
            failures=len(report.failures),
            duration=report.duration,
            cancelled=report.cancelled,
        )
        return report

    def _run_workers(self, state: _ScanState) -> list[_WorkerTally]:
        workers = self._config.workers
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="revwatch-scan"
        ) as executor:
            futures = [
                executor.submit(self._worker_loop, state) for _ in range(workers)
            ]
        # The executor has joined every worker; re-raise the first crash.
        return [future.result() for future in futures]

    def _worker_loop(self, state: _ScanState) -> _WorkerTally:
        tally = _WorkerTally()
        while state.cancel is None or not state.cancel.is_set():
            index = state.cursor.claim()
            if index is None:
                break
            result = process_target(
                state.targets[index], self._backends, state.gateway, self._events
            )
            tally.add(index, result)
            if self._progress is not None:
                self._progress(result)
        log_debug(logger, "Worker finished after %d targets", len(tally.results))
        return tally

    def _end_ledger(self) -> None:
        try:
            self._gateway.end_update_ledger()
        except PersistenceError as exc:
            self._events.log_ledger_teardown_failed(exc)

    @staticmethod
    def _build_report(
        state: _ScanState,
        tallies: list[_WorkerTally],
        summary: tuple[LedgerEntry, ...],
        duration: dt.timedelta,
    ) -> ScanReport:
        ordered = sorted(
            (pair for tally in tallies for pair in tally.results),
            key=lambda pair: pair[0],
        )
        manual: list[TargetNotice] = []
        skipped: list[TargetNotice] = []
        failures: list[TargetFailure] = []
        for _, result in ordered:
            match result.outcome:
                case TargetOutcome.MANUAL:
                    manual.append(TargetNotice(result.target, result.reason))
                case TargetOutcome.SKIPPED:
                    skipped.append(TargetNotice(result.target, result.reason))
                case TargetOutcome.FAILED if result.error is not None:
                    failures.append(
                        TargetFailure(
                            result.target, result.error, categorize_error(result.error)
                        )
                    )
                case _:
                    pass

        claimed = state.cursor.claimed
        return ScanReport(
            update_count=sum(tally.updated for tally in tallies),
            targets_claimed=claimed,
            summary=summary,
            manual_checks=tuple(manual),
            skipped=tuple(skipped),
            failures=tuple(failures),
            cancelled=claimed < len(state.targets),
            duration=duration,
        )
