"""Unit tests for the concurrent scan coordinator.

Run with:
    pytest tests/unit/test_scan_coordinator.py
"""

from __future__ import annotations

import collections
import collections.abc as cabc
import datetime as dt
import math
import threading
import time
import typing as typ

import pytest

from revwatch.persistence import LedgerPrepareError
from revwatch.scan import (
    ErrorCategory,
    ScanConfig,
    ScanCoordinator,
    ScanEventLogger,
    TargetOutcome,
    TargetResult,
)
from revwatch.vcs import (
    ArchivedBackend,
    BackendRegistry,
    CommitInfo,
    GitBackend,
    ManualCheckBackend,
    NoVcsBackend,
    ResolutionFailureError,
)
from tests.helpers.fakes import (
    BASELINE,
    FakeBackend,
    FakeGateway,
    _FakeLogger,
    make_target,
)

if typ.TYPE_CHECKING:
    from pathlib import Path

NEWER = dt.datetime(2024, 6, 1, tzinfo=dt.UTC)
OLDER = dt.datetime(2023, 6, 1, tzinfo=dt.UTC)


def _commit(timestamp: dt.datetime) -> CommitInfo:
    return CommitInfo(timestamp=timestamp, summary="tip", identifier="abc1234")


def _coordinator(
    gateway: FakeGateway,
    backend: FakeBackend,
    *,
    workers: int = 4,
    logger: _FakeLogger | None = None,
    progress: cabc.Callable[[TargetResult], None] | None = None,
) -> ScanCoordinator:
    registry = BackendRegistry(
        [backend, NoVcsBackend(), ManualCheckBackend(), ArchivedBackend()]
    )
    return ScanCoordinator(
        gateway,
        registry,
        config=ScanConfig(workers=workers),
        event_logger=ScanEventLogger(logger or _FakeLogger()),
        progress=progress,
    )


class TestClaiming:
    """Tests for work distribution across workers."""

    @pytest.mark.parametrize("workers", [1, 3, 8, 32])
    def test_every_target_claimed_exactly_once(self, workers: int) -> None:
        """Each target is fetched once regardless of the worker count."""
        targets = [make_target(f"t{i}") for i in range(25)]
        backend = FakeBackend(default=_commit(OLDER), delay=0.001)
        gateway = FakeGateway(targets)

        report = _coordinator(gateway, backend, workers=workers).run_scan()

        counts = collections.Counter(backend.calls)
        assert sorted(counts) == sorted(target.location for target in targets)
        assert set(counts.values()) == {1}
        assert report.targets_claimed == len(targets)
        assert report.update_count == 0
        assert not report.cancelled

    def test_empty_target_list(self) -> None:
        """Scanning nothing still prepares and drops the ledger."""
        gateway = FakeGateway([])

        report = _coordinator(gateway, FakeBackend()).run_scan()

        assert report.update_count == 0
        assert report.targets_claimed == 0
        assert gateway.ledger_began == 1
        assert gateway.ledger_ended == 1

    def test_supplied_targets_override_gateway_listing(self) -> None:
        """Callers may pass their own target list."""
        listed = make_target("listed")
        chosen = make_target("chosen")
        backend = FakeBackend(default=_commit(NEWER))
        gateway = FakeGateway([listed, chosen])

        report = _coordinator(gateway, backend).run_scan([chosen])

        assert backend.calls == [chosen.location]
        assert report.update_count == 1


class TestUpdateDetection:
    """Tests for update counting and the summary."""

    def test_only_strictly_newer_targets_are_summarised(self) -> None:
        """Newer targets appear once in the summary; others never do."""
        newer = make_target("a", name="alpha")
        same = make_target("b", name="bravo")
        older = make_target("c", name="charlie")
        backend = FakeBackend(
            results={
                newer.location: _commit(NEWER),
                same.location: _commit(BASELINE),
                older.location: _commit(OLDER),
            }
        )
        gateway = FakeGateway([older, same, newer])

        report = _coordinator(gateway, backend).run_scan()

        assert report.update_count == 1
        assert [entry.target_name for entry in report.summary] == ["alpha"]
        assert gateway.ledger_ended == 1

    def test_scenario_head_newer_than_baseline(self) -> None:
        """HEAD at 2024-06-01 against a 2024-01-01 baseline is one update."""
        target = make_target("engine", name="engine")
        gateway = FakeGateway([target], baselines={"engine": BASELINE})
        backend = FakeBackend(default=_commit(NEWER))

        report = _coordinator(gateway, backend, workers=1).run_scan()

        assert report.update_count == 1
        assert report.summary[0].target_name == "engine"

    def test_missing_tag_is_a_failure_not_an_update(self) -> None:
        """A resolution failure is reported and never counted."""
        target = make_target("engine")
        error = ResolutionFailureError.unresolved("tag v2.0", target.location)
        gateway = FakeGateway([target])

        report = _coordinator(gateway, FakeBackend(default=error)).run_scan()

        assert report.update_count == 0
        assert report.summary == ()
        assert [failure.target.id for failure in report.failures] == ["engine"]
        assert report.failures[0].category is ErrorCategory.RESOLUTION

    def test_no_vcs_targets_always_appear(self) -> None:
        """n/a targets are reported as updated on every scan."""
        target = make_target("plain", name="plain", vcs="n/a")
        gateway = FakeGateway([target])
        coordinator = _coordinator(gateway, FakeBackend())

        first = coordinator.run_scan()
        second = coordinator.run_scan()

        assert first.update_count == second.update_count == 1
        assert [entry.target_name for entry in second.summary] == ["plain"]

    def test_manual_targets_listed_but_never_summarised(self) -> None:
        """Manual targets go to manual_checks in list order."""
        targets = [
            make_target("m2", name="zeta", vcs="rhv"),
            make_target("g1", name="gamma"),
            make_target("m1", name="alpha", vcs="cvs"),
        ]
        gateway = FakeGateway(targets)
        backend = FakeBackend(default=_commit(NEWER))

        report = _coordinator(gateway, backend).run_scan()

        assert [notice.target.id for notice in report.manual_checks] == ["m2", "m1"]
        assert [entry.target_name for entry in report.summary] == ["gamma"]
        assert report.update_count == 1

    def test_skipped_and_unrecognized_targets(self) -> None:
        """Archived and unknown-backend targets are skipped, not failed."""
        targets = [
            make_target("old", vcs="archived"),
            make_target("odd", vcs="bzr"),
        ]
        gateway = FakeGateway(targets)

        report = _coordinator(gateway, FakeBackend()).run_scan()

        assert [notice.target.id for notice in report.skipped] == ["old", "odd"]
        assert report.failures == ()


class TestConcurrency:
    """Tests for the worker pool and its locks."""

    def test_fetches_overlap_across_workers(self) -> None:
        """20 targets on 4 workers take about ceil(20/4) fetch durations."""
        delay = 0.2
        targets = [make_target(f"t{i}") for i in range(20)]
        backend = FakeBackend(default=_commit(OLDER), delay=delay)
        gateway = FakeGateway(targets)

        started = time.monotonic()
        report = _coordinator(gateway, backend, workers=4).run_scan()
        elapsed = time.monotonic() - started

        rounds = math.ceil(20 / 4)
        assert elapsed < rounds * delay + 0.8, f"scan took {elapsed:.2f}s"
        assert elapsed >= rounds * delay * 0.9
        assert report.targets_claimed == 20

    def test_gateway_calls_are_serialized(self) -> None:
        """No two workers are ever inside the gateway at once."""
        targets = [make_target(f"t{i}") for i in range(40)]
        backend = FakeBackend(default=_commit(NEWER))
        gateway = FakeGateway(targets, call_delay=0.002)

        report = _coordinator(gateway, backend, workers=8).run_scan()

        assert gateway.overlaps == 0
        assert report.update_count == 40

    def test_update_count_matches_per_worker_tallies(self) -> None:
        """The reported count equals the number of ledger entries."""
        targets = [make_target(f"t{i:02d}") for i in range(30)]
        backend = FakeBackend(
            results={
                target.location: _commit(NEWER if i % 3 == 0 else OLDER)
                for i, target in enumerate(targets)
            }
        )
        gateway = FakeGateway(targets)

        report = _coordinator(gateway, backend, workers=6).run_scan()

        assert report.update_count == 10
        assert len(report.summary) == 10

    def test_progress_callback_sees_every_target(self) -> None:
        """The progress callback runs once per processed target."""
        seen: list[TargetOutcome] = []
        lock = threading.Lock()

        def progress(result: TargetResult) -> None:
            with lock:
                seen.append(result.outcome)

        targets = [make_target("a"), make_target("b", vcs="rhv")]
        gateway = FakeGateway(targets)
        backend = FakeBackend(default=_commit(NEWER))

        _coordinator(gateway, backend, progress=progress).run_scan()

        assert sorted(seen) == sorted([TargetOutcome.UPDATED, TargetOutcome.MANUAL])


class TestLifecycle:
    """Tests for ledger preparation, teardown and cancellation."""

    def test_ledger_prepare_failure_is_fatal(self) -> None:
        """No worker starts when the ledger cannot be prepared."""
        logger = _FakeLogger()
        backend = FakeBackend(default=_commit(NEWER))
        gateway = FakeGateway([make_target("a")], fail_begin=True)

        with pytest.raises(LedgerPrepareError):
            _coordinator(gateway, backend, logger=logger).run_scan()

        assert backend.calls == []
        assert any("scan.run.failed" in m for m in logger.messages("ERROR"))

    def test_ledger_dropped_when_worker_crashes(self) -> None:
        """Unexpected worker errors propagate after the ledger is dropped."""
        logger = _FakeLogger()
        gateway = FakeGateway([make_target("a"), make_target("b")])
        backend = FakeBackend(default=RuntimeError("bug"))

        with pytest.raises(RuntimeError, match="bug"):
            _coordinator(gateway, backend, workers=2, logger=logger).run_scan()

        assert gateway.ledger_ended == 1
        aborted = [
            call for call in logger.calls if call[1].startswith("[scan.run.aborted]")
        ]
        assert len(aborted) == 1
        level, message, exc_info, _ = aborted[0]
        assert level == "ERROR"
        assert "error_type=RuntimeError" in message
        assert isinstance(exc_info, RuntimeError)

    def test_unstartable_client_fails_target_not_scan(self, tmp_path: Path) -> None:
        """A client the OS refuses to run fails each target; the scan completes."""
        targets = [make_target("a"), make_target("b"), make_target("plain", vcs="n/a")]
        gateway = FakeGateway(targets)
        registry = BackendRegistry(
            [
                GitBackend(executable=str(tmp_path), work_dir=tmp_path / "clones"),
                NoVcsBackend(),
                ManualCheckBackend(),
                ArchivedBackend(),
            ]
        )
        coordinator = ScanCoordinator(
            gateway, registry, event_logger=ScanEventLogger(_FakeLogger())
        )

        report = coordinator.run_scan()

        assert report.targets_claimed == 3
        assert report.update_count == 1
        assert sorted(f.target.id for f in report.failures) == ["a", "b"]
        assert {f.category for f in report.failures} == {ErrorCategory.TOOL_MISSING}
        assert gateway.ledger_ended == 1

    def test_cancellation_stops_claiming(self) -> None:
        """Setting the cancel event stops workers before the next claim."""
        cancel = threading.Event()
        targets = [make_target(f"t{i}") for i in range(50)]
        gateway = FakeGateway(targets)

        def cancel_after_first(result: TargetResult) -> None:
            del result
            cancel.set()

        backend = FakeBackend(default=_commit(NEWER), delay=0.01)
        coordinator = _coordinator(
            gateway, backend, workers=2, progress=cancel_after_first
        )

        report = coordinator.run_scan(cancel=cancel)

        assert report.cancelled
        assert report.targets_claimed < len(targets)
        assert len(backend.calls) == report.targets_claimed
        assert gateway.ledger_ended == 1

    def test_completion_is_logged(self) -> None:
        """Scan start and completion are structured INFO events."""
        logger = _FakeLogger()
        gateway = FakeGateway([make_target("a")])

        _coordinator(
            gateway, FakeBackend(default=_commit(NEWER)), logger=logger
        ).run_scan()

        info = logger.messages("INFO")
        assert info[0].startswith("[scan.run.started] targets=1 workers=4")
        assert info[-1].startswith("[scan.run.completed]")
        assert "updates=1" in info[-1]
