"""Concurrent update scans and single-target refreshes.

Usage
-----
Scan every tracked target and print the grouped summary::

    from revwatch.persistence import SqlPersistenceGateway, build_engine
    from revwatch.scan import ScanConfig, ScanCoordinator
    from revwatch.vcs import BackendRegistry

    config = ScanConfig.from_env()
    gateway = SqlPersistenceGateway(build_engine("sqlite:///revwatch.db"))
    coordinator = ScanCoordinator(
        gateway, BackendRegistry.default(config), config=config
    )
    report = coordinator.run_scan()
    for entry in report.summary:
        print(entry.target_name, entry.location)

"""

from revwatch.scan.config import ScanConfig
from revwatch.scan.coordinator import (
    ScanCoordinator,
    ScanReport,
    TargetFailure,
    TargetNotice,
)
from revwatch.scan.observability import (
    ErrorCategory,
    ProgressMarker,
    ScanEventLogger,
    ScanEventType,
    categorize_error,
)
from revwatch.scan.refresher import SingleTargetRefresher
from revwatch.scan.worker import TargetOutcome, TargetResult, process_target

__all__ = [
    "ErrorCategory",
    "ProgressMarker",
    "ScanConfig",
    "ScanCoordinator",
    "ScanEventLogger",
    "ScanEventType",
    "ScanReport",
    "SingleTargetRefresher",
    "TargetFailure",
    "TargetNotice",
    "TargetOutcome",
    "TargetResult",
    "categorize_error",
    "process_target",
]
