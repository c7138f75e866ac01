"""Persistence collaborators for the update-scan engine.

The engine depends only on :class:`PersistenceGateway`. The SQL gateway
stores projects, their sources and versions; a tracked version with a
revision descriptor is a scan target.

Usage
-----
Open a gateway over a SQLite file::

    from revwatch.persistence import SqlPersistenceGateway, build_engine, init_storage

    engine = build_engine("sqlite:///revwatch.db")
    init_storage(engine)
    gateway = SqlPersistenceGateway(engine)
    targets = gateway.list_tracked_targets()

"""

from revwatch.persistence.errors import (
    LedgerPrepareError,
    PersistenceError,
    TargetNotFoundError,
    TimezoneAwareRequiredError,
)
from revwatch.persistence.gateway import SqlPersistenceGateway, build_engine
from revwatch.persistence.models import LedgerEntry, Target
from revwatch.persistence.protocol import PersistenceGateway
from revwatch.persistence.storage import (
    ProjectRecord,
    ScanLedgerRecord,
    SourceRecord,
    VersionRecord,
    init_storage,
)

__all__ = [
    "LedgerEntry",
    "LedgerPrepareError",
    "PersistenceError",
    "PersistenceGateway",
    "ProjectRecord",
    "ScanLedgerRecord",
    "SourceRecord",
    "SqlPersistenceGateway",
    "Target",
    "TargetNotFoundError",
    "TimezoneAwareRequiredError",
    "VersionRecord",
    "build_engine",
    "init_storage",
]
