"""SQLAlchemy implementation of the persistence gateway.

Every method opens its own short-lived session and issues one statement (or
one small unit of work), matching the scan engine's expectation that each
critical section through the gateway is as short as possible.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from revwatch.common.time import ensure_utc
from revwatch.logging import get_logger, log_debug, log_warning
from revwatch.revisions import InvalidRevisionDescriptorError, RevisionDescriptor

from .errors import LedgerPrepareError, PersistenceError, TargetNotFoundError
from .models import LedgerEntry, Target
from .storage import (
    LedgerBase,
    ProjectRecord,
    ScanLedgerRecord,
    SourceRecord,
    VersionRecord,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.engine import Engine

logger = get_logger(__name__)


def build_engine(database_url: str, **kwargs: typ.Any) -> Engine:  # noqa: ANN401
    """Create an engine for ``database_url``.

    SQLite connections are opened with ``check_same_thread=False``; the
    scan coordinator serializes gateway access across its worker threads.
    """
    if database_url.startswith("sqlite"):
        connect_args = dict(kwargs.pop("connect_args", {}))
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args
    return create_engine(database_url, **kwargs)


class SqlPersistenceGateway:
    """Persistence gateway over the ``projects``/``sources``/``versions`` schema.

    Parameters
    ----------
    engine:
        Engine bound to a database initialised with
        :func:`revwatch.persistence.storage.init_storage`.

    """

    def __init__(self, engine: Engine) -> None:
        """Bind the gateway to ``engine``."""
        self._engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)

    def _session(self) -> Session:
        return self._session_factory()

    def list_tracked_targets(self) -> list[Target]:
        """Return tracked versions joined to their project and source."""
        query = (
            select(
                VersionRecord.id,
                ProjectRecord.name,
                SourceRecord.id,
                SourceRecord.vcs,
                SourceRecord.uri,
                VersionRecord.revision_kind,
                VersionRecord.revision_value,
            )
            .join(ProjectRecord, VersionRecord.project_id == ProjectRecord.id)
            .join(SourceRecord, VersionRecord.source_id == SourceRecord.id)
            .where(
                VersionRecord.tracked.is_(True),
                VersionRecord.revision_kind.is_not(None),
            )
            .order_by(ProjectRecord.name, VersionRecord.id)
        )
        try:
            with self._session() as session:
                rows = session.execute(query).all()
        except SQLAlchemyError as exc:
            msg = f"could not list tracked targets: {exc}"
            raise PersistenceError(msg) from exc

        targets: list[Target] = []
        for version_id, name, source_id, vcs, uri, kind, value in rows:
            try:
                descriptor = RevisionDescriptor.from_storage(source_id, kind, value)
            except InvalidRevisionDescriptorError as exc:
                log_warning(
                    logger,
                    "Skipping version %s of %s: invalid revision descriptor: %s",
                    version_id,
                    name,
                    exc,
                )
                continue
            targets.append(
                Target(
                    id=version_id,
                    name=name,
                    vcs=vcs,
                    location=uri,
                    descriptor=descriptor,
                )
            )
        return targets

    def latest_baseline_timestamp(self, target_id: str) -> dt.datetime | None:
        """Return the newest ``released_at`` across the target's project."""
        project_id = (
            select(VersionRecord.project_id)
            .where(VersionRecord.id == target_id)
            .scalar_subquery()
        )
        query = select(func.max(VersionRecord.released_at)).where(
            VersionRecord.project_id == project_id
        )
        try:
            with self._session() as session:
                latest = session.scalar(query)
        except SQLAlchemyError as exc:
            msg = f"could not read baseline for target {target_id}: {exc}"
            raise PersistenceError(msg) from exc
        return None if latest is None else ensure_utc(latest)

    def begin_update_ledger(self) -> None:
        """Create the ledger table if needed and clear rows left by a crash."""
        try:
            LedgerBase.metadata.create_all(self._engine)
            with self._session() as session, session.begin():
                session.execute(delete(ScanLedgerRecord))
        except SQLAlchemyError as exc:
            raise LedgerPrepareError.wrap(exc) from exc

    def record_update(self, target_id: str) -> None:
        """Insert a ledger marker; repeated markers are ignored."""
        try:
            with self._session() as session, session.begin():
                session.add(ScanLedgerRecord(version_id=target_id))
        except IntegrityError:
            log_debug(logger, "Target %s already recorded in ledger", target_id)
        except SQLAlchemyError as exc:
            msg = f"could not record update for target {target_id}: {exc}"
            raise PersistenceError(msg) from exc

    def summarize_ledger(self) -> list[LedgerEntry]:
        """Return distinct (name, uri, vcs) rows ordered by project name."""
        query = (
            select(ProjectRecord.name, SourceRecord.uri, SourceRecord.vcs)
            .select_from(ScanLedgerRecord)
            .join(VersionRecord, VersionRecord.id == ScanLedgerRecord.version_id)
            .join(ProjectRecord, VersionRecord.project_id == ProjectRecord.id)
            .join(SourceRecord, VersionRecord.source_id == SourceRecord.id)
            .group_by(ProjectRecord.name, SourceRecord.uri, SourceRecord.vcs)
            .order_by(ProjectRecord.name, SourceRecord.uri)
        )
        try:
            with self._session() as session:
                rows = session.execute(query).all()
        except SQLAlchemyError as exc:
            msg = f"could not summarize update ledger: {exc}"
            raise PersistenceError(msg) from exc
        return [
            LedgerEntry(target_name=name, location=uri, vcs=vcs)
            for name, uri, vcs in rows
        ]

    def end_update_ledger(self) -> None:
        """Drop the ledger table."""
        try:
            LedgerBase.metadata.drop_all(self._engine)
        except SQLAlchemyError as exc:
            msg = f"could not drop update ledger: {exc}"
            raise PersistenceError(msg) from exc

    def _update_version(self, target_id: str, **values: object) -> None:
        try:
            with self._session() as session, session.begin():
                version = session.get(VersionRecord, target_id)
                if version is None:
                    raise TargetNotFoundError(target_id)
                for attr, value in values.items():
                    setattr(version, attr, value)
        except SQLAlchemyError as exc:
            msg = f"could not update target {target_id}: {exc}"
            raise PersistenceError(msg) from exc

    def set_baseline_timestamp(self, target_id: str, timestamp: dt.datetime) -> None:
        """Overwrite ``released_at`` of the target's version."""
        self._update_version(target_id, released_at=ensure_utc(timestamp))

    def set_note(self, target_id: str, note: str) -> None:
        """Overwrite ``note`` of the target's version."""
        self._update_version(target_id, note=note)

    def set_baseline_and_note(
        self, target_id: str, timestamp: dt.datetime, note: str
    ) -> None:
        """Overwrite ``released_at`` and ``note`` in a single transaction."""
        self._update_version(target_id, released_at=ensure_utc(timestamp), note=note)
