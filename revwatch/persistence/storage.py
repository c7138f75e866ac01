"""Relational models backing the SQL persistence gateway.

Projects own sources (a repository location plus its version-control tag)
and versions. A version that pins a revision descriptor on a source and is
marked ``tracked`` is a scan target. The ``scan_ledger`` table only exists
while a scan is running.

Models keep to portable SQLAlchemy types so the same code works with SQLite
in tests and PostgreSQL in production.
"""

from __future__ import annotations

import datetime as dt
import typing as typ
import uuid

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from revwatch.common.time import utcnow

from .errors import TimezoneAwareRequiredError

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect, Engine


class Base(DeclarativeBase):
    """Base declarative class for permanent tables."""


class LedgerBase(DeclarativeBase):
    """Base declarative class for the transient scan ledger."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError("stored timestamps")
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


def _new_id() -> str:
    return str(uuid.uuid4())


class ProjectRecord(Base):
    """Third-party project under watch."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    note: Mapped[str | None] = mapped_column(Text(), default=None)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)

    sources: Mapped[list[SourceRecord]] = relationship(
        back_populates="project", cascade="all, delete-orphan"
    )
    versions: Mapped[list[VersionRecord]] = relationship(
        back_populates="project", cascade="all, delete-orphan"
    )


class SourceRecord(Base):
    """Repository location of a project and the tool used to read it."""

    __tablename__ = "sources"
    __table_args__ = (UniqueConstraint("project_id", "uri", name="uq_source_uri"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), index=True
    )
    uri: Mapped[str] = mapped_column(String(1024))
    vcs: Mapped[str] = mapped_column(String(16))

    project: Mapped[ProjectRecord] = relationship(back_populates="sources")


class VersionRecord(Base):
    """Known release or snapshot of a project.

    ``released_at`` is the commit time the version corresponds to; the
    latest value across a project's versions is the project's baseline.
    """

    __tablename__ = "versions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    project_id: Mapped[str] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), index=True
    )
    source_id: Mapped[str | None] = mapped_column(
        ForeignKey("sources.id", ondelete="SET NULL"), default=None
    )
    label: Mapped[str] = mapped_column(String(128))
    released_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime(), default=None)
    note: Mapped[str | None] = mapped_column(Text(), default=None)
    revision_kind: Mapped[str | None] = mapped_column(String(16), default=None)
    revision_value: Mapped[str | None] = mapped_column(String(255), default=None)
    tracked: Mapped[bool] = mapped_column(Boolean, default=False)

    project: Mapped[ProjectRecord] = relationship(back_populates="versions")
    source: Mapped[SourceRecord | None] = relationship()


class ScanLedgerRecord(LedgerBase):
    """Marker for a target found to have newer upstream activity."""

    __tablename__ = "scan_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # No foreign key: the ledger lives in its own metadata so it can be
    # created and dropped per scan without touching permanent tables.
    version_id: Mapped[str] = mapped_column(String(36), unique=True)
    recorded_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


def init_storage(engine: Engine) -> None:
    """Create all permanent tables if they are absent."""
    Base.metadata.create_all(engine)
