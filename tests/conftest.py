"""Shared fixtures for unit, integration and feature tests."""

from __future__ import annotations

import typing as typ

import pytest

from revwatch.persistence import SqlPersistenceGateway, build_engine, init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.engine import Engine


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> typ.Iterator[Engine]:
    """Provide a file-backed SQLite engine with the permanent tables."""
    engine = build_engine(f"sqlite:///{tmp_path / 'revwatch.db'}")
    init_storage(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_gateway(sqlite_engine: Engine) -> SqlPersistenceGateway:
    """Provide a SQL gateway over a fresh database."""
    return SqlPersistenceGateway(sqlite_engine)
