from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from kintree.adapters.sqlalchemy import start_mappers
from kintree.adapters.sqlalchemy.migrations import upgrade_head
from kintree.adapters.sqlalchemy.unit_of_work import SqlAlchemyGraphUnitOfWork, shutdown, startup
from kintree.config import GraphConfig, RetryPolicy
from kintree.domain.graph import SnapshotCache
from tests.helpers.family import FamilyBuilder

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyGraphUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyGraphUnitOfWork:
        return SqlAlchemyGraphUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def graph_config() -> GraphConfig:
    # No waiting between lock retries in tests.
    return GraphConfig(lock_timeout_seconds=0.2, retry=RetryPolicy(total=2, backoff_factor=0.0))


@pytest.fixture
def family() -> FamilyBuilder:
    return FamilyBuilder()


@pytest.fixture
def snapshots() -> SnapshotCache:
    return SnapshotCache()
