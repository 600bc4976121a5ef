"""SQLAlchemy-backed unit of work for the kinship graph."""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker

from kintree.adapters.sqlalchemy.mappings import start_mappers
from kintree.adapters.sqlalchemy.migrations import upgrade_head
from kintree.adapters.sqlalchemy.repositories import (
    SqlAlchemyParentChildEdgeRepository,
    SqlAlchemyPersonLinkRepository,
    SqlAlchemyPersonRepository,
    SqlAlchemyPredictionRepository,
    SqlAlchemyUnionRepository,
)
from kintree.config.storage import get_database_uri
from kintree.domain.errors import ConcurrentModificationError
from kintree.domain.ports.unit_of_work import GraphRepositories, RepositoryCollection

if TYPE_CHECKING:
    import uuid
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

_ADVISORY_POLL_SECONDS = 0.05


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call kintree.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


@dataclass(slots=True)
class _TreeLocks:
    """In-process tree locks for databases without advisory locks."""

    _guard: threading.Lock = field(default_factory=threading.Lock)
    _locks: dict[uuid.UUID, threading.Lock] = field(default_factory=dict)

    def for_tree(self, tree_id: uuid.UUID) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(tree_id, threading.Lock())


_STATE = _AdapterState()
_TREE_LOCKS = _TreeLocks()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the SQLAlchemy engine, schema, and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine or create_engine(database_uri or get_database_uri(), future=True)
    start_mappers()
    upgrade_head(engine=resolved_engine)
    _STATE.engine = resolved_engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


def advisory_key(tree_id: uuid.UUID) -> int:
    """Signed 64-bit key for ``pg_try_advisory_xact_lock`` derived from the tree id."""

    key = tree_id.int >> 64
    return key - (1 << 64) if key >= (1 << 63) else key


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections.

    ``lock_tree`` uses a transaction-scoped advisory lock on PostgreSQL, which
    the server drops at commit or rollback. Other databases fall back to a
    process-wide lock per tree that this unit of work releases at commit,
    rollback or exit.
    """

    def __init__(self) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self._session: Session | None = None
        self._held: dict[uuid.UUID, threading.Lock] = {}
        self._advisory: set[uuid.UUID] = set()

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        try:
            if exc_type is not None:
                self.rollback()
            self.session.close()
        finally:
            self._release_locks()
            self.session = None
        return False

    def lock_tree(self, tree_id: uuid.UUID, *, timeout: float) -> None:
        if tree_id in self._held or tree_id in self._advisory:
            return
        if self.session.get_bind().dialect.name == "postgresql":
            self._advisory_lock(tree_id, timeout=timeout)
            return
        lock = _TREE_LOCKS.for_tree(tree_id)
        if not lock.acquire(timeout=max(timeout, 0.0)):
            log.debug("Timed out waiting %.2fs for tree lock %s", timeout, tree_id)
            raise ConcurrentModificationError(tree_id=tree_id)
        self._held[tree_id] = lock

    def commit(self) -> None:
        try:
            self.session.commit()
        finally:
            self._release_locks()

    def rollback(self) -> None:
        try:
            self.session.rollback()
        finally:
            self._release_locks()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session

    def _advisory_lock(self, tree_id: uuid.UUID, *, timeout: float) -> None:
        deadline = time.monotonic() + timeout
        statement = text("SELECT pg_try_advisory_xact_lock(:key)")
        while not self.session.execute(statement, {"key": advisory_key(tree_id)}).scalar_one():
            if time.monotonic() >= deadline:
                raise ConcurrentModificationError(tree_id=tree_id)
            time.sleep(_ADVISORY_POLL_SECONDS)
        self._advisory.add(tree_id)

    def _release_locks(self) -> None:
        # Advisory locks end with the transaction.
        self._advisory.clear()
        while self._held:
            _, lock = self._held.popitem()
            lock.release()


class SqlAlchemyGraphUnitOfWork(BaseSqlAlchemyUnitOfWork[GraphRepositories]):
    """Unit of work managing SQLAlchemy sessions for the kinship graph."""

    def _build_repositories(self, session: Session) -> GraphRepositories:
        return GraphRepositories(
            people=SqlAlchemyPersonRepository(session),
            edges=SqlAlchemyParentChildEdgeRepository(session),
            unions=SqlAlchemyUnionRepository(session),
            person_links=SqlAlchemyPersonLinkRepository(session),
            predictions=SqlAlchemyPredictionRepository(session),
        )


if TYPE_CHECKING:
    from kintree.domain.ports import GraphUnitOfWork

    _uow_check: GraphUnitOfWork = SqlAlchemyGraphUnitOfWork()
