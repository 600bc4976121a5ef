from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from kintree.adapters.sqlalchemy.unit_of_work import SqlAlchemyGraphUnitOfWork, shutdown, startup
from kintree.config import GraphConfig
from kintree.domain.errors import ConcurrentModificationError, CycleDetectedError
from kintree.domain.graph import load_active_view
from kintree.domain.integrity import EdgeOutcome, propose_edge, propose_union, run_exclusive
from kintree.domain.model import Sex
from tests.helpers.family import FamilyBuilder

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path
    from types import TracebackType
    from uuid import UUID

    from kintree.domain.graph import SnapshotCache
    from kintree.domain.integrity import EdgeProposal
    from kintree.domain.ports import GraphRepositories


def test_reverse_edge_after_commit_is_rejected(
    sqlite_unit_of_work: Callable[[], SqlAlchemyGraphUnitOfWork],
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    x = family.person("X")
    y = family.person("Y")
    family.persist(sqlite_unit_of_work)

    first = propose_edge(
        unit_of_work_factory=sqlite_unit_of_work,
        tree_id=family.tree_id,
        parent_id=x.id,
        child_id=y.id,
        config=graph_config,
    )
    second = propose_edge(
        unit_of_work_factory=sqlite_unit_of_work,
        tree_id=family.tree_id,
        parent_id=y.id,
        child_id=x.id,
        config=graph_config,
    )

    assert first.outcome is EdgeOutcome.CREATED
    assert second.outcome is EdgeOutcome.CYCLE_DETECTED
    with pytest.raises(CycleDetectedError):
        second.raise_for_status()
    with sqlite_unit_of_work() as uow:
        view = load_active_view(uow.repositories, family.tree_id)
    assert len(view.edges) == 1


def test_repeated_edge_is_idempotent(
    sqlite_unit_of_work: Callable[[], SqlAlchemyGraphUnitOfWork],
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    parent = family.person("Parent")
    child = family.person("Child")
    family.persist(sqlite_unit_of_work)

    proposals = [
        propose_edge(
            unit_of_work_factory=sqlite_unit_of_work,
            tree_id=family.tree_id,
            parent_id=parent.id,
            child_id=child.id,
            config=graph_config,
        )
        for _ in range(2)
    ]

    assert [proposal.outcome for proposal in proposals] == [
        EdgeOutcome.CREATED,
        EdgeOutcome.DUPLICATE_EDGE,
    ]
    assert proposals[1].error is not None
    assert proposals[1].error.details["existing_edge_id"] == str(proposals[0].entity_id)


def test_created_edge_invalidates_snapshot(
    sqlite_unit_of_work: Callable[[], SqlAlchemyGraphUnitOfWork],
    graph_config: GraphConfig,
    snapshots: SnapshotCache,
    family: FamilyBuilder,
) -> None:
    parent = family.person("Parent")
    child = family.person("Child")
    family.persist(sqlite_unit_of_work)
    with sqlite_unit_of_work() as uow:
        snapshots.get(family.tree_id, lambda: load_active_view(uow.repositories, family.tree_id))

    propose_edge(
        unit_of_work_factory=sqlite_unit_of_work,
        tree_id=family.tree_id,
        parent_id=parent.id,
        child_id=child.id,
        config=graph_config,
        snapshots=snapshots,
    )

    assert family.tree_id not in snapshots


def test_union_is_persisted_with_members(
    sqlite_unit_of_work: Callable[[], SqlAlchemyGraphUnitOfWork],
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    husband = family.person("Husband")
    wife = family.person("Wife", sex=Sex.FEMALE)
    family.persist(sqlite_unit_of_work)

    created = propose_union(
        unit_of_work_factory=sqlite_unit_of_work,
        tree_id=family.tree_id,
        person_ids=[husband.id, wife.id],
        config=graph_config,
    )
    repeated = propose_union(
        unit_of_work_factory=sqlite_unit_of_work,
        tree_id=family.tree_id,
        person_ids=[wife.id, husband.id],
        config=graph_config,
    )

    assert created.created
    assert repeated.outcome is EdgeOutcome.DUPLICATE_EDGE
    with sqlite_unit_of_work() as uow:
        view = load_active_view(uow.repositories, family.tree_id)
    assert view.spouse_ids(husband.id) == {wife.id}


class _FlakyLockUnitOfWork:
    """Delegates to a real unit of work but refuses the lock a few times."""

    def __init__(self, inner: SqlAlchemyGraphUnitOfWork, refusals: list[int]) -> None:
        self._inner = inner
        self._refusals = refusals

    @property
    def repositories(self) -> GraphRepositories:
        return self._inner.repositories

    def __enter__(self) -> _FlakyLockUnitOfWork:
        self._inner.__enter__()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool:
        return self._inner.__exit__(exc_type, exc_value, traceback)

    def lock_tree(self, tree_id: UUID, *, timeout: float) -> None:
        if self._refusals[0] > 0:
            self._refusals[0] -= 1
            raise ConcurrentModificationError(tree_id=tree_id)
        self._inner.lock_tree(tree_id, timeout=timeout)

    def commit(self) -> None:
        self._inner.commit()

    def rollback(self) -> None:
        self._inner.rollback()


def test_run_exclusive_retries_lock_conflicts(
    sqlite_unit_of_work: Callable[[], SqlAlchemyGraphUnitOfWork],
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    refusals = [2]
    delays: list[float] = []

    result = run_exclusive(
        lambda uow: "done",
        unit_of_work_factory=lambda: _FlakyLockUnitOfWork(sqlite_unit_of_work(), refusals),
        tree_id=family.tree_id,
        config=graph_config,
        sleep=delays.append,
    )

    assert result == "done"
    assert len(delays) == 2


def test_run_exclusive_gives_up_after_retries(
    sqlite_unit_of_work: Callable[[], SqlAlchemyGraphUnitOfWork],
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    refusals = [10]

    with pytest.raises(ConcurrentModificationError) as excinfo:
        run_exclusive(
            lambda uow: None,
            unit_of_work_factory=lambda: _FlakyLockUnitOfWork(sqlite_unit_of_work(), refusals),
            tree_id=family.tree_id,
            config=graph_config,
            sleep=lambda _: None,
        )

    assert excinfo.value.attempts == graph_config.retry.total + 1


@pytest.fixture
def file_unit_of_work(tmp_path: Path) -> Iterator[Callable[[], SqlAlchemyGraphUnitOfWork]]:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'kintree.db'}", future=True)
    startup(engine=engine, force=True)
    try:
        yield SqlAlchemyGraphUnitOfWork
    finally:
        shutdown()


def test_concurrent_opposite_edges_commit_only_one(
    file_unit_of_work: Callable[[], SqlAlchemyGraphUnitOfWork],
    family: FamilyBuilder,
) -> None:
    x = family.person("X")
    y = family.person("Y")
    family.persist(file_unit_of_work)
    barrier = threading.Barrier(2)
    results: list[EdgeProposal] = []
    config = GraphConfig(lock_timeout_seconds=5.0)

    def worker(parent_id: UUID, child_id: UUID) -> None:
        barrier.wait()
        results.append(
            propose_edge(
                unit_of_work_factory=file_unit_of_work,
                tree_id=family.tree_id,
                parent_id=parent_id,
                child_id=child_id,
                config=config,
            )
        )

    threads = [
        threading.Thread(target=worker, args=(x.id, y.id)),
        threading.Thread(target=worker, args=(y.id, x.id)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    outcomes = sorted(proposal.outcome.value for proposal in results)
    assert outcomes == [EdgeOutcome.CREATED.value, EdgeOutcome.CYCLE_DETECTED.value]
    with file_unit_of_work() as uow:
        view = load_active_view(uow.repositories, family.tree_id)
    assert len(view.edges) == 1
