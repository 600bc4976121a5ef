"""Graph integrity guard: the single gate for parent-child and union mutations.

Every mutation runs as check-then-insert under the tree's exclusive lock, so two
concurrent proposals cannot both pass the cycle check before either commits.
The cycle check walks ancestors of the proposed parent on a freshly loaded
``ActiveGraphView``; it never uses a cached snapshot.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from kintree.domain.errors import (
    ConcurrentModificationError,
    CycleDetectedError,
    DuplicateEdgeError,
    DuplicateUnionError,
    GraphError,
    SelfParentageError,
)
from kintree.domain.graph import check_person, load_active_view
from kintree.domain.model import ParentChildEdge, ParentChildType, Union, UnionType

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from uuid import UUID

    from kintree.config import GraphConfig
    from kintree.domain.graph import ActiveGraphView, SnapshotCache
    from kintree.domain.model import FuzzyDate, Person
    from kintree.domain.ports import GraphRepositories, GraphUnitOfWork

log = logging.getLogger(__name__)


class EdgeOutcome(StrEnum):
    CREATED = "created"
    CYCLE_DETECTED = "cycle_detected"
    DUPLICATE_EDGE = "duplicate_edge"
    SELF_PARENTAGE = "self_parentage"
    PERSON_NOT_FOUND = "person_not_found"
    TENANT_MISMATCH = "tenant_mismatch"


@dataclass(slots=True)
class EdgeProposal:
    """Result of a guarded mutation: the created row or the rejection."""

    outcome: EdgeOutcome
    edge: ParentChildEdge | None = None
    union: Union | None = None
    error: GraphError | None = None

    @classmethod
    def rejected(cls, error: GraphError) -> EdgeProposal:
        return cls(outcome=EdgeOutcome(error.code), error=error)

    @property
    def created(self) -> bool:
        return self.outcome is EdgeOutcome.CREATED

    @property
    def entity_id(self) -> UUID | None:
        if self.edge is not None:
            return self.edge.id
        if self.union is not None:
            return self.union.id
        return None

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error


def run_exclusive[T](
    operation: Callable[[GraphUnitOfWork], T],
    *,
    unit_of_work_factory: Callable[[], GraphUnitOfWork],
    tree_id: UUID,
    config: GraphConfig,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` inside a unit of work holding the tree lock.

    Lock conflicts are retried with backoff up to ``config.retry.total`` times
    before ``ConcurrentModificationError`` surfaces. ``operation`` commits.
    """

    attempt = 0
    while True:
        attempt += 1
        try:
            with unit_of_work_factory() as uow:
                uow.lock_tree(tree_id, timeout=config.lock_timeout_seconds)
                return operation(uow)
        except ConcurrentModificationError as exc:
            if attempt > config.retry.total:
                log.warning("Giving up on tree %s after %s attempts", tree_id, attempt)
                raise ConcurrentModificationError(tree_id=tree_id, attempts=attempt) from exc
            delay = config.retry.backoff(attempt)
            log.info(
                "Tree %s is locked (attempt %s/%s), retrying in %.2fs",
                tree_id,
                attempt,
                config.retry.total + 1,
                delay,
            )
            sleep(delay)


def propose_edge(
    *,
    unit_of_work_factory: Callable[[], GraphUnitOfWork],
    tree_id: UUID,
    parent_id: UUID,
    child_id: UUID,
    config: GraphConfig,
    edge_type: ParentChildType = ParentChildType.BIOLOGICAL,
    created_by: str | None = None,
    snapshots: SnapshotCache | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> EdgeProposal:
    """Create a parent-child edge unless it breaks an integrity rule."""

    def operation(uow: GraphUnitOfWork) -> EdgeProposal:
        proposal = add_parent_edge(
            uow.repositories,
            tree_id=tree_id,
            parent_id=parent_id,
            child_id=child_id,
            edge_type=edge_type,
            created_by=created_by,
        )
        if proposal.created:
            uow.commit()
        return proposal

    proposal = run_exclusive(
        operation,
        unit_of_work_factory=unit_of_work_factory,
        tree_id=tree_id,
        config=config,
        sleep=sleep,
    )
    if proposal.created and snapshots is not None:
        snapshots.invalidate(tree_id)
    return proposal


def propose_union(
    *,
    unit_of_work_factory: Callable[[], GraphUnitOfWork],
    tree_id: UUID,
    person_ids: Sequence[UUID],
    config: GraphConfig,
    union_type: UnionType = UnionType.MARRIAGE,
    start: FuzzyDate | None = None,
    end: FuzzyDate | None = None,
    created_by: str | None = None,
    snapshots: SnapshotCache | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> EdgeProposal:
    """Create a union grouping ``person_ids`` unless it already exists."""

    def operation(uow: GraphUnitOfWork) -> EdgeProposal:
        proposal = add_union(
            uow.repositories,
            tree_id=tree_id,
            person_ids=person_ids,
            union_type=union_type,
            start=start,
            end=end,
            created_by=created_by,
        )
        if proposal.created:
            uow.commit()
        return proposal

    proposal = run_exclusive(
        operation,
        unit_of_work_factory=unit_of_work_factory,
        tree_id=tree_id,
        config=config,
        sleep=sleep,
    )
    if proposal.created and snapshots is not None:
        snapshots.invalidate(tree_id)
    return proposal


def add_parent_edge(
    repositories: GraphRepositories,
    *,
    tree_id: UUID,
    parent_id: UUID,
    child_id: UUID,
    edge_type: ParentChildType = ParentChildType.BIOLOGICAL,
    created_by: str | None = None,
) -> EdgeProposal:
    """Check and stage a parent-child edge; the caller must hold the tree lock and commit."""

    view = load_active_view(repositories, tree_id)
    error = check_parent_edge(
        view,
        parent_id=parent_id,
        child_id=child_id,
        edge_type=edge_type,
        lookup=repositories.people.get,
    )
    if error is not None:
        log.info("Rejected edge %s -> %s in tree %s: %s", parent_id, child_id, tree_id, error.code)
        return EdgeProposal.rejected(error)

    edge = ParentChildEdge(
        tree_id=tree_id,
        parent_id=parent_id,
        child_id=child_id,
        relationship_type=edge_type,
        created_by=created_by,
    )
    repositories.edges.add(edge)
    log.info("Created %s edge %s -> %s in tree %s", edge_type.value, parent_id, child_id, tree_id)
    return EdgeProposal(outcome=EdgeOutcome.CREATED, edge=edge)


def add_union(
    repositories: GraphRepositories,
    *,
    tree_id: UUID,
    person_ids: Sequence[UUID],
    union_type: UnionType = UnionType.MARRIAGE,
    start: FuzzyDate | None = None,
    end: FuzzyDate | None = None,
    created_by: str | None = None,
) -> EdgeProposal:
    """Check and stage a union; the caller must hold the tree lock and commit."""

    view = load_active_view(repositories, tree_id)
    error = check_union(view, person_ids=person_ids, lookup=repositories.people.get)
    if error is not None:
        log.info("Rejected union of %s in tree %s: %s", list(person_ids), tree_id, error.code)
        return EdgeProposal.rejected(error)

    union = Union(
        tree_id=tree_id,
        union_type=union_type,
        start=start,
        end=end,
        created_by=created_by,
    )
    for person_id in person_ids:
        union.add_member(person_id)
    repositories.unions.add(union)
    log.info("Created %s union %s in tree %s", union_type.value, union.id, tree_id)
    return EdgeProposal(outcome=EdgeOutcome.CREATED, union=union)


def check_parent_edge(
    view: ActiveGraphView,
    *,
    parent_id: UUID,
    child_id: UUID,
    edge_type: ParentChildType,
    lookup: Callable[[UUID], Person | None] | None = None,
) -> GraphError | None:
    """Return the first integrity rule the edge would break, if any."""

    if parent_id == child_id:
        return SelfParentageError(person_id=parent_id)
    for person_id in (parent_id, child_id):
        error = check_person(view, person_id, lookup)
        if error is not None:
            return error

    existing = view.find_edge(parent_id, child_id, edge_type)
    if existing is not None:
        return DuplicateEdgeError(
            parent_id=parent_id,
            child_id=child_id,
            edge_type=edge_type,
            existing_edge_id=existing.id,
        )

    # The edge closes a cycle iff the child is already an ancestor of the parent.
    chain = view.ancestor_chain(parent_id, child_id)
    if chain is not None:
        return CycleDetectedError(parent_id=parent_id, child_id=child_id, chain=chain)
    return None


def check_union(
    view: ActiveGraphView,
    *,
    person_ids: Sequence[UUID],
    lookup: Callable[[UUID], Person | None] | None = None,
) -> GraphError | None:
    if len(set(person_ids)) != len(person_ids) or len(person_ids) < 2:
        raise ValueError("A union needs at least two distinct people")
    for person_id in person_ids:
        error = check_person(view, person_id, lookup)
        if error is not None:
            return error
    wanted = frozenset(person_ids)
    for union in view.unions_of(person_ids[0]):
        if frozenset(union.member_ids) == wanted:
            return DuplicateUnionError(person_ids=person_ids, existing_union_id=union.id)
    return None

