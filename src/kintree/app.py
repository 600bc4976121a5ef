"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from kintree.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyGraphUnitOfWork,
    is_started,
    startup,
)
from kintree.config import get_graph_config
from kintree.domain import integrity
from kintree.domain.duplicates import (
    DuplicateMode,
    detect_duplicates as run_duplicate_detection,
    paginate,
    record_decision,
    resolved_pairs,
)
from kintree.domain.graph import SnapshotCache, is_stale, load_active_view
from kintree.domain.kinship import classify
from kintree.domain.model import ParentChildType, UnionType
from kintree.domain.ports.unit_of_work import GraphUnitOfWork
from kintree.domain.prediction import engine

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from uuid import UUID

    from kintree.config import GraphConfig
    from kintree.domain.cancellation import Cancellation
    from kintree.domain.duplicates import DuplicateAction, DuplicatePage, DuplicateScope
    from kintree.domain.graph import ActiveGraphView
    from kintree.domain.integrity import EdgeProposal
    from kintree.domain.kinship import KinshipResult
    from kintree.domain.model import (
        ConfidenceLevel,
        FuzzyDate,
        PersonLink,
        PredictedRelationship,
        PredictionStatus,
    )
    from kintree.domain.prediction import PredictionAction, PredictionPage, ScanSummary

UnitOfWorkFactory = Callable[[], GraphUnitOfWork]


log = getLogger(__name__)

_SNAPSHOTS = SnapshotCache()


def snapshot_cache() -> SnapshotCache:
    """The process-wide cache of active graph views."""

    return _SNAPSHOTS


def _unit_of_work(unit_of_work_factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if unit_of_work_factory is not None:
        return unit_of_work_factory
    if not is_started():
        startup()
    return SqlAlchemyGraphUnitOfWork


def invalidate_tree(tree_id: UUID) -> None:
    """Drop the cached view of ``tree_id``.

    Call this after writing people, edges or unions of the tree outside the
    integrity guard, so later classifications and duplicate scans see them.
    """

    _SNAPSHOTS.invalidate(tree_id)


def _view(
    uow: GraphUnitOfWork,
    tree_id: UUID,
    *,
    person_ids: Sequence[UUID] = (),
) -> ActiveGraphView:
    def load() -> ActiveGraphView:
        return load_active_view(uow.repositories, tree_id)

    view = _SNAPSHOTS.get(tree_id, load)
    if person_ids and is_stale(view, person_ids, uow.repositories.people.get):
        log.debug("Cached view of tree %s is stale; reloading", tree_id)
        _SNAPSHOTS.invalidate(tree_id)
        view = _SNAPSHOTS.get(tree_id, load)
    return view


def propose_edge(
    *,
    tree_id: UUID,
    parent_id: UUID,
    child_id: UUID,
    edge_type: ParentChildType = ParentChildType.BIOLOGICAL,
    created_by: str | None = None,
    config: GraphConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> EdgeProposal:
    """Add a parent-child edge through the integrity guard."""

    proposal = integrity.propose_edge(
        unit_of_work_factory=_unit_of_work(unit_of_work_factory),
        tree_id=tree_id,
        parent_id=parent_id,
        child_id=child_id,
        config=config or get_graph_config(),
        edge_type=edge_type,
        created_by=created_by,
        snapshots=_SNAPSHOTS,
    )
    log.info(
        "Proposed edge %s -> %s in tree %s: %s", parent_id, child_id, tree_id, proposal.outcome
    )
    return proposal


def propose_union(
    *,
    tree_id: UUID,
    person_ids: Sequence[UUID],
    union_type: UnionType = UnionType.MARRIAGE,
    start: FuzzyDate | None = None,
    end: FuzzyDate | None = None,
    created_by: str | None = None,
    config: GraphConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> EdgeProposal:
    """Group people into a union through the integrity guard."""

    return integrity.propose_union(
        unit_of_work_factory=_unit_of_work(unit_of_work_factory),
        tree_id=tree_id,
        person_ids=person_ids,
        config=config or get_graph_config(),
        union_type=union_type,
        start=start,
        end=end,
        created_by=created_by,
        snapshots=_SNAPSHOTS,
    )


def classify_relationship(
    *,
    tree_id: UUID,
    person_a_id: UUID,
    person_b_id: UUID,
    max_depth: int | None = None,
    config: GraphConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> KinshipResult:
    """Name how ``person_b_id`` is related to ``person_a_id``."""

    effective_config = config or get_graph_config()
    depth = effective_config.max_depth if max_depth is None else max_depth
    with _unit_of_work(unit_of_work_factory)() as uow:
        view = _view(uow, tree_id, person_ids=(person_a_id, person_b_id))
        result = classify(
            view,
            person_a_id,
            person_b_id,
            max_depth=depth,
            lookup=uow.repositories.people.get,
        )
    log.info(
        "Classified %s -> %s in tree %s: %s (%s)",
        person_a_id,
        person_b_id,
        tree_id,
        result.status.value,
        result.label.term if result.label is not None else "-",
    )
    return result


def detect_duplicates(
    *,
    scope: DuplicateScope,
    mode: DuplicateMode = DuplicateMode.AUTO,
    min_confidence: float | None = None,
    page: int = 1,
    page_size: int | None = None,
    cancellation: Cancellation | None = None,
    config: GraphConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> DuplicatePage:
    """Find probable duplicate people within a tree or across two trees."""

    effective_config = config or get_graph_config()
    with _unit_of_work(unit_of_work_factory)() as uow:
        source = _view(uow, scope.tree_id)
        target = (
            _view(uow, scope.target_tree_id)
            if scope.target_tree_id is not None and scope.is_cross_tree
            else None
        )
        links = uow.repositories.person_links.list_for_trees(scope.tree_ids)

    candidates = run_duplicate_detection(
        source,
        config=effective_config.duplicates,
        target=target,
        mode=mode,
        min_confidence=min_confidence,
        resolved_pairs=resolved_pairs(links),
        cancellation=cancellation,
    )
    return paginate(
        candidates,
        config=effective_config.duplicates,
        page=page,
        page_size=page_size,
    )


def resolve_duplicate(
    *,
    tree_id: UUID,
    person_a_id: UUID,
    person_b_id: UUID,
    action: DuplicateAction,
    reviewer: str,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> PersonLink:
    """Record a reviewer's verdict on a duplicate candidate."""

    with _unit_of_work(unit_of_work_factory)() as uow:
        link = record_decision(
            uow.repositories,
            tree_id=tree_id,
            person_a_id=person_a_id,
            person_b_id=person_b_id,
            action=action,
            reviewer=reviewer,
        )
        uow.commit()
    return link


def scan_predictions(
    *,
    tree_id: UUID,
    cancellation: Cancellation | None = None,
    config: GraphConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ScanSummary:
    """Run the prediction rules over a tree and store a new batch."""

    return engine.scan(
        unit_of_work_factory=_unit_of_work(unit_of_work_factory),
        tree_id=tree_id,
        config=config or get_graph_config(),
        cancellation=cancellation,
    )


def resolve_prediction(
    *,
    prediction_id: UUID,
    action: PredictionAction,
    reviewer: str,
    reason: str | None = None,
    config: GraphConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> PredictedRelationship:
    """Confirm, dismiss or apply a predicted relationship."""

    return engine.resolve(
        unit_of_work_factory=_unit_of_work(unit_of_work_factory),
        prediction_id=prediction_id,
        action=action,
        reviewer=reviewer,
        reason=reason,
        config=config or get_graph_config(),
        snapshots=_SNAPSHOTS,
    )


def list_predictions(
    *,
    tree_id: UUID,
    statuses: Collection[PredictionStatus] | None = None,
    levels: Collection[ConfidenceLevel] | None = None,
    rule_ids: Collection[str] | None = None,
    page: int = 1,
    page_size: int | None = None,
    config: GraphConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> PredictionPage:
    return engine.list_predictions(
        unit_of_work_factory=_unit_of_work(unit_of_work_factory),
        tree_id=tree_id,
        config=(config or get_graph_config()).predictions,
        statuses=statuses,
        levels=levels,
        rule_ids=rule_ids,
        page=page,
        page_size=page_size,
    )


def accept_high_confidence(
    *,
    tree_id: UUID,
    reviewer: str,
    min_confidence: float | None = None,
    config: GraphConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[PredictedRelationship]:
    """Apply every new prediction at or above the threshold."""

    return engine.accept_high_confidence(
        unit_of_work_factory=_unit_of_work(unit_of_work_factory),
        tree_id=tree_id,
        reviewer=reviewer,
        config=config or get_graph_config(),
        min_confidence=min_confidence,
        snapshots=_SNAPSHOTS,
    )
