"""Prediction scans and the review workflow for predicted relationships."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from kintree.domain.cancellation import Cancellation
from kintree.domain.errors import (
    DuplicateEdgeError,
    DuplicateUnionError,
    PredictionNotFoundError,
)
from kintree.domain.graph import load_active_view
from kintree.domain.integrity import add_parent_edge, add_union, run_exclusive
from kintree.domain.model import (
    ConfidenceLevel,
    ParentChildType,
    PredictedRelationship,
    PredictedType,
    PredictionStatus,
    UnionType,
    confidence_level,
    new_id,
)

from .aggregate import aggregate
from .rules import RULES

if TYPE_CHECKING:
    from collections.abc import Callable, Collection
    from uuid import UUID

    from kintree.config import GraphConfig, PredictionConfig
    from kintree.domain.graph import ActiveGraphView, SnapshotCache
    from kintree.domain.integrity import EdgeProposal
    from kintree.domain.ports import GraphUnitOfWork

    from .rules import PredictionCandidate

log = logging.getLogger(__name__)

EDGE_ENTITY = "parent_child_edge"
UNION_ENTITY = "union"


class PredictionAction(StrEnum):
    CONFIRM = "confirm"
    DISMISS = "dismiss"
    APPLY = "apply"


@dataclass(frozen=True, slots=True)
class ScanSummary:
    batch_id: UUID
    total: int
    high: int
    medium: int
    low: int
    skipped: int = 0


@dataclass(frozen=True, slots=True)
class PredictionPage:
    items: tuple[PredictedRelationship, ...]
    total: int
    page: int
    page_size: int


def run_rules(
    view: ActiveGraphView,
    *,
    config: PredictionConfig,
    cancellation: Cancellation | None = None,
) -> list[PredictionCandidate]:
    """Evaluate the enabled rules in order and aggregate their candidates."""

    cancellation = cancellation or Cancellation()
    candidates: list[PredictionCandidate] = []
    for rule_id in config.rules:
        cancellation.check(f"predictions:{rule_id}")
        found = RULES[rule_id](view, config, cancellation)
        log.debug("Rule %s proposed %s candidate(s) in tree %s", rule_id, len(found), view.tree_id)
        candidates.extend(found)
    cancellation.check("predictions:aggregate")
    return aggregate(candidates, cap=config.max_confidence)


def scan(
    *,
    unit_of_work_factory: Callable[[], GraphUnitOfWork],
    tree_id: UUID,
    config: GraphConfig,
    cancellation: Cancellation | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ScanSummary:
    """Run every enabled rule over the tree and store new predictions as one batch.

    Relationships that already have a prediction of the same type, in any
    status, are left untouched.
    """

    cancellation = cancellation or Cancellation()
    batch_id = new_id()
    log.info("Starting prediction scan %s for tree %s", batch_id, tree_id)

    with unit_of_work_factory() as uow:
        view = load_active_view(uow.repositories, tree_id)
    candidates = run_rules(view, config=config.predictions, cancellation=cancellation)
    cancellation.check("predictions:store")

    def operation(uow: GraphUnitOfWork) -> tuple[list[PredictedRelationship], int]:
        existing = uow.repositories.predictions.existing_keys(tree_id)
        created: list[PredictedRelationship] = []
        for candidate in candidates:
            if candidate.key in existing:
                continue
            prediction = _to_prediction(
                candidate, tree_id=tree_id, batch_id=batch_id, config=config.predictions
            )
            uow.repositories.predictions.add(prediction)
            created.append(prediction)
        uow.commit()
        return created, len(candidates) - len(created)

    created, skipped = run_exclusive(
        operation,
        unit_of_work_factory=unit_of_work_factory,
        tree_id=tree_id,
        config=config,
        sleep=sleep,
    )
    levels = [prediction.confidence_level for prediction in created]
    summary = ScanSummary(
        batch_id=batch_id,
        total=len(created),
        high=levels.count(ConfidenceLevel.HIGH),
        medium=levels.count(ConfidenceLevel.MEDIUM),
        low=levels.count(ConfidenceLevel.LOW),
        skipped=skipped,
    )
    log.info(
        "Finished prediction scan %s for tree %s: total=%s, high=%s, medium=%s, low=%s, "
        "skipped=%s",
        batch_id,
        tree_id,
        summary.total,
        summary.high,
        summary.medium,
        summary.low,
        summary.skipped,
    )
    return summary


def resolve(
    *,
    unit_of_work_factory: Callable[[], GraphUnitOfWork],
    prediction_id: UUID,
    action: PredictionAction,
    reviewer: str,
    config: GraphConfig,
    reason: str | None = None,
    snapshots: SnapshotCache | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PredictedRelationship:
    """Confirm, dismiss or apply a prediction.

    Applying goes through the integrity guard inside the same locked unit of
    work. A rejected apply keeps the prior status and records the reason,
    error code and details in ``failure_*``; an edge or union that already
    exists counts as applied.
    """

    with unit_of_work_factory() as uow:
        tree_id = _get(uow, prediction_id).tree_id

    def operation(uow: GraphUnitOfWork) -> tuple[PredictedRelationship, bool]:
        prediction = _get(uow, prediction_id)
        mutated = False
        if action is PredictionAction.CONFIRM:
            prediction.confirm(reviewer=reviewer)
        elif action is PredictionAction.DISMISS:
            prediction.dismiss(reviewer=reviewer, reason=reason)
        else:
            mutated = _apply(uow, prediction, reviewer=reviewer)
        uow.commit()
        return prediction, mutated

    prediction, mutated = run_exclusive(
        operation,
        unit_of_work_factory=unit_of_work_factory,
        tree_id=tree_id,
        config=config,
        sleep=sleep,
    )
    if mutated and snapshots is not None:
        snapshots.invalidate(tree_id)
    log.info(
        "Prediction %s %s by %s: status=%s%s",
        prediction_id,
        action.value,
        reviewer,
        prediction.status.value,
        f", failure={prediction.failure_reason}" if prediction.failure_reason else "",
    )
    return prediction


def accept_high_confidence(
    *,
    unit_of_work_factory: Callable[[], GraphUnitOfWork],
    tree_id: UUID,
    reviewer: str,
    config: GraphConfig,
    min_confidence: float | None = None,
    snapshots: SnapshotCache | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> list[PredictedRelationship]:
    """Apply every new prediction at or above ``min_confidence``, strongest first."""

    threshold = config.predictions.high_confidence if min_confidence is None else min_confidence
    with unit_of_work_factory() as uow:
        pending = [
            prediction.id
            for prediction in sorted(
                uow.repositories.predictions.list_for_tree(
                    tree_id, statuses={PredictionStatus.NEW}
                ),
                key=lambda prediction: (-prediction.confidence, str(prediction.id)),
            )
            if prediction.confidence >= threshold
        ]
    log.info(
        "Accepting %s prediction(s) at or above %s in tree %s", len(pending), threshold, tree_id
    )
    return [
        resolve(
            unit_of_work_factory=unit_of_work_factory,
            prediction_id=prediction_id,
            action=PredictionAction.APPLY,
            reviewer=reviewer,
            config=config,
            snapshots=snapshots,
            sleep=sleep,
        )
        for prediction_id in pending
    ]


def list_predictions(
    *,
    unit_of_work_factory: Callable[[], GraphUnitOfWork],
    tree_id: UUID,
    config: PredictionConfig,
    statuses: Collection[PredictionStatus] | None = None,
    levels: Collection[ConfidenceLevel] | None = None,
    rule_ids: Collection[str] | None = None,
    page: int = 1,
    page_size: int | None = None,
) -> PredictionPage:
    if page < 1:
        raise ValueError("page must be >= 1")
    size = config.default_page_size if page_size is None else page_size
    size = max(1, min(size, config.max_page_size))
    with unit_of_work_factory() as uow:
        predictions = [
            prediction
            for prediction in uow.repositories.predictions.list_for_tree(
                tree_id, statuses=statuses
            )
            if (levels is None or prediction.confidence_level in levels)
            and (rule_ids is None or prediction.rule_id in rule_ids)
        ]
    predictions.sort(
        key=lambda prediction: (-prediction.confidence, prediction.created_at, str(prediction.id))
    )
    start = (page - 1) * size
    return PredictionPage(
        items=tuple(predictions[start : start + size]),
        total=len(predictions),
        page=page,
        page_size=size,
    )


def _get(uow: GraphUnitOfWork, prediction_id: UUID) -> PredictedRelationship:
    prediction = uow.repositories.predictions.get(prediction_id)
    if prediction is None:
        raise PredictionNotFoundError(prediction_id=prediction_id)
    return prediction


def _apply(uow: GraphUnitOfWork, prediction: PredictedRelationship, *, reviewer: str) -> bool:
    """Stage the predicted edge; return whether the graph changed."""

    prediction.ensure_applicable()
    proposal: EdgeProposal
    if prediction.predicted_type is PredictedType.PARENT_CHILD:
        proposal = add_parent_edge(
            uow.repositories,
            tree_id=prediction.tree_id,
            parent_id=prediction.source_person_id,
            child_id=prediction.target_person_id,
            edge_type=ParentChildType.BIOLOGICAL,
            created_by=reviewer,
        )
    else:
        proposal = add_union(
            uow.repositories,
            tree_id=prediction.tree_id,
            person_ids=(prediction.source_person_id, prediction.target_person_id),
            union_type=UnionType.MARRIAGE,
            created_by=reviewer,
        )

    if proposal.edge is not None:
        prediction.mark_applied(
            reviewer=reviewer, entity_type=EDGE_ENTITY, entity_id=proposal.edge.id
        )
        return True
    if proposal.union is not None:
        prediction.mark_applied(
            reviewer=reviewer, entity_type=UNION_ENTITY, entity_id=proposal.union.id
        )
        return True

    error = proposal.error
    if isinstance(error, DuplicateEdgeError):
        prediction.mark_applied(
            reviewer=reviewer, entity_type=EDGE_ENTITY, entity_id=error.existing_edge_id
        )
    elif isinstance(error, DuplicateUnionError):
        prediction.mark_applied(
            reviewer=reviewer, entity_type=UNION_ENTITY, entity_id=error.existing_union_id
        )
    elif error is not None:
        prediction.record_failure(
            reviewer=reviewer,
            reason=f"{error.code}: {error}",
            code=error.code,
            details=error.details,
        )
    return False


def _to_prediction(
    candidate: PredictionCandidate,
    *,
    tree_id: UUID,
    batch_id: UUID,
    config: PredictionConfig,
) -> PredictedRelationship:
    return PredictedRelationship(
        tree_id=tree_id,
        source_person_id=candidate.source_person_id,
        target_person_id=candidate.target_person_id,
        predicted_type=candidate.predicted_type,
        rule_id=candidate.rule_id,
        confidence=candidate.confidence,
        confidence_level=confidence_level(
            candidate.confidence,
            high=config.high_confidence,
            medium=config.medium_confidence,
        ),
        explanation=candidate.explanation,
        batch_id=batch_id,
    )
