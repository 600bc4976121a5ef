"""Predicted relationships and their review lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from kintree.domain.errors import InvalidTransitionError

from .entity import Entity
from .enums import ConfidenceLevel, PredictedType, PredictionStatus

if TYPE_CHECKING:
    from uuid import UUID

HIGH_CONFIDENCE = 85.0
MEDIUM_CONFIDENCE = 60.0


def confidence_level(
    confidence: float,
    *,
    high: float = HIGH_CONFIDENCE,
    medium: float = MEDIUM_CONFIDENCE,
) -> ConfidenceLevel:
    if confidence >= high:
        return ConfidenceLevel.HIGH
    if confidence >= medium:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class PredictedRelationship(Entity):
    """A proposed edge awaiting review.

    Status moves ``NEW -> CONFIRMED``, ``NEW -> DISMISSED`` or
    ``NEW/CONFIRMED -> APPLIED``; dismissed and applied are terminal. A failed
    apply leaves the status untouched and records ``failure_reason``.
    """

    tree_id: UUID
    source_person_id: UUID
    target_person_id: UUID
    predicted_type: PredictedType
    rule_id: str
    confidence: float
    confidence_level: ConfidenceLevel
    explanation: str
    batch_id: UUID
    status: PredictionStatus = PredictionStatus.NEW
    created_at: datetime = field(default_factory=_utcnow)
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    dismiss_reason: str | None = None
    applied_entity_type: str | None = None
    applied_entity_id: UUID | None = None
    failure_reason: str | None = None
    # Error code and details of the last rejected apply, e.g. a cycle's chain.
    failure_code: str | None = None
    failure_details: dict[str, object] | None = None

    @property
    def key(self) -> tuple[UUID, UUID, PredictedType]:
        return (self.source_person_id, self.target_person_id, self.predicted_type)

    def confirm(self, *, reviewer: str) -> None:
        self._require({PredictionStatus.NEW}, "confirm")
        self.status = PredictionStatus.CONFIRMED
        self._stamp(reviewer)

    def dismiss(self, *, reviewer: str, reason: str | None = None) -> None:
        self._require({PredictionStatus.NEW}, "dismiss")
        self.status = PredictionStatus.DISMISSED
        self.dismiss_reason = reason
        self._stamp(reviewer)

    def ensure_applicable(self) -> None:
        self._require({PredictionStatus.NEW, PredictionStatus.CONFIRMED}, "apply")

    def mark_applied(self, *, reviewer: str, entity_type: str, entity_id: UUID) -> None:
        self.ensure_applicable()
        self.status = PredictionStatus.APPLIED
        self.applied_entity_type = entity_type
        self.applied_entity_id = entity_id
        self.failure_reason = None
        self.failure_code = None
        self.failure_details = None
        self._stamp(reviewer)

    def record_failure(
        self,
        *,
        reviewer: str,
        reason: str,
        code: str | None = None,
        details: dict[str, object] | None = None,
    ) -> None:
        self.failure_reason = reason
        self.failure_code = code
        self.failure_details = details
        self._stamp(reviewer)

    def _require(self, allowed: set[PredictionStatus], action: str) -> None:
        if self.status not in allowed:
            raise InvalidTransitionError(
                prediction_id=self.id,
                status=self.status,
                action=action,
            )

    def _stamp(self, reviewer: str) -> None:
        self.resolved_by = reviewer
        self.resolved_at = _utcnow()
