"""Merge candidates that several rules propose for the same relationship."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from kintree.domain.model import PredictedType

    from .rules import PredictionCandidate


def noisy_or(confidences: Iterable[float], *, cap: float) -> float:
    """Combine independent percentages as ``1 - prod(1 - p)``, capped at ``cap``."""

    remaining = 1.0
    for confidence in confidences:
        remaining *= 1.0 - confidence / 100.0
    return round(min((1.0 - remaining) * 100.0, cap), 2)


def aggregate(
    candidates: Iterable[PredictionCandidate], *, cap: float
) -> list[PredictionCandidate]:
    """One candidate per (source, target, type), strongest rule first.

    A rule that proposes the same key more than once counts once, with its
    best score. The primary rule and explanation come from the strongest
    candidate.
    """

    grouped: dict[tuple[UUID, UUID, PredictedType], dict[str, PredictionCandidate]] = (
        defaultdict(dict)
    )
    for candidate in candidates:
        per_rule = grouped[candidate.key]
        current = per_rule.get(candidate.rule_id)
        if current is None or candidate.confidence > current.confidence:
            per_rule[candidate.rule_id] = candidate

    merged: list[PredictionCandidate] = []
    for per_rule in grouped.values():
        ranked = sorted(per_rule.values(), key=lambda item: (-item.confidence, item.rule_id))
        primary = ranked[0]
        if len(ranked) == 1:
            merged.append(replace(primary, confidence=min(primary.confidence, cap)))
            continue
        others = ", ".join(item.rule_id for item in ranked[1:])
        merged.append(
            replace(
                primary,
                confidence=noisy_or((item.confidence for item in ranked), cap=cap),
                explanation=f"{primary.explanation} (also matched by: {others})",
            )
        )
    merged.sort(
        key=lambda item: (-item.confidence, str(item.source_person_id), str(item.target_person_id))
    )
    return merged
