"""Duplicate candidate detection over one tree or a pair of trees."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from kintree.domain.cancellation import Cancellation

from .strategies import (
    DuplicateCandidate,
    MatchContext,
    Strategy,
    build_profiles,
    different_grandfather,
    exact_composite,
    given_name_only,
    shared_parent,
    similar_composite,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from uuid import UUID

    from kintree.config import DuplicateConfig
    from kintree.domain.graph import ActiveGraphView
    from kintree.domain.model import MatchType

log = logging.getLogger(__name__)


class DuplicateMode(StrEnum):
    AUTO = "auto"
    NAME_EXACT = "name_exact"
    NAME_SIMILAR = "name_similar"
    MOTHER_SURN = "mother_surn"
    SHARED_PARENT = "shared_parent"


MODE_STRATEGIES: dict[DuplicateMode, tuple[Strategy, ...]] = {
    DuplicateMode.AUTO: (
        exact_composite,
        similar_composite,
        different_grandfather,
        shared_parent,
        given_name_only,
    ),
    DuplicateMode.NAME_EXACT: (exact_composite, given_name_only),
    DuplicateMode.NAME_SIMILAR: (similar_composite,),
    DuplicateMode.MOTHER_SURN: (different_grandfather,),
    DuplicateMode.SHARED_PARENT: (shared_parent,),
}


@dataclass(frozen=True, slots=True)
class DuplicateScope:
    """One tree, or a source tree compared against a target tree."""

    tree_id: UUID
    target_tree_id: UUID | None = None

    @property
    def is_cross_tree(self) -> bool:
        return self.target_tree_id is not None and self.target_tree_id != self.tree_id

    @property
    def tree_ids(self) -> tuple[UUID, ...]:
        if self.target_tree_id is None or self.target_tree_id == self.tree_id:
            return (self.tree_id,)
        return (self.tree_id, self.target_tree_id)


@dataclass(frozen=True, slots=True)
class MatchSummary:
    count: int
    average_confidence: float
    min_confidence: float
    max_confidence: float


@dataclass(frozen=True, slots=True)
class DuplicatePage:
    items: tuple[DuplicateCandidate, ...]
    total: int
    page: int
    page_size: int
    summary: dict[MatchType, MatchSummary] = field(default_factory=dict["MatchType", MatchSummary])

    @property
    def pages(self) -> int:
        return max(1, -(-self.total // self.page_size))


def detect_duplicates(
    source: ActiveGraphView,
    *,
    config: DuplicateConfig,
    target: ActiveGraphView | None = None,
    mode: DuplicateMode = DuplicateMode.AUTO,
    min_confidence: float | None = None,
    resolved_pairs: Collection[frozenset[UUID]] = (),
    cancellation: Cancellation | None = None,
) -> list[DuplicateCandidate]:
    """Run the mode's strategies and return ranked candidates.

    Per pair the highest confidence wins; on equal confidence the match type
    that sorts first wins. Pairs in ``resolved_pairs`` are dropped before the
    ``min_confidence`` threshold is applied. Within one tree a parent and its
    own child are never reported.
    """

    cancellation = cancellation or Cancellation()
    threshold = config.min_confidence if min_confidence is None else min_confidence
    cross_tree = target is not None and target.tree_id != source.tree_id
    context = MatchContext(
        left=build_profiles(source),
        right=build_profiles(target) if cross_tree and target is not None else None,
        source=source,
        config=config,
        cancellation=cancellation,
    )
    log.info(
        "Starting duplicate scan: tree=%s, target=%s, mode=%s",
        source.tree_id,
        target.tree_id if cross_tree and target is not None else None,
        mode.value,
    )

    best: dict[frozenset[UUID], DuplicateCandidate] = {}
    for strategy in MODE_STRATEGIES[mode]:
        for candidate in strategy(context):
            # A child's composite name embeds the parent's, so linked pairs always look alike.
            if not cross_tree and source.is_linked(candidate.person_a_id, candidate.person_b_id):
                continue
            current = best.get(candidate.pair)
            if current is None or _outranks(candidate, current):
                best[candidate.pair] = candidate

    excluded = {frozenset(pair) for pair in resolved_pairs}
    cancellation.check("duplicates:rank")
    ranked = sorted(
        (
            candidate
            for pair, candidate in best.items()
            if pair not in excluded and candidate.confidence >= threshold
        ),
        key=_rank_key,
    )
    log.info(
        "Finished duplicate scan for tree %s: %s candidate(s), %s resolved pair(s) skipped",
        source.tree_id,
        len(ranked),
        sum(1 for pair in best if pair in excluded),
    )
    return ranked


def paginate(
    candidates: Sequence[DuplicateCandidate],
    *,
    config: DuplicateConfig,
    page: int = 1,
    page_size: int | None = None,
) -> DuplicatePage:
    if page < 1:
        raise ValueError("page must be >= 1")
    size = config.default_page_size if page_size is None else page_size
    size = max(1, min(size, config.max_page_size))
    start = (page - 1) * size
    return DuplicatePage(
        items=tuple(candidates[start : start + size]),
        total=len(candidates),
        page=page,
        page_size=size,
        summary=summarize(candidates),
    )


def summarize(candidates: Sequence[DuplicateCandidate]) -> dict[MatchType, MatchSummary]:
    by_type: dict[MatchType, list[float]] = defaultdict(list)
    for candidate in candidates:
        by_type[candidate.match_type].append(candidate.confidence)
    return {
        match_type: MatchSummary(
            count=len(scores),
            average_confidence=round(sum(scores) / len(scores), 1),
            min_confidence=min(scores),
            max_confidence=max(scores),
        )
        for match_type, scores in sorted(by_type.items())
    }


def _outranks(candidate: DuplicateCandidate, current: DuplicateCandidate) -> bool:
    if candidate.confidence != current.confidence:
        return candidate.confidence > current.confidence
    return candidate.match_type.value < current.match_type.value


def _rank_key(candidate: DuplicateCandidate) -> tuple[float, str, str, str, str]:
    return (
        -candidate.confidence,
        candidate.match_type.value,
        candidate.evidence.name_a or "",
        str(candidate.person_a_id),
        str(candidate.person_b_id),
    )
