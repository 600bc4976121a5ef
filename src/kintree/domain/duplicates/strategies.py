"""Duplicate matching strategies.

People are often re-entered under the patronymic convention (given name,
father's given name, grandfather's given name), so each person gets a
``NameProfile`` with that composite name, built by following the father (the
male parent) two generations up. Each strategy compares profiles and yields
scored candidates; merging and filtering happen in ``detect``.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from itertools import combinations
from typing import TYPE_CHECKING

from kintree.domain.model import MatchType
from kintree.domain.names import composite_name, normalize_name, similarity

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterator, Sequence
    from uuid import UUID

    from kintree.config import DuplicateConfig
    from kintree.domain.cancellation import Cancellation
    from kintree.domain.graph import ActiveGraphView
    from kintree.domain.model import Person

_CANCEL_EVERY = 256


@dataclass(frozen=True, slots=True)
class NameProfile:
    person: Person
    given: str | None
    father: str | None
    grandfather: str | None
    parent_ids: frozenset[UUID]

    @property
    def full(self) -> str | None:
        return composite_name(self.given, self.father, self.grandfather)

    @property
    def has_lineage(self) -> bool:
        return self.father is not None or self.grandfather is not None


@dataclass(frozen=True, slots=True)
class MatchEvidence:
    name_a: str | None
    name_b: str | None
    matched_parts: tuple[str, ...] = ()
    similarity: float = 0.0
    shared_parent_ids: tuple[UUID, ...] = ()
    sibling_count: int = 0


@dataclass(frozen=True, slots=True)
class DuplicateCandidate:
    person_a_id: UUID
    person_b_id: UUID
    match_type: MatchType
    confidence: float
    evidence: MatchEvidence = field(default_factory=lambda: MatchEvidence(None, None))

    @property
    def pair(self) -> frozenset[UUID]:
        return frozenset((self.person_a_id, self.person_b_id))


@dataclass(slots=True)
class MatchContext:
    """Profiles on both sides of the comparison; ``right`` is None within one tree."""

    left: Sequence[NameProfile]
    right: Sequence[NameProfile] | None
    source: ActiveGraphView
    config: DuplicateConfig
    cancellation: Cancellation

    @property
    def same_tree(self) -> bool:
        return self.right is None


type Strategy = Callable[[MatchContext], list[DuplicateCandidate]]


def build_profiles(view: ActiveGraphView) -> list[NameProfile]:
    profiles: list[NameProfile] = []
    for person in view.people:
        father = view.father_of(person.id)
        grandfather = view.father_of(father.id) if father is not None else None
        profiles.append(
            NameProfile(
                person=person,
                given=normalize_name(person.comparison_name),
                father=normalize_name(father.comparison_name) if father else None,
                grandfather=normalize_name(grandfather.comparison_name) if grandfather else None,
                parent_ids=view.parent_ids(person.id),
            )
        )
    return profiles


def _candidate(
    first: NameProfile,
    second: NameProfile,
    match_type: MatchType,
    confidence: float,
    **evidence: object,
) -> DuplicateCandidate:
    return DuplicateCandidate(
        person_a_id=first.person.id,
        person_b_id=second.person.id,
        match_type=match_type,
        confidence=round(confidence, 2),
        evidence=MatchEvidence(
            name_a=first.full,
            name_b=second.full,
            **evidence,  # type: ignore[arg-type]
        ),
    )


def _pairs(
    context: MatchContext,
    key: Callable[[NameProfile], Hashable | None],
) -> Iterator[tuple[NameProfile, NameProfile]]:
    """Pairs of profiles sharing a non-None ``key``, compared across sides."""

    buckets: dict[Hashable, list[NameProfile]] = defaultdict(list)
    for profile in context.right if context.right is not None else context.left:
        bucket_key = key(profile)
        if bucket_key is not None:
            buckets[bucket_key].append(profile)
    if context.right is None:
        for group in buckets.values():
            yield from combinations(group, 2)
        return
    for profile in context.left:
        bucket_key = key(profile)
        if bucket_key is None:
            continue
        for other in buckets.get(bucket_key, ()):
            yield profile, other


def exact_composite(context: MatchContext) -> list[DuplicateCandidate]:
    context.cancellation.check("duplicates:name_exact")

    def key(profile: NameProfile) -> tuple[str, str] | None:
        if not profile.has_lineage or profile.full is None:
            return None
        return (profile.person.sex.value, profile.full)

    return [
        _candidate(
            first,
            second,
            MatchType.NAME_EXACT,
            context.config.exact_confidence,
            matched_parts=_parts(first),
            similarity=1.0,
        )
        for first, second in _pairs(context, key)
    ]


def similar_composite(context: MatchContext) -> list[DuplicateCandidate]:
    config = context.config
    left = [profile for profile in context.left if profile.has_lineage and profile.full]
    right = (
        left
        if context.right is None
        else [profile for profile in context.right if profile.has_lineage and profile.full]
    )
    candidates: list[DuplicateCandidate] = []
    for index, first in enumerate(left):
        if index % _CANCEL_EVERY == 0:
            context.cancellation.check("duplicates:name_similar")
        others = right[index + 1 :] if context.right is None else right
        for second in others:
            if first.full is None or second.full is None:
                continue
            if first.person.sex is not second.person.sex or first.full == second.full:
                continue
            score = similarity(first.full, second.full)
            if score < config.similarity_threshold:
                continue
            candidates.append(
                _candidate(
                    first,
                    second,
                    MatchType.NAME_SIMILAR,
                    min(score * 100, config.similar_cap),
                    matched_parts=_shared_parts(first, second),
                    similarity=round(score, 4),
                )
            )
    return candidates


def different_grandfather(context: MatchContext) -> list[DuplicateCandidate]:
    """Same given name and father, grandfathers differ or one is missing."""

    context.cancellation.check("duplicates:mother_surn")
    if not context.same_tree:
        return []
    config = context.config
    view = context.source

    def key(profile: NameProfile) -> tuple[str, str, str] | None:
        if profile.given is None or profile.father is None:
            return None
        return (profile.person.sex.value, profile.given, profile.father)

    candidates: list[DuplicateCandidate] = []
    for first, second in _pairs(context, key):
        if first.grandfather is not None and first.grandfather == second.grandfather:
            continue
        if first.grandfather is None and second.grandfather is None:
            continue
        siblings = {
            child_id
            for parent_id in first.parent_ids | second.parent_ids
            for child_id in view.child_ids(parent_id)
        } - {first.person.id, second.person.id}
        confidence = min(
            config.mother_surn_base + config.mother_surn_sibling_boost * len(siblings),
            config.mother_surn_cap,
        )
        candidates.append(
            _candidate(
                first,
                second,
                MatchType.MOTHER_SURN,
                confidence,
                matched_parts=("given", "father"),
                similarity=0.6,
                sibling_count=len(siblings),
            )
        )
    return candidates


def shared_parent(context: MatchContext) -> list[DuplicateCandidate]:
    context.cancellation.check("duplicates:shared_parent")
    if not context.same_tree:
        return []

    def key(profile: NameProfile) -> tuple[str, str] | None:
        if profile.given is None or not profile.parent_ids:
            return None
        return (profile.person.sex.value, profile.given)

    candidates: list[DuplicateCandidate] = []
    for first, second in _pairs(context, key):
        shared = first.parent_ids & second.parent_ids
        if not shared:
            continue
        candidates.append(
            _candidate(
                first,
                second,
                MatchType.SHARED_PARENT,
                context.config.shared_parent_confidence,
                matched_parts=("given",),
                similarity=round(context.config.shared_parent_confidence / 100, 2),
                shared_parent_ids=tuple(sorted(shared, key=str)),
            )
        )
    return candidates


def given_name_only(context: MatchContext) -> list[DuplicateCandidate]:
    """Low-confidence fallback for people with no parent links at all."""

    context.cancellation.check("duplicates:given_only")
    config = context.config

    def key(profile: NameProfile) -> tuple[str, str] | None:
        if profile.parent_ids or profile.given is None or len(profile.given) <= 1:
            return None
        return (profile.person.sex.value, profile.given)

    candidates: list[DuplicateCandidate] = []
    for first, second in _pairs(context, key):
        first_year = first.person.birth_year
        second_year = second.person.birth_year
        if (
            first_year is not None
            and second_year is not None
            and abs(first_year - second_year) > config.given_only_birth_window
        ):
            continue
        candidates.append(
            _candidate(
                first,
                second,
                MatchType.NAME_EXACT,
                config.given_only_confidence,
                matched_parts=("given",),
                similarity=1.0,
            )
        )
    return candidates


def _parts(profile: NameProfile) -> tuple[str, ...]:
    parts = [
        name
        for name, value in (
            ("given", profile.given),
            ("father", profile.father),
            ("grandfather", profile.grandfather),
        )
        if value is not None
    ]
    return tuple(parts)


def _shared_parts(first: NameProfile, second: NameProfile) -> tuple[str, ...]:
    parts = [
        name
        for name, one, other in (
            ("given", first.given, second.given),
            ("father", first.father, second.father),
            ("grandfather", first.grandfather, second.grandfather),
        )
        if one is not None and one == other
    ]
    return tuple(parts)
