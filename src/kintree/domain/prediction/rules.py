"""Structural and naming rules that propose missing relationships.

Each rule is a pure function of an ``ActiveGraphView`` and the prediction
settings. Rules never touch storage; the engine aggregates their candidates
and decides what to persist.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from itertools import combinations, permutations
from typing import TYPE_CHECKING

from kintree.domain.cancellation import Cancellation
from kintree.domain.model import PredictedType, Sex
from kintree.domain.names import name_tokens

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from datetime import date
    from uuid import UUID

    from kintree.config import PredictionConfig
    from kintree.domain.graph import ActiveGraphView
    from kintree.domain.model import Person

DAYS_PER_YEAR = 365.25

SPOUSE_CHILD_GAP_CONFIDENCE = 85.0
SPOUSE_CHILD_GAP_DURING_UNION = 95.0
SPOUSE_CHILD_GAP_OUTSIDE_UNION = 60.0

OPPOSITE_SEX_BOOST = 5.0

PATRONYMIC_BASE = 35.0
PATRONYMIC_BOOST = 10.0
PATRONYMIC_CAP = 65.0
PATRONYMIC_MINIMUM = 40.0

AGE_FAMILY_IDEAL = 55.0
AGE_FAMILY_WIDE = 45.0
AGE_FAMILY_IDEAL_GAP = (20, 40)


@dataclass(frozen=True, slots=True)
class PredictionCandidate:
    rule_id: str
    predicted_type: PredictedType
    source_person_id: UUID
    target_person_id: UUID
    confidence: float
    explanation: str

    @property
    def key(self) -> tuple[UUID, UUID, PredictedType]:
        return (self.source_person_id, self.target_person_id, self.predicted_type)


type Rule = Callable[
    [ActiveGraphView, PredictionConfig, Cancellation | None], list[PredictionCandidate]
]


def spouse_child_gap(
    view: ActiveGraphView,
    config: PredictionConfig,
    cancellation: Cancellation | None = None,
) -> list[PredictionCandidate]:
    """A union partner of a child's only recorded parent is probably the other parent."""

    tick = _ticker(cancellation, "spouse_child_gap")
    candidates: list[PredictionCandidate] = []
    for union in view.unions:
        members = [member_id for member_id in union.member_ids if member_id in view]
        for parent_id, partner_id in permutations(members, 2):
            for child_id in _sorted(view.child_ids(parent_id)):
                tick()
                if partner_id in view.parent_ids(child_id):
                    continue
                if len(view.biological_parent_ids(child_id)) >= 2:  # noqa: PLR2004
                    continue
                child = _person(view, child_id)
                confidence = SPOUSE_CHILD_GAP_CONFIDENCE
                if child.birth is not None and child.birth.value is not None:
                    during = union.spans(child.birth.value)
                    if during is True:
                        confidence = SPOUSE_CHILD_GAP_DURING_UNION
                    elif during is False:
                        confidence = SPOUSE_CHILD_GAP_OUTSIDE_UNION
                partner = _name(view, partner_id)
                candidates.append(
                    PredictionCandidate(
                        rule_id="spouse_child_gap",
                        predicted_type=PredictedType.PARENT_CHILD,
                        source_person_id=partner_id,
                        target_person_id=child_id,
                        confidence=confidence,
                        explanation=(
                            f"{partner} is in a union with {_name(view, parent_id)} who is parent "
                            f"of {child.display_name}, but {partner} is not linked as parent"
                        ),
                    )
                )
    return candidates


def missing_union(
    view: ActiveGraphView,
    config: PredictionConfig,
    cancellation: Cancellation | None = None,
) -> list[PredictionCandidate]:
    """Co-parents of at least one child who share no union."""

    tick = _ticker(cancellation, "missing_union")
    candidates: list[PredictionCandidate] = []
    checked: set[frozenset[UUID]] = set()
    for child_id in _co_parented(view):
        for first_id, second_id in combinations(_sorted(view.parent_ids(child_id)), 2):
            tick()
            pair = frozenset((first_id, second_id))
            if pair in checked:
                continue
            checked.add(pair)
            if view.shared_union(first_id, second_id) is not None:
                continue
            shared = len(view.child_ids(first_id) & view.child_ids(second_id))
            confidence = _by_count(shared, ((3, 95.0), (2, 90.0), (1, 80.0)), default=70.0)
            first = _person(view, first_id)
            second = _person(view, second_id)
            if Sex.UNKNOWN not in {first.sex, second.sex} and first.sex is not second.sex:
                confidence = min(confidence + OPPOSITE_SEX_BOOST, config.max_confidence)
            candidates.append(
                PredictionCandidate(
                    rule_id="missing_union",
                    predicted_type=PredictedType.UNION,
                    source_person_id=first_id,
                    target_person_id=second_id,
                    confidence=confidence,
                    explanation=(
                        f"{first.display_name} and {second.display_name} are both parents of "
                        f"{shared} child(ren) but have no union"
                    ),
                )
            )
    return candidates


def sibling_parent_gap(
    view: ActiveGraphView,
    config: PredictionConfig,
    cancellation: Cancellation | None = None,
) -> list[PredictionCandidate]:
    """Siblings have both partners as parents but this child only has one of them."""

    tick = _ticker(cancellation, "sibling_parent_gap")
    candidates: list[PredictionCandidate] = []
    checked: set[frozenset[UUID]] = set()
    processed: set[tuple[UUID, UUID]] = set()
    for child_id in _co_parented(view):
        for first_id, second_id in combinations(_sorted(view.parent_ids(child_id)), 2):
            tick()
            pair = frozenset((first_id, second_id))
            if pair in checked:
                continue
            checked.add(pair)
            if view.shared_union(first_id, second_id) is None:
                continue
            with_both = len(view.child_ids(first_id) & view.child_ids(second_id))
            confidence = _by_count(with_both, ((3, 90.0), (1, 80.0)), default=70.0)
            for known_id, missing_id in ((first_id, second_id), (second_id, first_id)):
                for sibling_id in _sorted(view.child_ids(known_id) - view.child_ids(missing_id)):
                    tick()
                    if (missing_id, sibling_id) in processed:
                        continue
                    processed.add((missing_id, sibling_id))
                    if len(view.biological_parent_ids(sibling_id)) >= 2:  # noqa: PLR2004
                        continue
                    known = _name(view, known_id)
                    candidates.append(
                        PredictionCandidate(
                            rule_id="sibling_parent_gap",
                            predicted_type=PredictedType.PARENT_CHILD,
                            source_person_id=missing_id,
                            target_person_id=sibling_id,
                            confidence=confidence,
                            explanation=(
                                f"{_name(view, missing_id)} is in a union with {known}. "
                                f"{with_both} sibling(s) have both parents, but "
                                f"{_name(view, sibling_id)} only has {known}"
                            ),
                        )
                    )
    return candidates


def patronymic_name(
    view: ActiveGraphView,
    config: PredictionConfig,
    cancellation: Cancellation | None = None,
) -> list[PredictionCandidate]:
    """A person's second name token is another person's given name.

    Under the patronymic convention the second token names the father, so the
    match hints at a parent. Corroborating sex, family and age raise the score.
    """

    tick = _ticker(cancellation, "patronymic_name")
    parsed: list[tuple[Person, str, str | None]] = []
    by_given: dict[str, list[Person]] = defaultdict(list)
    for person in view.people:
        tick()
        tokens = name_tokens(person.comparison_name)
        if not tokens or len(tokens[0]) <= 1:
            continue
        father_token = tokens[1] if len(tokens) > 1 else None
        parsed.append((person, tokens[0], father_token))
        by_given[tokens[0]].append(person)

    candidates: list[PredictionCandidate] = []
    for child, _, father_token in parsed:
        if father_token is None:
            continue
        for parent in by_given.get(father_token, ()):
            tick()
            if parent.id == child.id or view.is_linked(parent.id, child.id):
                continue
            confidence = PATRONYMIC_BASE
            if parent.sex is Sex.MALE:
                confidence += PATRONYMIC_BOOST
            if child.family_id is not None and child.family_id == parent.family_id:
                confidence += PATRONYMIC_BOOST
            gap = age_gap_years(parent, child)
            if gap is not None:
                if config.min_parent_age_gap <= gap <= config.max_parent_age_gap:
                    confidence += PATRONYMIC_BOOST
                elif gap < 0 or gap > config.max_plausible_age_gap:
                    continue
            confidence = min(confidence, PATRONYMIC_CAP)
            if confidence < PATRONYMIC_MINIMUM:
                continue
            candidates.append(
                PredictionCandidate(
                    rule_id="patronymic_name",
                    predicted_type=PredictedType.PARENT_CHILD,
                    source_person_id=parent.id,
                    target_person_id=child.id,
                    confidence=confidence,
                    explanation=(
                        f"{child.comparison_name}'s second name matches "
                        f"{parent.comparison_name}'s given name (Arabic patronymic pattern)"
                    ),
                )
            )
    return _top(candidates, config.rule_result_limit)


def age_family(
    view: ActiveGraphView,
    config: PredictionConfig,
    cancellation: Cancellation | None = None,
) -> list[PredictionCandidate]:
    """Members of the same family whose ages fit a parent and child."""

    tick = _ticker(cancellation, "age_family")
    families: dict[UUID, list[Person]] = defaultdict(list)
    for person in view.people:
        if person.family_id is not None and _birth_date(person) is not None:
            families[person.family_id].append(person)

    low, high = AGE_FAMILY_IDEAL_GAP
    candidates: list[PredictionCandidate] = []
    for members in families.values():
        for older, younger in permutations(members, 2):
            tick()
            gap = age_gap_years(older, younger)
            if gap is None or not config.min_parent_age_gap <= gap <= config.max_parent_age_gap:
                continue
            if view.is_linked(older.id, younger.id):
                continue
            candidates.append(
                PredictionCandidate(
                    rule_id="age_family",
                    predicted_type=PredictedType.PARENT_CHILD,
                    source_person_id=older.id,
                    target_person_id=younger.id,
                    confidence=AGE_FAMILY_IDEAL if low <= gap <= high else AGE_FAMILY_WIDE,
                    explanation=(
                        f"{older.comparison_name or older.display_name} and "
                        f"{younger.comparison_name or younger.display_name} are in the same "
                        f"family with a {round(gap)}-year age gap"
                    ),
                )
            )
    return _top(candidates, config.rule_result_limit)


RULES: dict[str, Rule] = {
    "spouse_child_gap": spouse_child_gap,
    "missing_union": missing_union,
    "sibling_parent_gap": sibling_parent_gap,
    "patronymic_name": patronymic_name,
    "age_family": age_family,
}


def age_gap_years(older: Person, younger: Person) -> float | None:
    """Years from ``older``'s birth to ``younger``'s birth; None when either is unknown."""

    older_birth = _birth_date(older)
    younger_birth = _birth_date(younger)
    if older_birth is None or younger_birth is None:
        return None
    return (younger_birth - older_birth).days / DAYS_PER_YEAR


def _birth_date(person: Person) -> date | None:
    return person.birth.value if person.birth is not None else None


def _co_parented(view: ActiveGraphView) -> list[UUID]:
    return [
        person.id
        for person in sorted(view.people, key=lambda person: str(person.id))
        if len(view.parent_ids(person.id)) >= 2  # noqa: PLR2004
    ]


def _ticker(cancellation: Cancellation | None, rule_id: str) -> Callable[[], None]:
    return (cancellation or Cancellation()).ticker(f"predictions:{rule_id}")


def _by_count(count: int, bands: tuple[tuple[int, float], ...], *, default: float) -> float:
    for minimum, confidence in bands:
        if count >= minimum:
            return confidence
    return default


def _person(view: ActiveGraphView, person_id: UUID) -> Person:
    person = view.person(person_id)
    if person is None:
        raise KeyError(person_id)
    return person


def _name(view: ActiveGraphView, person_id: UUID) -> str:
    person = view.person(person_id)
    return person.display_name if person is not None else "?"


def _sorted(ids: Iterable[UUID]) -> list[UUID]:
    return sorted(ids, key=str)


def _top(candidates: list[PredictionCandidate], limit: int) -> list[PredictionCandidate]:
    ranked = sorted(
        candidates,
        key=lambda candidate: (
            -candidate.confidence,
            str(candidate.source_person_id),
            str(candidate.target_person_id),
        ),
    )
    return ranked[:limit]
