from __future__ import annotations

from uuid import uuid4

import pytest

from kintree.config import DuplicateConfig
from kintree.domain.cancellation import Cancellation
from kintree.domain.duplicates import (
    DuplicateMode,
    DuplicateScope,
    detect_duplicates,
    paginate,
    resolved_pairs,
)
from kintree.domain.errors import ScanCancelledError
from kintree.domain.model import MatchType, Person, PersonLink, Sex
from tests.helpers.family import FamilyBuilder

CONFIG = DuplicateConfig()


def _lineage(builder: FamilyBuilder, *names: str) -> list[Person]:
    """Create a male line, oldest first; returns the people in that order."""
    people = [builder.person(name) for name in names]
    for parent, child in zip(people, people[1:], strict=False):
        builder.parent(parent, child)
    return people


def test_re_entered_lineage_matches_exactly(family: FamilyBuilder) -> None:
    hassan_a, omar_a, ali_a = _lineage(family, "Hassan", "Omar", "Ali")
    hassan_b, omar_b, ali_b = _lineage(family, "Hassan", "Omar", "Ali")

    candidates = detect_duplicates(family.view(), config=CONFIG)

    top = candidates[0]
    assert top.pair == {ali_a.id, ali_b.id}
    assert top.match_type is MatchType.NAME_EXACT
    assert top.confidence == 95.0
    assert top.evidence.name_a == "ali omar hassan"
    assert top.evidence.matched_parts == ("given", "father", "grandfather")
    assert candidates[1].pair == {omar_a.id, omar_b.id}
    by_pair = {candidate.pair: candidate for candidate in candidates}
    # The roots have no parents at all, so only the given-name fallback applies.
    assert by_pair[frozenset((hassan_a.id, hassan_b.id))].confidence == 55.0


def test_each_pair_is_reported_once_with_best_score(family: FamilyBuilder) -> None:
    _lineage(family, "Hassan", "Omar", "Ali")
    _lineage(family, "Hassan", "Omar", "Ali")

    candidates = detect_duplicates(family.view(), config=CONFIG)

    pairs = [candidate.pair for candidate in candidates]
    assert len(pairs) == len(set(pairs))
    confidences = [candidate.confidence for candidate in candidates]
    assert confidences == sorted(confidences, reverse=True)


def test_resolved_pairs_are_excluded(family: FamilyBuilder) -> None:
    _, _, ali_a = _lineage(family, "Hassan", "Omar", "Ali")
    _, _, ali_b = _lineage(family, "Hassan", "Omar", "Ali")
    link = PersonLink(tree_id=family.tree_id, person_a_id=ali_b.id, person_b_id=ali_a.id)

    candidates = detect_duplicates(
        family.view(), config=CONFIG, resolved_pairs=resolved_pairs([link])
    )

    assert frozenset((ali_a.id, ali_b.id)) not in {candidate.pair for candidate in candidates}


def test_min_confidence_filters_after_merging(family: FamilyBuilder) -> None:
    _lineage(family, "Hassan", "Omar", "Ali")
    _lineage(family, "Hassan", "Omar", "Ali")

    candidates = detect_duplicates(family.view(), config=CONFIG, min_confidence=90)

    assert [candidate.confidence for candidate in candidates] == [95.0, 95.0]


def test_different_grandfather_scores_siblings(family: FamilyBuilder) -> None:
    _, omar_a, ali_a = _lineage(family, "Hassan", "Omar", "Ali")
    _, _, ali_b = _lineage(family, "Mahmoud", "Omar", "Ali")
    sister = family.person("Sara", sex=Sex.FEMALE)
    family.parent(omar_a, sister)

    candidates = detect_duplicates(family.view(), config=CONFIG)

    assert len(candidates) == 1
    match = candidates[0]
    assert match.pair == {ali_a.id, ali_b.id}
    assert match.match_type is MatchType.MOTHER_SURN
    assert match.confidence == 65.0
    assert match.evidence.sibling_count == 1


def test_shared_parent_mode(family: FamilyBuilder) -> None:
    father = family.person("Omar")
    first = family.person("Ali")
    second = family.person("Ali")
    family.parent(father, first)
    family.parent(father, second)

    auto = detect_duplicates(family.view(), config=CONFIG)
    shared = detect_duplicates(family.view(), config=CONFIG, mode=DuplicateMode.SHARED_PARENT)

    assert auto[0].match_type is MatchType.NAME_EXACT
    assert shared[0].match_type is MatchType.SHARED_PARENT
    assert shared[0].confidence == 92.0
    assert shared[0].evidence.shared_parent_ids == (father.id,)


def test_similar_names_are_capped(family: FamilyBuilder) -> None:
    _lineage(family, "Hassan", "Omar", "Ali")
    _lineage(family, "Hasan", "Omar", "Ali")

    candidates = detect_duplicates(family.view(), config=CONFIG, mode=DuplicateMode.NAME_SIMILAR)

    assert candidates
    assert all(candidate.match_type is MatchType.NAME_SIMILAR for candidate in candidates)
    assert all(candidate.confidence <= CONFIG.similar_cap for candidate in candidates)


def test_given_name_only_respects_birth_window(family: FamilyBuilder) -> None:
    family.person("Yusuf", birth_year=1950)
    family.person("Yusuf", birth_year=1953)
    family.person("Yusuf", birth_year=1970)

    candidates = detect_duplicates(family.view(), config=CONFIG)

    assert len(candidates) == 1
    assert candidates[0].confidence == CONFIG.given_only_confidence


def test_different_sexes_never_match(family: FamilyBuilder) -> None:
    family.person("Nur", sex=Sex.MALE)
    family.person("Nur", sex=Sex.FEMALE)

    assert detect_duplicates(family.view(), config=CONFIG) == []


def test_cross_tree_compares_only_across(family: FamilyBuilder) -> None:
    _, _, ali_source = _lineage(family, "Hassan", "Omar", "Ali")
    target = FamilyBuilder()
    _, _, ali_target = _lineage(target, "Hassan", "Omar", "Ali")
    family.person("Ali")

    candidates = detect_duplicates(family.view(), config=CONFIG, target=target.view())

    assert candidates[0].person_a_id == ali_source.id
    assert candidates[0].person_b_id == ali_target.id
    assert all(
        candidate.person_b_id in {person.id for person in target.people}
        for candidate in candidates
    )


def test_scope_with_same_target_is_single_tree() -> None:
    tree_id = uuid4()

    same = DuplicateScope(tree_id=tree_id, target_tree_id=tree_id)
    cross = DuplicateScope(tree_id=tree_id, target_tree_id=uuid4())

    assert not same.is_cross_tree
    assert same.tree_ids == (tree_id,)
    assert cross.is_cross_tree
    assert cross.tree_ids == (tree_id, cross.target_tree_id)


def test_cancelled_scan_raises(family: FamilyBuilder) -> None:
    _lineage(family, "Hassan", "Omar", "Ali")
    cancellation = Cancellation()
    cancellation.cancel()

    with pytest.raises(ScanCancelledError) as excinfo:
        detect_duplicates(family.view(), config=CONFIG, cancellation=cancellation)

    assert excinfo.value.stage.startswith("duplicates:")


def test_expired_deadline_cancels() -> None:
    ticks = iter([0.0, 10.0])
    cancellation = Cancellation.with_timeout(5.0, clock=lambda: next(ticks))

    with pytest.raises(ScanCancelledError, match="deadline"):
        cancellation.check("duplicates:name_exact")


def test_paginate_summarises_all_candidates(family: FamilyBuilder) -> None:
    _lineage(family, "Hassan", "Omar", "Ali")
    _lineage(family, "Hassan", "Omar", "Ali")
    candidates = detect_duplicates(family.view(), config=CONFIG)

    page = paginate(candidates, config=CONFIG, page=2, page_size=2)

    assert page.total == len(candidates)
    assert page.pages == -(-len(candidates) // 2)
    assert page.items == tuple(candidates[2:4])
    exact = page.summary[MatchType.NAME_EXACT]
    assert exact.max_confidence == 95.0
    assert exact.min_confidence == 55.0
    assert sum(summary.count for summary in page.summary.values()) == len(candidates)


def test_paginate_validates_and_clamps() -> None:
    with pytest.raises(ValueError, match="page"):
        paginate([], config=CONFIG, page=0)

    page = paginate([], config=CONFIG, page_size=10_000)

    assert page.page_size == CONFIG.max_page_size
    assert page.pages == 1
