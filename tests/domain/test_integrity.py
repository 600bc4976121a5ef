from __future__ import annotations

import random
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from kintree.domain.errors import (
    CycleDetectedError,
    DuplicateEdgeError,
    DuplicateUnionError,
    PersonNotFoundError,
    SelfParentageError,
    TenantMismatchError,
)
from kintree.domain.integrity import check_parent_edge, check_union
from kintree.domain.model import ParentChildType, Sex
from tests.helpers.family import FamilyBuilder, nuclear_family

if TYPE_CHECKING:
    from uuid import UUID

    from kintree.domain.graph import ActiveGraphView


def _has_cycle(view: ActiveGraphView) -> bool:
    visiting: set[UUID] = set()
    done: set[UUID] = set()

    def visit(person_id: UUID) -> bool:
        if person_id in done:
            return False
        if person_id in visiting:
            return True
        visiting.add(person_id)
        if any(visit(parent_id) for parent_id in view.parent_ids(person_id)):
            return True
        visiting.discard(person_id)
        done.add(person_id)
        return False

    return any(visit(person.id) for person in view.people)


def test_self_parentage_is_rejected(family: FamilyBuilder) -> None:
    person = family.person("Solo")

    error = check_parent_edge(
        family.view(),
        parent_id=person.id,
        child_id=person.id,
        edge_type=ParentChildType.BIOLOGICAL,
    )

    assert isinstance(error, SelfParentageError)


def test_reverse_edge_is_a_cycle(family: FamilyBuilder) -> None:
    x = family.person("X")
    y = family.person("Y")
    family.parent(x, y)

    error = check_parent_edge(
        family.view(), parent_id=y.id, child_id=x.id, edge_type=ParentChildType.BIOLOGICAL
    )

    assert isinstance(error, CycleDetectedError)
    assert error.chain == (y.id, x.id)


def test_grandchild_as_parent_reports_full_chain(family: FamilyBuilder) -> None:
    people = nuclear_family(family)

    error = check_parent_edge(
        family.view(),
        parent_id=people["ali"].id,
        child_id=people["hassan"].id,
        edge_type=ParentChildType.ADOPTIVE,
    )

    assert isinstance(error, CycleDetectedError)
    assert error.chain == (people["ali"].id, people["omar"].id, people["hassan"].id)
    assert error.details["chain"] == [str(person_id) for person_id in error.chain]


def test_duplicate_edge_reports_existing_id(family: FamilyBuilder) -> None:
    parent = family.person("Parent")
    child = family.person("Child")
    edge = family.parent(parent, child)

    error = check_parent_edge(
        family.view(), parent_id=parent.id, child_id=child.id, edge_type=ParentChildType.BIOLOGICAL
    )

    assert isinstance(error, DuplicateEdgeError)
    assert error.existing_edge_id == edge.id


def test_same_pair_with_another_type_is_allowed(family: FamilyBuilder) -> None:
    parent = family.person("Parent")
    child = family.person("Child")
    family.parent(parent, child)

    error = check_parent_edge(
        family.view(), parent_id=parent.id, child_id=child.id, edge_type=ParentChildType.ADOPTIVE
    )

    assert error is None


def test_deleted_person_is_not_found(family: FamilyBuilder) -> None:
    parent = family.person("Parent")
    child = family.person("Child")
    child.soft_delete()
    stored = {person.id: person for person in family.people}

    error = check_parent_edge(
        family.view(),
        parent_id=parent.id,
        child_id=child.id,
        edge_type=ParentChildType.BIOLOGICAL,
        lookup=stored.get,
    )

    assert isinstance(error, PersonNotFoundError)
    assert error.person_id == child.id


def test_person_from_other_tree_is_a_tenant_mismatch(family: FamilyBuilder) -> None:
    parent = family.person("Parent")
    outsider = FamilyBuilder().person("Outsider")
    stored = {parent.id: parent, outsider.id: outsider}

    error = check_parent_edge(
        family.view(),
        parent_id=parent.id,
        child_id=outsider.id,
        edge_type=ParentChildType.BIOLOGICAL,
        lookup=stored.get,
    )

    assert isinstance(error, TenantMismatchError)


def test_deleted_edge_does_not_block_or_close_cycles(family: FamilyBuilder) -> None:
    x = family.person("X")
    y = family.person("Y")
    family.parent(x, y).soft_delete()

    assert (
        check_parent_edge(
            family.view(), parent_id=y.id, child_id=x.id, edge_type=ParentChildType.BIOLOGICAL
        )
        is None
    )
    assert (
        check_parent_edge(
            family.view(), parent_id=x.id, child_id=y.id, edge_type=ParentChildType.BIOLOGICAL
        )
        is None
    )


def test_union_requires_two_distinct_people(family: FamilyBuilder) -> None:
    person = family.person("Solo")

    with pytest.raises(ValueError, match="two distinct"):
        check_union(family.view(), person_ids=[person.id, person.id])


def test_union_with_same_members_is_duplicate(family: FamilyBuilder) -> None:
    husband = family.person("Husband")
    wife = family.person("Wife", sex=Sex.FEMALE)
    union = family.union(husband, wife)

    error = check_union(family.view(), person_ids=[wife.id, husband.id])

    assert isinstance(error, DuplicateUnionError)
    assert error.existing_union_id == union.id


def test_union_with_missing_member_is_rejected(family: FamilyBuilder) -> None:
    husband = family.person("Husband")

    error = check_union(family.view(), person_ids=[husband.id, uuid4()])

    assert isinstance(error, PersonNotFoundError)


def test_random_edge_sequences_never_create_cycles() -> None:
    rng = random.Random(20240611)
    for _ in range(20):
        builder = FamilyBuilder()
        people = [builder.person(f"P{index}") for index in range(12)]
        for _ in range(60):
            parent, child = rng.sample(people, 2)
            view = builder.view()
            error = check_parent_edge(
                view,
                parent_id=parent.id,
                child_id=child.id,
                edge_type=ParentChildType.BIOLOGICAL,
            )
            if error is None:
                builder.parent(parent, child)
            assert not _has_cycle(builder.view())
