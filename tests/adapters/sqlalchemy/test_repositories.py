from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from kintree.domain.model import (
    ConfidenceLevel,
    PersonLink,
    PersonLinkStatus,
    PredictedRelationship,
    PredictedType,
    PredictionStatus,
)
from tests.helpers.family import FamilyBuilder

if TYPE_CHECKING:
    from collections.abc import Callable

    from kintree.adapters.sqlalchemy.unit_of_work import SqlAlchemyGraphUnitOfWork
    from kintree.domain.model import Person

type Factory = Callable[[], SqlAlchemyGraphUnitOfWork]


def _prediction(
    source: Person, target: Person, predicted_type: PredictedType
) -> PredictedRelationship:
    return PredictedRelationship(
        tree_id=source.tree_id,
        source_person_id=source.id,
        target_person_id=target.id,
        predicted_type=predicted_type,
        rule_id="missing_union",
        confidence=90.0,
        confidence_level=ConfidenceLevel.HIGH,
        explanation="shared children",
        batch_id=uuid4(),
    )


def test_list_for_tree_only_returns_that_tree(sqlite_unit_of_work: Factory) -> None:
    mine = FamilyBuilder()
    theirs = FamilyBuilder()
    hassan = mine.person("Hassan")
    omar = mine.person("Omar")
    mine.parent(hassan, omar)
    theirs.person("Zainab")
    mine.persist(sqlite_unit_of_work)
    theirs.persist(sqlite_unit_of_work)

    with sqlite_unit_of_work() as uow:
        people = uow.repositories.people.list_for_tree(mine.tree_id)
        edges = uow.repositories.edges.list_for_tree(mine.tree_id)
        unions = uow.repositories.unions.list_for_tree(mine.tree_id)

    assert {person.id for person in people} == {hassan.id, omar.id}
    assert [(edge.parent_id, edge.child_id) for edge in edges] == [(hassan.id, omar.id)]
    assert unions == []


def test_person_links_touching_a_tree_are_listed(sqlite_unit_of_work: Factory) -> None:
    mine = FamilyBuilder()
    theirs = FamilyBuilder()
    unrelated = FamilyBuilder()
    ali = mine.person("Ali")
    ali_elsewhere = theirs.person("Ali")
    first = unrelated.person("Nur")
    second = unrelated.person("Nur")
    for builder in (mine, theirs, unrelated):
        builder.persist(sqlite_unit_of_work)

    cross = PersonLink(
        tree_id=theirs.tree_id,
        person_a_id=ali_elsewhere.id,
        person_b_id=ali.id,
        status=PersonLinkStatus.APPROVED,
    )
    other = PersonLink(tree_id=unrelated.tree_id, person_a_id=first.id, person_b_id=second.id)
    with sqlite_unit_of_work() as uow:
        uow.repositories.person_links.add(cross)
        uow.repositories.person_links.add(other)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        links = uow.repositories.person_links.list_for_trees([mine.tree_id])

    assert [link.id for link in links] == [cross.id]
    assert links[0].pair == {ali.id, ali_elsewhere.id}


def test_prediction_repository_filters_and_keys(sqlite_unit_of_work: Factory) -> None:
    family = FamilyBuilder()
    father = family.person("Fahd")
    mother = family.person("Mona")
    child = family.person("Layla")
    family.persist(sqlite_unit_of_work)
    union = _prediction(father, mother, PredictedType.UNION)
    edge = _prediction(father, child, PredictedType.PARENT_CHILD)
    edge.dismiss(reviewer="reviewer")

    with sqlite_unit_of_work() as uow:
        uow.repositories.predictions.add(union)
        uow.repositories.predictions.add(edge)
        uow.commit()

    with sqlite_unit_of_work() as uow:
        repository = uow.repositories.predictions
        open_ids = [
            prediction.id
            for prediction in repository.list_for_tree(
                family.tree_id, statuses={PredictionStatus.NEW}
            )
        ]
        everything = repository.list_for_tree(family.tree_id)
        keys = repository.existing_keys(family.tree_id)
        stored = repository.get(edge.id)

    assert open_ids == [union.id]
    assert len(everything) == 2
    assert keys == {union.key, edge.key}
    assert stored is not None
    assert stored.status is PredictionStatus.DISMISSED
    assert stored.resolved_at is not None
