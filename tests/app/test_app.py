from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from kintree import app
from kintree.domain.duplicates import DuplicateAction, DuplicateScope
from kintree.domain.errors import PersonNotFoundError
from kintree.domain.graph import load_active_view
from kintree.domain.integrity import EdgeOutcome
from kintree.domain.kinship import KinshipStatus
from kintree.domain.model import PersonLinkStatus, Sex
from tests.helpers.family import nuclear_family

if TYPE_CHECKING:
    from collections.abc import Callable

    from kintree.adapters.sqlalchemy.unit_of_work import SqlAlchemyGraphUnitOfWork
    from kintree.config import GraphConfig
    from tests.helpers.family import FamilyBuilder

type Factory = Callable[[], SqlAlchemyGraphUnitOfWork]


def test_unit_of_work_starts_adapter_on_demand(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr("kintree.app.is_started", lambda: False)
    monkeypatch.setattr("kintree.app.startup", lambda: calls.append("startup"))

    factory = app._unit_of_work(None)  # noqa: SLF001  # pyright: ignore[reportPrivateUsage]

    assert calls == ["startup"]
    assert factory is app.SqlAlchemyGraphUnitOfWork


def test_classify_relationship_reads_through_unit_of_work(
    sqlite_unit_of_work: Factory,
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    people = nuclear_family(family)
    family.persist(sqlite_unit_of_work)

    result = app.classify_relationship(
        tree_id=family.tree_id,
        person_a_id=people["hassan"].id,
        person_b_id=people["sara"].id,
        config=graph_config,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert result.status is KinshipStatus.RELATED
    assert result.label is not None
    assert result.label.term == "Granddaughter"


def test_propose_edge_invalidates_cached_view(
    sqlite_unit_of_work: Factory,
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    people = nuclear_family(family)
    family.persist(sqlite_unit_of_work)
    app.classify_relationship(
        tree_id=family.tree_id,
        person_a_id=people["ali"].id,
        person_b_id=people["yusuf"].id,
        config=graph_config,
        unit_of_work_factory=sqlite_unit_of_work,
    )
    assert family.tree_id in app.snapshot_cache()

    proposal = app.propose_edge(
        tree_id=family.tree_id,
        parent_id=people["ali"].id,
        child_id=people["hassan"].id,
        config=graph_config,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert proposal.outcome is EdgeOutcome.CYCLE_DETECTED
    assert family.tree_id in app.snapshot_cache()

    newborn = family.person("Hadi", birth_year=2010)
    with sqlite_unit_of_work() as uow:
        uow.repositories.people.add(newborn)
        uow.commit()
    created = app.propose_edge(
        tree_id=family.tree_id,
        parent_id=people["ali"].id,
        child_id=newborn.id,
        config=graph_config,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert created.outcome is EdgeOutcome.CREATED
    assert family.tree_id not in app.snapshot_cache()
    result = app.classify_relationship(
        tree_id=family.tree_id,
        person_a_id=people["hassan"].id,
        person_b_id=newborn.id,
        config=graph_config,
        unit_of_work_factory=sqlite_unit_of_work,
    )
    assert result.label is not None
    assert result.label.term == "Great-grandson"


def test_propose_union_through_app(
    sqlite_unit_of_work: Factory,
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    first = family.person("Ali")
    second = family.person("Huda")
    family.persist(sqlite_unit_of_work)

    proposal = app.propose_union(
        tree_id=family.tree_id,
        person_ids=[first.id, second.id],
        config=graph_config,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert proposal.outcome is EdgeOutcome.CREATED
    with sqlite_unit_of_work() as uow:
        view = load_active_view(uow.repositories, family.tree_id)
    assert view.shared_union(first.id, second.id) is not None


def test_resolved_duplicates_are_not_reported_again(
    sqlite_unit_of_work: Factory,
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    first = family.person("Ali", birth_year=1980)
    second = family.person("Ali", birth_year=1981)
    family.persist(sqlite_unit_of_work)
    scope = DuplicateScope(tree_id=family.tree_id)

    before = app.detect_duplicates(
        scope=scope, config=graph_config, unit_of_work_factory=sqlite_unit_of_work
    )
    approved = app.resolve_duplicate(
        tree_id=family.tree_id,
        person_a_id=second.id,
        person_b_id=first.id,
        action=DuplicateAction.APPROVE_LINK,
        reviewer="reviewer",
        unit_of_work_factory=sqlite_unit_of_work,
    )
    rejected = app.resolve_duplicate(
        tree_id=family.tree_id,
        person_a_id=first.id,
        person_b_id=second.id,
        action=DuplicateAction.REJECT,
        reviewer="second-opinion",
        unit_of_work_factory=sqlite_unit_of_work,
    )
    after = app.detect_duplicates(
        scope=scope, config=graph_config, unit_of_work_factory=sqlite_unit_of_work
    )

    assert before.total == 1
    assert before.items[0].pair == {first.id, second.id}
    assert rejected.id == approved.id
    assert rejected.status is PersonLinkStatus.REJECTED
    assert rejected.created_by == "second-opinion"
    assert after.total == 0
    with sqlite_unit_of_work() as uow:
        links = uow.repositories.person_links.list_for_trees([family.tree_id])
    assert len(links) == 1


def test_resolve_duplicate_validates_people(
    sqlite_unit_of_work: Factory,
    family: FamilyBuilder,
) -> None:
    person = family.person("Ali")
    family.persist(sqlite_unit_of_work)

    with pytest.raises(ValueError, match="two different"):
        app.resolve_duplicate(
            tree_id=family.tree_id,
            person_a_id=person.id,
            person_b_id=person.id,
            action=DuplicateAction.REJECT,
            reviewer="reviewer",
            unit_of_work_factory=sqlite_unit_of_work,
        )
    with pytest.raises(PersonNotFoundError):
        app.resolve_duplicate(
            tree_id=family.tree_id,
            person_a_id=person.id,
            person_b_id=uuid4(),
            action=DuplicateAction.REJECT,
            reviewer="reviewer",
            unit_of_work_factory=sqlite_unit_of_work,
        )


def test_prediction_workflow_through_app(
    sqlite_unit_of_work: Factory,
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    father = family.person("Fahd")
    mother = family.person("Mona", sex=Sex.FEMALE)
    for name in ("Layla", "Karim"):
        family.parents(family.person(name), father, mother)
    family.persist(sqlite_unit_of_work)

    summary = app.scan_predictions(
        tree_id=family.tree_id, config=graph_config, unit_of_work_factory=sqlite_unit_of_work
    )
    listed = app.list_predictions(
        tree_id=family.tree_id, config=graph_config, unit_of_work_factory=sqlite_unit_of_work
    )
    accepted = app.accept_high_confidence(
        tree_id=family.tree_id,
        reviewer="bulk",
        min_confidence=80.0,
        config=graph_config,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert summary.total == listed.total == 1
    assert [prediction.id for prediction in accepted] == [listed.items[0].id]
    assert accepted[0].applied_entity_type == "union"


def test_classify_sees_people_written_after_the_view_was_cached(
    sqlite_unit_of_work: Factory,
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    people = nuclear_family(family)
    family.persist(sqlite_unit_of_work)
    app.classify_relationship(
        tree_id=family.tree_id,
        person_a_id=people["ali"].id,
        person_b_id=people["sara"].id,
        config=graph_config,
        unit_of_work_factory=sqlite_unit_of_work,
    )
    assert family.tree_id in app.snapshot_cache()

    newcomer = family.person("Newcomer")
    with sqlite_unit_of_work() as uow:
        uow.repositories.people.add(newcomer)
        uow.commit()

    result = app.classify_relationship(
        tree_id=family.tree_id,
        person_a_id=people["ali"].id,
        person_b_id=newcomer.id,
        config=graph_config,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert result.status is KinshipStatus.UNRELATED


def test_classify_rejects_people_soft_deleted_after_caching(
    sqlite_unit_of_work: Factory,
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    people = nuclear_family(family)
    family.persist(sqlite_unit_of_work)
    app.classify_relationship(
        tree_id=family.tree_id,
        person_a_id=people["ali"].id,
        person_b_id=people["sara"].id,
        config=graph_config,
        unit_of_work_factory=sqlite_unit_of_work,
    )

    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.people.get(people["sara"].id)
        assert stored is not None
        stored.soft_delete()
        uow.commit()

    with pytest.raises(PersonNotFoundError):
        app.classify_relationship(
            tree_id=family.tree_id,
            person_a_id=people["ali"].id,
            person_b_id=people["sara"].id,
            config=graph_config,
            unit_of_work_factory=sqlite_unit_of_work,
        )


def test_invalidate_tree_refreshes_duplicate_scans(
    sqlite_unit_of_work: Factory,
    graph_config: GraphConfig,
    family: FamilyBuilder,
) -> None:
    family.person("Ali", birth_year=1980)
    family.persist(sqlite_unit_of_work)
    scope = DuplicateScope(tree_id=family.tree_id)
    before = app.detect_duplicates(
        scope=scope, config=graph_config, unit_of_work_factory=sqlite_unit_of_work
    )

    twin = family.person("Ali", birth_year=1981)
    with sqlite_unit_of_work() as uow:
        uow.repositories.people.add(twin)
        uow.commit()
    app.invalidate_tree(family.tree_id)
    after = app.detect_duplicates(
        scope=scope, config=graph_config, unit_of_work_factory=sqlite_unit_of_work
    )

    assert before.total == 0
    assert after.total == 1
