"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import or_, select

from kintree.adapters.sqlalchemy.mappings import (
    family_union_table,
    parent_child_edge_table,
    person_link_table,
    person_table,
    predicted_relationship_table,
)
from kintree.domain.model import (
    ParentChildEdge,
    Person,
    PersonLink,
    PredictedRelationship,
    Union,
)

if TYPE_CHECKING:
    import uuid
    from collections.abc import Collection

    from sqlalchemy import Table
    from sqlalchemy.orm import Session

    from kintree.domain.model import PredictedType, PredictionStatus


class SqlAlchemyTreeRepository[TEntity]:
    """Shared helpers for repositories whose rows belong to one tree."""

    def __init__(self, session: Session, entity_cls: type[TEntity], table: Table) -> None:
        self.session = session
        self._entity_cls = entity_cls
        self._table = table

    def add(self, entity: TEntity) -> None:
        self.session.add(entity)

    def get(self, entity_id: uuid.UUID) -> TEntity | None:
        return self.session.get(self._entity_cls, entity_id)

    def list_for_tree(self, tree_id: uuid.UUID) -> list[TEntity]:
        stmt = (
            select(self._entity_cls)
            .where(self._table.c.tree_id == tree_id)
            .order_by(self._table.c.id)
        )
        return list(self.session.execute(stmt).scalars().all())


class SqlAlchemyPersonRepository(SqlAlchemyTreeRepository[Person]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Person, person_table)


class SqlAlchemyParentChildEdgeRepository(SqlAlchemyTreeRepository[ParentChildEdge]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, ParentChildEdge, parent_child_edge_table)


class SqlAlchemyUnionRepository(SqlAlchemyTreeRepository[Union]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Union, family_union_table)


class SqlAlchemyPersonLinkRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: PersonLink) -> None:
        self.session.add(entity)

    def get(self, entity_id: uuid.UUID) -> PersonLink | None:
        return self.session.get(PersonLink, entity_id)

    def list_for_trees(self, tree_ids: Collection[uuid.UUID]) -> list[PersonLink]:
        """Links owned by any of the trees, or touching a person in one of them."""

        person_ids = select(person_table.c.id).where(person_table.c.tree_id.in_(tree_ids))
        stmt = select(PersonLink).where(
            or_(
                person_link_table.c.tree_id.in_(tree_ids),
                person_link_table.c.person_a_id.in_(person_ids),
                person_link_table.c.person_b_id.in_(person_ids),
            )
        )
        return list(self.session.execute(stmt).scalars().all())


class SqlAlchemyPredictionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: PredictedRelationship) -> None:
        self.session.add(entity)

    def get(self, entity_id: uuid.UUID) -> PredictedRelationship | None:
        return self.session.get(PredictedRelationship, entity_id)

    def list_for_tree(
        self,
        tree_id: uuid.UUID,
        *,
        statuses: Collection[PredictionStatus] | None = None,
    ) -> list[PredictedRelationship]:
        stmt = select(PredictedRelationship).where(
            predicted_relationship_table.c.tree_id == tree_id
        )
        if statuses is not None:
            stmt = stmt.where(predicted_relationship_table.c.status.in_(list(statuses)))
        return list(self.session.execute(stmt).scalars().all())

    def existing_keys(
        self, tree_id: uuid.UUID
    ) -> set[tuple[uuid.UUID, uuid.UUID, PredictedType]]:
        table = predicted_relationship_table
        stmt = select(
            table.c.source_person_id,
            table.c.target_person_id,
            table.c.predicted_type,
        ).where(table.c.tree_id == tree_id)
        return {
            (source_id, target_id, predicted_type)
            for source_id, target_id, predicted_type in self.session.execute(stmt)
        }
