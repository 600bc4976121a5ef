"""Ports for persisting domain aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from kintree.domain.model import (
    ParentChildEdge,
    Person,
    PersonLink,
    PredictedRelationship,
    Union,
)

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from uuid import UUID

    from kintree.domain.model import PredictedType, PredictionStatus


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...

    def get(self, entity_id: UUID) -> TEntity | None: ...


@runtime_checkable
class TreeRepository[TEntity](Repository[TEntity], Protocol):
    """Repository whose rows are scoped to one tree.

    ``list_for_tree`` returns deleted rows as well; filtering happens once in
    the active graph view.
    """

    def list_for_tree(self, tree_id: UUID) -> Sequence[TEntity]: ...


@runtime_checkable
class PersonRepository(TreeRepository[Person], Protocol):
    """Repository contract for people."""


@runtime_checkable
class ParentChildEdgeRepository(TreeRepository[ParentChildEdge], Protocol):
    """Repository contract for parent-child edges."""


@runtime_checkable
class UnionRepository(TreeRepository[Union], Protocol):
    """Repository contract for unions and their members."""


@runtime_checkable
class PersonLinkRepository(Repository[PersonLink], Protocol):
    """Repository contract for reviewer person links."""

    def list_for_trees(self, tree_ids: Collection[UUID]) -> Sequence[PersonLink]: ...


@runtime_checkable
class PredictionRepository(Repository[PredictedRelationship], Protocol):
    """Repository contract for predicted relationships."""

    def list_for_tree(
        self,
        tree_id: UUID,
        *,
        statuses: Collection[PredictionStatus] | None = None,
    ) -> Sequence[PredictedRelationship]: ...

    def existing_keys(self, tree_id: UUID) -> set[tuple[UUID, UUID, PredictedType]]: ...
