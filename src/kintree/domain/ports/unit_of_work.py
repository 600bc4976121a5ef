"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType
    from uuid import UUID

    from kintree.domain.ports.persistence import (
        ParentChildEdgeRepository,
        PersonLinkRepository,
        PersonRepository,
        PredictionRepository,
        UnionRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def lock_tree(self, tree_id: UUID, *, timeout: float) -> None:
        """Take the tree's exclusive mutation lock until commit or rollback.

        Raises ``ConcurrentModificationError`` when the lock is not granted
        within ``timeout`` seconds.
        """
        ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class GraphRepositories(RepositoryCollection):
    """Repositories backing the kinship graph."""

    people: PersonRepository
    edges: ParentChildEdgeRepository
    unions: UnionRepository
    person_links: PersonLinkRepository
    predictions: PredictionRepository


type GraphUnitOfWork = UnitOfWork[GraphRepositories]
