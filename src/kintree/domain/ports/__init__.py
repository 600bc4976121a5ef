"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    ParentChildEdgeRepository,
    PersonLinkRepository,
    PersonRepository,
    PredictionRepository,
    Repository,
    TreeRepository,
    UnionRepository,
)
from .unit_of_work import (
    GraphRepositories,
    GraphUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "GraphRepositories",
    "GraphUnitOfWork",
    "ParentChildEdgeRepository",
    "PersonLinkRepository",
    "PersonRepository",
    "PredictionRepository",
    "Repository",
    "RepositoryCollection",
    "TreeRepository",
    "UnionRepository",
    "UnitOfWork",
]
