"""SQLAlchemy adapter package for kintree."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyParentChildEdgeRepository,
    SqlAlchemyPersonLinkRepository,
    SqlAlchemyPersonRepository,
    SqlAlchemyPredictionRepository,
    SqlAlchemyUnionRepository,
)
from .unit_of_work import (
    SqlAlchemyGraphUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyGraphUnitOfWork",
    "SqlAlchemyParentChildEdgeRepository",
    "SqlAlchemyPersonLinkRepository",
    "SqlAlchemyPersonRepository",
    "SqlAlchemyPredictionRepository",
    "SqlAlchemyUnionRepository",
    "StartupError",
    "configured_engine",
    "is_started",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
