"""Kinship domain model."""

from __future__ import annotations

from .entity import Entity, TreeEntity, new_id
from .enums import (
    ConfidenceLevel,
    DatePrecision,
    EdgeKind,
    MatchType,
    ParentChildType,
    PersonLinkStatus,
    PersonLinkType,
    PredictedType,
    PredictionStatus,
    Sex,
    UnionType,
)
from .family import PARTNER_ROLE, ParentChildEdge, Person, PersonLink, Union, UnionMember
from .prediction import (
    HIGH_CONFIDENCE,
    MEDIUM_CONFIDENCE,
    PredictedRelationship,
    confidence_level,
)
from .primitives import FuzzyDate, year_of

__all__ = [
    "HIGH_CONFIDENCE",
    "MEDIUM_CONFIDENCE",
    "PARTNER_ROLE",
    "ConfidenceLevel",
    "DatePrecision",
    "EdgeKind",
    "Entity",
    "FuzzyDate",
    "MatchType",
    "ParentChildEdge",
    "ParentChildType",
    "Person",
    "PersonLink",
    "PersonLinkStatus",
    "PersonLinkType",
    "PredictedRelationship",
    "PredictedType",
    "PredictionStatus",
    "Sex",
    "TreeEntity",
    "Union",
    "UnionMember",
    "UnionType",
    "confidence_level",
    "new_id",
    "year_of",
]
