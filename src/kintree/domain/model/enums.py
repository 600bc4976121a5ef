"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Sex(StrEnum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class DatePrecision(StrEnum):
    EXACT = "exact"
    ABOUT = "about"
    BETWEEN = "between"
    BEFORE = "before"
    AFTER = "after"
    UNKNOWN = "unknown"


class ParentChildType(StrEnum):
    BIOLOGICAL = "biological"
    ADOPTIVE = "adoptive"
    STEP = "step"
    FOSTER = "foster"
    GUARDIAN = "guardian"


class UnionType(StrEnum):
    MARRIAGE = "marriage"
    CIVIL_UNION = "civil_union"
    DOMESTIC_PARTNERSHIP = "domestic_partnership"
    ENGAGEMENT = "engagement"
    INFORMAL = "informal"


class PersonLinkType(StrEnum):
    SAME_PERSON = "same_person"
    ANCESTOR = "ancestor"
    RELATED = "related"


class PersonLinkStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PredictedType(StrEnum):
    """Kind of edge a prediction proposes."""

    PARENT_CHILD = "parent_child"
    UNION = "union"


class PredictionStatus(StrEnum):
    NEW = "new"
    CONFIRMED = "confirmed"
    DISMISSED = "dismissed"
    APPLIED = "applied"


class ConfidenceLevel(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EdgeKind(StrEnum):
    """How a person on a kinship path relates to the previous person."""

    PARENT = "parent"
    CHILD = "child"
    SPOUSE = "spouse"


class MatchType(StrEnum):
    """Duplicate detection strategies."""

    NAME_EXACT = "name_exact"
    NAME_SIMILAR = "name_similar"
    MOTHER_SURN = "mother_surn"
    SHARED_PARENT = "shared_parent"
