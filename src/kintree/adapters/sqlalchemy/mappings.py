"""SQLAlchemy mapping metadata for the kinship domain model."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from functools import cache

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    JSON,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import composite, configure_mappers, relationship

from kintree.domain.model import (
    ConfidenceLevel,
    DatePrecision,
    FuzzyDate,
    ParentChildEdge,
    ParentChildType,
    Person,
    PersonLink,
    PersonLinkStatus,
    PersonLinkType,
    PredictedRelationship,
    PredictedType,
    PredictionStatus,
    Sex,
    Union,
    UnionMember,
    UnionType,
)

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _enum(enum_cls: type, name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Graph tables ----------------------------------------------------------------

person_table = Table(
    "person",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tree_id", UUIDColumnType, nullable=False, index=True),
    Column("is_deleted", Boolean, nullable=False, default=False),
    Column("sex", _enum(Sex, "sex"), nullable=False, default=Sex.UNKNOWN),
    Column("primary_name", String, nullable=True),
    Column("name_arabic", String, nullable=True),
    Column("name_english", String, nullable=True),
    Column("name_nobiin", String, nullable=True),
    Column("family_id", UUIDColumnType, nullable=True, index=True),
    Column("birth_date", Date, nullable=True),
    Column("birth_precision", _enum(DatePrecision, "date_precision"), nullable=True),
    Column("death_date", Date, nullable=True),
    Column("death_precision", _enum(DatePrecision, "date_precision"), nullable=True),
)

parent_child_edge_table = Table(
    "parent_child_edge",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tree_id", UUIDColumnType, nullable=False, index=True),
    Column("is_deleted", Boolean, nullable=False, default=False),
    Column("parent_id", UUIDColumnType, ForeignKey("person.id"), nullable=False, index=True),
    Column("child_id", UUIDColumnType, ForeignKey("person.id"), nullable=False, index=True),
    Column(
        "relationship_type",
        _enum(ParentChildType, "parent_child_type"),
        nullable=False,
        default=ParentChildType.BIOLOGICAL,
    ),
    Column("created_by", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
)

family_union_table = Table(
    "family_union",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tree_id", UUIDColumnType, nullable=False, index=True),
    Column("is_deleted", Boolean, nullable=False, default=False),
    Column("union_type", _enum(UnionType, "union_type"), nullable=False),
    Column("start_date", Date, nullable=True),
    Column("start_precision", _enum(DatePrecision, "date_precision"), nullable=True),
    Column("end_date", Date, nullable=True),
    Column("end_precision", _enum(DatePrecision, "date_precision"), nullable=True),
    Column("created_by", String, nullable=True),
)

union_member_table = Table(
    "union_member",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column(
        "union_id",
        UUIDColumnType,
        ForeignKey("family_union.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("person_id", UUIDColumnType, ForeignKey("person.id"), nullable=False, index=True),
    Column("role", String, nullable=False),
    Column("position", Integer, nullable=False, default=0),
    UniqueConstraint("union_id", "person_id"),
)

person_link_table = Table(
    "person_link",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tree_id", UUIDColumnType, nullable=False, index=True),
    Column("person_a_id", UUIDColumnType, ForeignKey("person.id"), nullable=False),
    Column("person_b_id", UUIDColumnType, ForeignKey("person.id"), nullable=False),
    Column("link_type", _enum(PersonLinkType, "person_link_type"), nullable=False),
    Column("status", _enum(PersonLinkStatus, "person_link_status"), nullable=False),
    Column("created_by", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
)

predicted_relationship_table = Table(
    "predicted_relationship",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("tree_id", UUIDColumnType, nullable=False),
    Column("source_person_id", UUIDColumnType, ForeignKey("person.id"), nullable=False),
    Column("target_person_id", UUIDColumnType, ForeignKey("person.id"), nullable=False),
    Column("predicted_type", _enum(PredictedType, "predicted_type"), nullable=False),
    Column("rule_id", String(50), nullable=False),
    Column("confidence", Float, nullable=False),
    Column("confidence_level", _enum(ConfidenceLevel, "confidence_level"), nullable=False),
    Column("explanation", Text, nullable=False),
    Column("batch_id", UUIDColumnType, nullable=False, index=True),
    Column("status", _enum(PredictionStatus, "prediction_status"), nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("resolved_by", String, nullable=True),
    Column("resolved_at", UTCDateTime(), nullable=True),
    Column("dismiss_reason", Text, nullable=True),
    Column("applied_entity_type", String(50), nullable=True),
    Column("applied_entity_id", UUIDColumnType, nullable=True),
    Column("failure_reason", Text, nullable=True),
    Column("failure_code", String(50), nullable=True),
    Column("failure_details", JSON, nullable=True),
    UniqueConstraint("tree_id", "source_person_id", "target_person_id", "predicted_type"),
    Index("ix_predicted_relationship_tree_status", "tree_id", "status"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        Person,
        person_table,
        properties={
            "birth": composite(
                FuzzyDate,
                person_table.c.birth_date,
                person_table.c.birth_precision,
            ),
            "death": composite(
                FuzzyDate,
                person_table.c.death_date,
                person_table.c.death_precision,
            ),
        },
    )

    mapper_registry.map_imperatively(ParentChildEdge, parent_child_edge_table)

    mapper_registry.map_imperatively(UnionMember, union_member_table)

    mapper_registry.map_imperatively(
        Union,
        family_union_table,
        properties={
            "members": relationship(
                UnionMember,
                cascade="all, delete-orphan",
                order_by=union_member_table.c.position,
                lazy="selectin",
            ),
            "start": composite(
                FuzzyDate,
                family_union_table.c.start_date,
                family_union_table.c.start_precision,
            ),
            "end": composite(
                FuzzyDate,
                family_union_table.c.end_date,
                family_union_table.c.end_precision,
            ),
        },
    )

    mapper_registry.map_imperatively(PersonLink, person_link_table)

    mapper_registry.map_imperatively(PredictedRelationship, predicted_relationship_table)

    configure_mappers()
    return mapper_registry
