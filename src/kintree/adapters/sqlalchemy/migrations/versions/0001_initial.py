"""Initial kinship graph schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


DATE_PRECISION = ("exact", "about", "between", "before", "after", "unknown")


def upgrade() -> None:
    op.create_table(
        "person",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tree_id", sa.Uuid(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("sex", _enum("sex", "male", "female", "unknown"), nullable=False),
        sa.Column("primary_name", sa.String(), nullable=True),
        sa.Column("name_arabic", sa.String(), nullable=True),
        sa.Column("name_english", sa.String(), nullable=True),
        sa.Column("name_nobiin", sa.String(), nullable=True),
        sa.Column("family_id", sa.Uuid(), nullable=True),
        sa.Column("birth_date", sa.Date(), nullable=True),
        sa.Column("birth_precision", _enum("date_precision", *DATE_PRECISION), nullable=True),
        sa.Column("death_date", sa.Date(), nullable=True),
        sa.Column("death_precision", _enum("date_precision", *DATE_PRECISION), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_person")),
    )
    op.create_index(op.f("ix_person_tree_id"), "person", ["tree_id"])
    op.create_index(op.f("ix_person_family_id"), "person", ["family_id"])

    op.create_table(
        "parent_child_edge",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tree_id", sa.Uuid(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("parent_id", sa.Uuid(), nullable=False),
        sa.Column("child_id", sa.Uuid(), nullable=False),
        sa.Column(
            "relationship_type",
            _enum("parent_child_type", "biological", "adoptive", "step", "foster", "guardian"),
            nullable=False,
        ),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["parent_id"], ["person.id"], name=op.f("fk_parent_child_edge_parent_id_person")
        ),
        sa.ForeignKeyConstraint(
            ["child_id"], ["person.id"], name=op.f("fk_parent_child_edge_child_id_person")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_parent_child_edge")),
    )
    op.create_index(op.f("ix_parent_child_edge_tree_id"), "parent_child_edge", ["tree_id"])
    op.create_index(op.f("ix_parent_child_edge_parent_id"), "parent_child_edge", ["parent_id"])
    op.create_index(op.f("ix_parent_child_edge_child_id"), "parent_child_edge", ["child_id"])

    op.create_table(
        "family_union",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tree_id", sa.Uuid(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column(
            "union_type",
            _enum(
                "union_type",
                "marriage",
                "civil_union",
                "domestic_partnership",
                "engagement",
                "informal",
            ),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("start_precision", _enum("date_precision", *DATE_PRECISION), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("end_precision", _enum("date_precision", *DATE_PRECISION), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_family_union")),
    )
    op.create_index(op.f("ix_family_union_tree_id"), "family_union", ["tree_id"])

    op.create_table(
        "union_member",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("union_id", sa.Uuid(), nullable=False),
        sa.Column("person_id", sa.Uuid(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(
            ["union_id"],
            ["family_union.id"],
            name=op.f("fk_union_member_union_id_family_union"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["person_id"], ["person.id"], name=op.f("fk_union_member_person_id_person")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_union_member")),
        sa.UniqueConstraint("union_id", "person_id", name=op.f("uq_union_member_union_id")),
    )
    op.create_index(op.f("ix_union_member_union_id"), "union_member", ["union_id"])
    op.create_index(op.f("ix_union_member_person_id"), "union_member", ["person_id"])

    op.create_table(
        "person_link",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tree_id", sa.Uuid(), nullable=False),
        sa.Column("person_a_id", sa.Uuid(), nullable=False),
        sa.Column("person_b_id", sa.Uuid(), nullable=False),
        sa.Column(
            "link_type",
            _enum("person_link_type", "same_person", "ancestor", "related"),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum("person_link_status", "pending", "approved", "rejected"),
            nullable=False,
        ),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["person_a_id"], ["person.id"], name=op.f("fk_person_link_person_a_id_person")
        ),
        sa.ForeignKeyConstraint(
            ["person_b_id"], ["person.id"], name=op.f("fk_person_link_person_b_id_person")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_person_link")),
    )
    op.create_index(op.f("ix_person_link_tree_id"), "person_link", ["tree_id"])

    op.create_table(
        "predicted_relationship",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tree_id", sa.Uuid(), nullable=False),
        sa.Column("source_person_id", sa.Uuid(), nullable=False),
        sa.Column("target_person_id", sa.Uuid(), nullable=False),
        sa.Column(
            "predicted_type", _enum("predicted_type", "parent_child", "union"), nullable=False
        ),
        sa.Column("rule_id", sa.String(length=50), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False),
        sa.Column(
            "confidence_level", _enum("confidence_level", "high", "medium", "low"), nullable=False
        ),
        sa.Column("explanation", sa.Text(), nullable=False),
        sa.Column("batch_id", sa.Uuid(), nullable=False),
        sa.Column(
            "status",
            _enum("prediction_status", "new", "confirmed", "dismissed", "applied"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_by", sa.String(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dismiss_reason", sa.Text(), nullable=True),
        sa.Column("applied_entity_type", sa.String(length=50), nullable=True),
        sa.Column("applied_entity_id", sa.Uuid(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("failure_code", sa.String(length=50), nullable=True),
        sa.Column("failure_details", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(
            ["source_person_id"],
            ["person.id"],
            name=op.f("fk_predicted_relationship_source_person_id_person"),
        ),
        sa.ForeignKeyConstraint(
            ["target_person_id"],
            ["person.id"],
            name=op.f("fk_predicted_relationship_target_person_id_person"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_predicted_relationship")),
        sa.UniqueConstraint(
            "tree_id",
            "source_person_id",
            "target_person_id",
            "predicted_type",
            name=op.f("uq_predicted_relationship_tree_id"),
        ),
    )
    op.create_index(
        op.f("ix_predicted_relationship_batch_id"), "predicted_relationship", ["batch_id"]
    )
    op.create_index(
        "ix_predicted_relationship_tree_status", "predicted_relationship", ["tree_id", "status"]
    )


def downgrade() -> None:
    op.drop_table("predicted_relationship")
    op.drop_table("person_link")
    op.drop_table("union_member")
    op.drop_table("family_union")
    op.drop_table("parent_child_edge")
    op.drop_table("person")
