"""Initial record, identifier and relationship tables.

Revision ID: 0001_initial
Revises:
Create Date: 2026-09-28 10:12:44
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from mdmlink.adapters.sqlalchemy.mappings import UTCDateTime

revision: str = "0001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

RECORD_KINDS = ("PATIENT", "PERSON", "PROVIDER", "ORGANIZATION", "PLACE")
RECORD_CLASSES = ("LOCAL", "MASTER", "RECORD_OF_TRUTH")
RECORD_STATUSES = ("ACTIVE", "OBSOLETE", "NULLIFIED")
RELATIONSHIP_KINDS = (
    "MASTER",
    "ORIGINAL_MASTER",
    "RECORD_OF_TRUTH",
    "CANDIDATE",
    "IGNORE_CANDIDATE",
    "REPLACES",
)
LINK_CLASSIFICATIONS = ("AUTOMATIC", "VERIFIED", "SYSTEM")


def upgrade() -> None:
    op.create_table(
        "record",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "kind", sa.Enum(*RECORD_KINDS, name="recordkind", native_enum=False), nullable=False
        ),
        sa.Column(
            "classification",
            sa.Enum(*RECORD_CLASSES, name="recordclass", native_enum=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(*RECORD_STATUSES, name="recordstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("determiner", sa.String(), nullable=True),
        sa.Column("attributes", sa.JSON(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("policies", sa.Text(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_record")),
    )
    op.create_index("ix_record_kind_classification", "record", ["kind", "classification"])

    op.create_table(
        "record_identifier",
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("domain", sa.String(), nullable=False),
        sa.Column("value", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(
            ["owner_id"],
            ["record.id"],
            name=op.f("fk_record_identifier_owner_id_record"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("owner_id", "domain", "value", name=op.f("pk_record_identifier")),
    )
    op.create_index(
        "ix_record_identifier_domain_value", "record_identifier", ["domain", "value"]
    )

    op.create_table(
        "record_provenance",
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("application", sa.String(), nullable=True),
        sa.Column("device", sa.String(), nullable=True),
        sa.Column("user", sa.String(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["owner_id"],
            ["record.id"],
            name=op.f("fk_record_provenance_owner_id_record"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("owner_id", name=op.f("pk_record_provenance")),
    )

    op.create_table(
        "identifier_domain",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("oid", sa.String(), nullable=True),
        sa.Column("is_unique", sa.Boolean(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("name", name=op.f("pk_identifier_domain")),
    )

    op.create_table(
        "relationship",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("source_id", sa.Uuid(), nullable=False),
        sa.Column("target_id", sa.Uuid(), nullable=False),
        sa.Column(
            "kind",
            sa.Enum(*RELATIONSHIP_KINDS, name="relationshipkind", native_enum=False),
            nullable=False,
        ),
        sa.Column(
            "classification",
            sa.Enum(*LINK_CLASSIFICATIONS, name="linkclassification", native_enum=False),
            nullable=False,
        ),
        sa.Column("strength", sa.Float(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("obsoleted_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_relationship")),
    )
    op.create_index("ix_relationship_source_kind", "relationship", ["source_id", "kind"])
    op.create_index("ix_relationship_target_kind", "relationship", ["target_id", "kind"])


def downgrade() -> None:
    op.drop_index("ix_relationship_target_kind", table_name="relationship")
    op.drop_index("ix_relationship_source_kind", table_name="relationship")
    op.drop_table("relationship")
    op.drop_table("identifier_domain")
    op.drop_table("record_provenance")
    op.drop_index("ix_record_identifier_domain_value", table_name="record_identifier")
    op.drop_table("record_identifier")
    op.drop_index("ix_record_kind_classification", table_name="record")
    op.drop_table("record")
