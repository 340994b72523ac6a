"""SQLAlchemy mapping metadata for the MDM domain model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
    orm,
)
from sqlalchemy.ext.mutable import MutableDict, MutableSet
from sqlalchemy.orm import configure_mappers, relationship

from mdmlink.domain.model import (
    Identifier,
    IdentifierDomain,
    LinkClassification,
    Provenance,
    Record,
    RecordClass,
    RecordKind,
    RecordStatus,
    Relationship,
    RelationshipKind,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

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


class PolicySetType(TypeDecorator[set[str]]):
    """Set of policy OIDs stored as a sorted JSON list."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: set[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(sorted(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> set[str]:
        _ = dialect
        if value is None:
            return set()
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return set()
        items = cast(list[Any], loaded)
        return {item for item in items if isinstance(item, str)}


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Records ---------------------------------------------------------------------

record_table = Table(
    "record",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("kind", Enum(RecordKind, native_enum=False), nullable=False),
    Column("classification", Enum(RecordClass, native_enum=False), nullable=False),
    Column("status", Enum(RecordStatus, native_enum=False), nullable=False),
    Column("determiner", String, nullable=True),
    Column("attributes", MutableDict.as_mutable(JSON()), nullable=False, default=dict),
    Column("tags", MutableDict.as_mutable(JSON()), nullable=False, default=dict),
    Column("policies", MutableSet.as_mutable(PolicySetType()), nullable=False, default=set),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    Index("ix_record_kind_classification", "kind", "classification"),
)

record_identifier_table = Table(
    "record_identifier",
    mapper_registry.metadata,
    Column(
        "owner_id",
        UUIDColumnType,
        ForeignKey("record.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("domain", String, primary_key=True),
    Column("value", String, primary_key=True),
    Index("ix_record_identifier_domain_value", "domain", "value"),
)

record_provenance_table = Table(
    "record_provenance",
    mapper_registry.metadata,
    Column(
        "owner_id",
        UUIDColumnType,
        ForeignKey("record.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("application", String, nullable=True),
    Column("device", String, nullable=True),
    Column("user", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
)

identifier_domain_table = Table(
    "identifier_domain",
    mapper_registry.metadata,
    Column("name", String, primary_key=True),
    Column("oid", String, nullable=True),
    Column("is_unique", Boolean, key="unique", nullable=False, default=False),
    Column("description", String, nullable=True),
)

# Relationships ---------------------------------------------------------------

# Relationships may point at records that are stored later in the same transaction, and
# obsolete rows are kept for history, so no foreign keys are declared here.
relationship_table = Table(
    "relationship",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("source_id", UUIDColumnType, nullable=False),
    Column("target_id", UUIDColumnType, nullable=False),
    Column("kind", Enum(RelationshipKind, native_enum=False), nullable=False),
    Column("classification", Enum(LinkClassification, native_enum=False), nullable=False),
    Column("strength", Float, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("obsoleted_at", UTCDateTime(), nullable=True),
    Index("ix_relationship_source_kind", "source_id", "kind"),
    Index("ix_relationship_target_kind", "target_id", "kind"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        Record,
        record_table,
        properties={
            # records leave their session on commit, so collections load eagerly
            "_identifiers": relationship(
                Identifier,
                cascade="all, delete-orphan",
                lazy="selectin",
                order_by=(record_identifier_table.c.domain, record_identifier_table.c.value),
            ),
            "_provenance": relationship(
                Provenance,
                cascade="all, delete-orphan",
                uselist=False,
                single_parent=True,
                lazy="joined",
            ),
        },
    )

    mapper_registry.map_imperatively(Identifier, record_identifier_table)
    mapper_registry.map_imperatively(Provenance, record_provenance_table)
    mapper_registry.map_imperatively(IdentifierDomain, identifier_domain_table)
    mapper_registry.map_imperatively(Relationship, relationship_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
