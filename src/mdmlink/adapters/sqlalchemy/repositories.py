"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import ColumnElement, func, select

from mdmlink.adapters.sqlalchemy.mappings import (
    record_identifier_table,
    record_table,
    relationship_table,
)
from mdmlink.domain.model import IdentifierDomain, Record, RecordStatus, Relationship

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable, Sequence

    from sqlalchemy import Select
    from sqlalchemy.orm import Session

    from mdmlink.domain.model import RecordKind, RelationshipKind
    from mdmlink.domain.ports import RecordCriteria


def _owners_of(domain: str, value: str) -> Select[tuple[uuid.UUID]]:
    return (
        select(record_identifier_table.c.owner_id)
        .where(record_identifier_table.c.domain == domain)
        .where(record_identifier_table.c.value == value)
    )


def _criteria_clauses(criteria: RecordCriteria) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    if criteria.kind is not None:
        clauses.append(record_table.c.kind == criteria.kind)
    if criteria.classifications is not None:
        clauses.append(record_table.c.classification.in_(criteria.classifications))
    if criteria.statuses is not None:
        clauses.append(record_table.c.status.in_(criteria.statuses))
    if criteria.ids is not None:
        clauses.append(record_table.c.id.in_(criteria.ids))
    clauses.extend(
        record_table.c.id.in_(_owners_of(domain, value)) for domain, value in criteria.identifiers
    )
    return clauses


class SqlAlchemyRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Record) -> None:
        self.session.add(entity)

    def get(self, key: uuid.UUID) -> Record | None:
        return self.session.get(Record, key)

    def get_many(self, keys: Iterable[uuid.UUID]) -> list[Record]:
        wanted = list(dict.fromkeys(keys))
        if not wanted:
            return []
        stmt = select(Record).where(record_table.c.id.in_(wanted))
        found = {record.id: record for record in self.session.scalars(stmt)}
        return [found[key] for key in wanted if key in found]

    def find_by_identifier(
        self,
        domain: str,
        value: str,
        *,
        kind: RecordKind | None = None,
        active_only: bool = True,
    ) -> list[Record]:
        stmt = select(Record).where(record_table.c.id.in_(_owners_of(domain, value)))
        if kind is not None:
            stmt = stmt.where(record_table.c.kind == kind)
        if active_only:
            stmt = stmt.where(record_table.c.status == RecordStatus.ACTIVE)
        stmt = stmt.order_by(record_table.c.created_at, record_table.c.id)
        return list(self.session.scalars(stmt))

    def query(
        self,
        criteria: RecordCriteria,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Record]:
        stmt = (
            select(Record)
            .where(*_criteria_clauses(criteria))
            .order_by(record_table.c.created_at, record_table.c.id)
        )
        if criteria.has_attribute_filter:
            # JSON attributes are not indexed; filter in memory before paging
            matches = [record for record in self.session.scalars(stmt) if criteria.accepts(record)]
            end = None if limit is None else offset + limit
            return matches[offset:end]
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

    def count(self, criteria: RecordCriteria) -> int:
        if criteria.has_attribute_filter:
            return len(self.query(criteria))
        stmt = select(func.count()).select_from(record_table).where(*_criteria_clauses(criteria))
        return int(self.session.execute(stmt).scalar_one())


class SqlAlchemyRelationshipRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Relationship) -> None:
        self.session.add(entity)

    def get(self, key: uuid.UUID) -> Relationship | None:
        return self.session.get(Relationship, key)

    def query(
        self,
        *,
        source_id: uuid.UUID | None = None,
        target_id: uuid.UUID | None = None,
        kinds: Sequence[RelationshipKind] | None = None,
        active_only: bool = True,
    ) -> list[Relationship]:
        stmt = select(Relationship)
        if source_id is not None:
            stmt = stmt.where(relationship_table.c.source_id == source_id)
        if target_id is not None:
            stmt = stmt.where(relationship_table.c.target_id == target_id)
        if kinds is not None:
            stmt = stmt.where(relationship_table.c.kind.in_(list(kinds)))
        if active_only:
            stmt = stmt.where(relationship_table.c.obsoleted_at.is_(None))
        stmt = stmt.order_by(relationship_table.c.created_at, relationship_table.c.id)
        return list(self.session.scalars(stmt))


class SqlAlchemyIdentifierDomainRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, domain: IdentifierDomain) -> None:
        existing = self.session.get(IdentifierDomain, domain.name)
        if existing is None:
            self.session.add(domain)
            return
        existing.oid = domain.oid
        existing.unique = domain.unique
        existing.description = domain.description

    def get(self, name: str) -> IdentifierDomain | None:
        return self.session.get(IdentifierDomain, name)

    def list_all(self) -> list[IdentifierDomain]:
        return list(self.session.scalars(select(IdentifierDomain).order_by("name")))

    def remove(self, name: str) -> bool:
        existing = self.session.get(IdentifierDomain, name)
        if existing is None:
            return False
        self.session.delete(existing)
        return True
