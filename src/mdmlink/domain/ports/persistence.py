"""Ports for persisting records, relationships and identifier domains."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from mdmlink.domain.model import (
    IdentifierDomain,
    Record,
    RecordClass,
    RecordKind,
    RecordStatus,
    Relationship,
    RelationshipKind,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID


@dataclass(frozen=True, slots=True, kw_only=True)
class RecordCriteria:
    """Filter for record queries.

    Identifier filters are evaluated by the store. Attribute filters are plain equality checks
    and may be evaluated in memory by adapters that cannot index JSON attributes.
    """

    kind: RecordKind | None = None
    classifications: frozenset[RecordClass] | None = None
    statuses: frozenset[RecordStatus] | None = frozenset({RecordStatus.ACTIVE})
    identifiers: tuple[tuple[str, str], ...] = ()
    attributes: dict[str, Any] = field(default_factory=dict[str, Any])
    ids: frozenset[UUID] | None = None

    @property
    def has_identifier_filter(self) -> bool:
        return bool(self.identifiers)

    @property
    def has_attribute_filter(self) -> bool:
        return bool(self.attributes)

    def with_classes(self, *classes: RecordClass) -> RecordCriteria:
        return RecordCriteria(
            kind=self.kind,
            classifications=frozenset(classes),
            statuses=self.statuses,
            identifiers=self.identifiers,
            attributes=self.attributes,
            ids=self.ids,
        )

    def accepts(self, record: Record) -> bool:
        """In-memory evaluation of the full criteria against ``record``."""

        if self.kind is not None and record.kind is not self.kind:
            return False
        if self.classifications is not None and record.classification not in self.classifications:
            return False
        if self.statuses is not None and record.status not in self.statuses:
            return False
        if self.ids is not None and record.id not in self.ids:
            return False
        if any(not record.has_identifier(domain, value) for domain, value in self.identifiers):
            return False
        return all(record.attributes.get(name) == value for name, value in self.attributes.items())


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent store."""

    def add(self, entity: TEntity) -> None: ...

    def get(self, key: UUID) -> TEntity | None: ...


@runtime_checkable
class RecordRepository(Repository[Record], Protocol):
    """Persistence contract for governed records of every class."""

    def get_many(self, keys: Iterable[UUID]) -> list[Record]: ...

    def find_by_identifier(
        self,
        domain: str,
        value: str,
        *,
        kind: RecordKind | None = None,
        active_only: bool = True,
    ) -> list[Record]: ...

    def query(
        self,
        criteria: RecordCriteria,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Record]: ...

    def count(self, criteria: RecordCriteria) -> int: ...


@runtime_checkable
class RelationshipRepository(Repository[Relationship], Protocol):
    """Persistence contract for typed links between records."""

    def query(
        self,
        *,
        source_id: UUID | None = None,
        target_id: UUID | None = None,
        kinds: Sequence[RelationshipKind] | None = None,
        active_only: bool = True,
    ) -> list[Relationship]: ...


@runtime_checkable
class IdentifierDomainRepository(Protocol):
    """Persistence contract for identifier assigning authorities."""

    def add(self, domain: IdentifierDomain) -> None: ...

    def get(self, name: str) -> IdentifierDomain | None: ...

    def list_all(self) -> list[IdentifierDomain]: ...

    def remove(self, name: str) -> bool: ...
