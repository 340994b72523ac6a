"""In-memory repositories and unit of work for exercising the linkage core without a database."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from mdmlink.domain.model import IdentifierDomain, Record, RecordStatus, Relationship
from mdmlink.domain.ports import MdmRepositories

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from types import TracebackType
    from uuid import UUID

    from mdmlink.domain.model import RecordKind, RelationshipKind
    from mdmlink.domain.ports import RecordCriteria


@dataclass(slots=True)
class MemoryStore:
    """Committed state shared by every unit of work opened on it."""

    records: dict[UUID, Record] = field(default_factory=dict["UUID", Record])
    relationships: dict[UUID, Relationship] = field(default_factory=dict["UUID", Relationship])
    domains: dict[str, IdentifierDomain] = field(default_factory=dict[str, IdentifierDomain])
    commits: int = 0

    def unit_of_work(self) -> FakeUnitOfWork:
        return FakeUnitOfWork(self)

    def seed(self, *items: Record | Relationship) -> None:
        """Store ``items`` as if an earlier transaction had committed them."""

        for item in items:
            if isinstance(item, Record):
                self.records[item.id] = item
            else:
                self.relationships[item.id] = item

    def active(self, kind: RelationshipKind) -> list[Relationship]:
        return [rel for rel in self.relationships.values() if rel.kind is kind and rel.is_active]


class FakeRecordRepository:
    def __init__(self, store: MemoryStore, pending: dict[UUID, Record]) -> None:
        self._store = store
        self._pending = pending

    def _all(self) -> dict[UUID, Record]:
        return {**self._store.records, **self._pending}

    def add(self, entity: Record) -> None:
        self._pending[entity.id] = entity

    def get(self, key: UUID) -> Record | None:
        return self._all().get(key)

    def get_many(self, keys: Iterable[UUID]) -> list[Record]:
        everything = self._all()
        return [everything[key] for key in dict.fromkeys(keys) if key in everything]

    def find_by_identifier(
        self,
        domain: str,
        value: str,
        *,
        kind: RecordKind | None = None,
        active_only: bool = True,
    ) -> list[Record]:
        return [
            record
            for record in self._all().values()
            if record.has_identifier(domain, value)
            and (kind is None or record.kind is kind)
            and (not active_only or record.status is RecordStatus.ACTIVE)
        ]

    def query(
        self,
        criteria: RecordCriteria,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Record]:
        matches = sorted(
            (record for record in self._all().values() if criteria.accepts(record)),
            key=lambda record: (record.created_at, record.id),
        )
        return matches[offset : None if limit is None else offset + limit]

    def count(self, criteria: RecordCriteria) -> int:
        return len(self.query(criteria))


class FakeRelationshipRepository:
    def __init__(self, store: MemoryStore, pending: dict[UUID, Relationship]) -> None:
        self._store = store
        self._pending = pending

    def add(self, entity: Relationship) -> None:
        self._pending[entity.id] = entity

    def get(self, key: UUID) -> Relationship | None:
        return self._pending.get(key) or self._store.relationships.get(key)

    def query(
        self,
        *,
        source_id: UUID | None = None,
        target_id: UUID | None = None,
        kinds: Sequence[RelationshipKind] | None = None,
        active_only: bool = True,
    ) -> list[Relationship]:
        everything = {**self._store.relationships, **self._pending}
        return sorted(
            (
                rel
                for rel in everything.values()
                if (source_id is None or rel.source_id == source_id)
                and (target_id is None or rel.target_id == target_id)
                and (kinds is None or rel.kind in kinds)
                and (not active_only or rel.is_active)
            ),
            key=lambda rel: (rel.created_at, rel.id),
        )


class FakeIdentifierDomainRepository:
    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    def add(self, domain: IdentifierDomain) -> None:
        self._store.domains[domain.name] = domain

    def get(self, name: str) -> IdentifierDomain | None:
        return self._store.domains.get(name)

    def list_all(self) -> list[IdentifierDomain]:
        return [self._store.domains[name] for name in sorted(self._store.domains)]

    def remove(self, name: str) -> bool:
        return self._store.domains.pop(name, None) is not None


class FakeUnitOfWork:
    """Stages adds until ``commit``; a rollback drops whatever was staged."""

    def __init__(self, store: MemoryStore) -> None:
        self.store = store
        self._records: dict[UUID, Record] = {}
        self._relationships: dict[UUID, Relationship] = {}
        self._repositories = MdmRepositories(
            records=FakeRecordRepository(store, self._records),
            relationships=FakeRelationshipRepository(store, self._relationships),
            domains=FakeIdentifierDomainRepository(store),
        )

    @property
    def repositories(self) -> MdmRepositories:
        return self._repositories

    def __enter__(self) -> FakeUnitOfWork:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        return False

    def commit(self) -> None:
        self.store.records.update(self._records)
        self.store.relationships.update(self._relationships)
        self._records.clear()
        self._relationships.clear()
        self.store.commits += 1

    def rollback(self) -> None:
        self._records.clear()
        self._relationships.clear()
