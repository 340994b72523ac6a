"""Read overlay combining persisted state with an in-flight transaction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from mdmlink.domain.model import Record, RecordClass, Relationship, RelationshipKind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from mdmlink.domain.linkage.transaction import TransactionBuilder
    from mdmlink.domain.ports import MdmRepositories


@dataclass(slots=True)
class LinkageView:
    """Answer graph questions as if ``transaction`` were already committed."""

    repositories: MdmRepositories
    transaction: TransactionBuilder

    def record(self, key: UUID) -> Record | None:
        pending = self.transaction.record(key)
        if pending is not None:
            return pending
        return self.repositories.records.get(key)

    def relationships(
        self,
        *,
        source_id: UUID | None = None,
        target_id: UUID | None = None,
        kinds: Sequence[RelationshipKind] | None = None,
        active: bool = True,
    ) -> list[Relationship]:
        stored = self.repositories.relationships.query(
            source_id=source_id,
            target_id=target_id,
            kinds=kinds,
            active_only=False,
        )
        merged: dict[UUID, Relationship] = {rel.id: rel for rel in stored}
        for rel in self.transaction.relationships:
            if source_id is not None and rel.source_id != source_id:
                continue
            if target_id is not None and rel.target_id != target_id:
                continue
            if kinds is not None and rel.kind not in kinds:
                continue
            merged[rel.id] = rel
        return [rel for rel in merged.values() if not active or rel.is_active]

    # master graph ------------------------------------------------------------

    def master_relationship(self, source_id: UUID) -> Relationship | None:
        """Active MASTER edge from ``source_id``; the newest wins if several slipped in."""

        links = self.relationships(source_id=source_id, kinds=(RelationshipKind.MASTER,))
        if not links:
            return None
        return max(links, key=lambda rel: rel.created_at)

    def master_for(self, record: Record | UUID) -> UUID | None:
        """Key of the master that owns ``record`` (itself for masters)."""

        if isinstance(record, Record):
            if record.classification is RecordClass.MASTER:
                return record.id
            key = record.id
        else:
            key = record
        link = self.master_relationship(key)
        if link is not None:
            return link.target_id
        rot = self.relationships(target_id=key, kinds=(RelationshipKind.RECORD_OF_TRUTH,))
        return rot[0].source_id if rot else None

    def master_links_to(self, master_id: UUID) -> list[Relationship]:
        return self.relationships(target_id=master_id, kinds=(RelationshipKind.MASTER,))

    def locals_of(self, master_id: UUID, *, exclude: UUID | None = None) -> list[Record]:
        """Active non-master records linked to ``master_id``."""

        found: list[Record] = []
        for rel in self.master_links_to(master_id):
            if rel.source_id == exclude:
                continue
            record = self.record(rel.source_id)
            if record is not None and record.is_active and not record.is_master:
                found.append(record)
        return found

    def record_of_truth_relationship(self, master_id: UUID) -> Relationship | None:
        links = self.relationships(
            source_id=master_id, kinds=(RelationshipKind.RECORD_OF_TRUTH,)
        )
        return links[0] if links else None

    def ignored_master_ids(self, source_id: UUID) -> set[UUID]:
        return {
            rel.target_id
            for rel in self.relationships(
                source_id=source_id, kinds=(RelationshipKind.IGNORE_CANDIDATE,)
            )
        }

    def candidates(
        self, *, source_id: UUID | None = None, master_id: UUID | None = None
    ) -> list[Relationship]:
        return self.relationships(
            source_id=source_id, target_id=master_id, kinds=(RelationshipKind.CANDIDATE,)
        )

    def pair(
        self, source_id: UUID, target_id: UUID, *kinds: RelationshipKind, active: bool = True
    ) -> list[Relationship]:
        return self.relationships(
            source_id=source_id, target_id=target_id, kinds=kinds or None, active=active
        )
