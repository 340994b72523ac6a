"""Directed, typed links between records.

Direction conventions:
- MASTER, CANDIDATE, IGNORE_CANDIDATE, ORIGINAL_MASTER: source record -> master
- RECORD_OF_TRUTH: master -> record of truth
- REPLACES: surviving record -> replaced record
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from mdmlink.domain.model.entity import Entity, utcnow
from mdmlink.domain.model.enums import LinkClassification, RelationshipKind

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class Relationship(Entity):
    source_id: UUID
    target_id: UUID
    kind: RelationshipKind
    classification: LinkClassification = LinkClassification.AUTOMATIC
    strength: float | None = None
    created_at: datetime = field(default_factory=utcnow)
    obsoleted_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.obsoleted_at is None

    @property
    def is_verified(self) -> bool:
        return self.classification is LinkClassification.VERIFIED

    @property
    def pair(self) -> tuple[UUID, UUID]:
        return (self.source_id, self.target_id)

    def obsolete(self) -> None:
        if self.obsoleted_at is None:
            self.obsoleted_at = utcnow()

    def revive(self) -> None:
        self.obsoleted_at = None

    def links(self, source_id: UUID, target_id: UUID) -> bool:
        return self.source_id == source_id and self.target_id == target_id


def master_link(
    source_id: UUID,
    master_id: UUID,
    *,
    classification: LinkClassification = LinkClassification.AUTOMATIC,
    strength: float | None = None,
) -> Relationship:
    return Relationship(
        source_id=source_id,
        target_id=master_id,
        kind=RelationshipKind.MASTER,
        classification=classification,
        strength=strength,
    )


def candidate_link(
    source_id: UUID,
    master_id: UUID,
    *,
    classification: LinkClassification = LinkClassification.AUTOMATIC,
    strength: float | None = None,
) -> Relationship:
    return Relationship(
        source_id=source_id,
        target_id=master_id,
        kind=RelationshipKind.CANDIDATE,
        classification=classification,
        strength=strength,
    )


def ignore_candidate_link(
    source_id: UUID,
    master_id: UUID,
    *,
    classification: LinkClassification = LinkClassification.VERIFIED,
    strength: float | None = None,
) -> Relationship:
    return Relationship(
        source_id=source_id,
        target_id=master_id,
        kind=RelationshipKind.IGNORE_CANDIDATE,
        classification=classification,
        strength=strength,
    )


def original_master_link(
    source_id: UUID,
    master_id: UUID,
    *,
    classification: LinkClassification = LinkClassification.AUTOMATIC,
    strength: float | None = None,
) -> Relationship:
    return Relationship(
        source_id=source_id,
        target_id=master_id,
        kind=RelationshipKind.ORIGINAL_MASTER,
        classification=classification,
        strength=strength,
    )


def record_of_truth_link(
    master_id: UUID,
    record_id: UUID,
    *,
    classification: LinkClassification = LinkClassification.VERIFIED,
    strength: float | None = None,
) -> Relationship:
    return Relationship(
        source_id=master_id,
        target_id=record_id,
        kind=RelationshipKind.RECORD_OF_TRUTH,
        classification=classification,
        strength=strength,
    )


def replaces_link(
    survivor_id: UUID,
    replaced_id: UUID,
    *,
    classification: LinkClassification = LinkClassification.AUTOMATIC,
    strength: float | None = None,
) -> Relationship:
    return Relationship(
        source_id=survivor_id,
        target_id=replaced_id,
        kind=RelationshipKind.REPLACES,
        classification=classification,
        strength=strength,
    )


type RelationshipFactory = Callable[..., Relationship]

RELATIONSHIP_FACTORIES: Final[dict[RelationshipKind, RelationshipFactory]] = {
    RelationshipKind.MASTER: master_link,
    RelationshipKind.CANDIDATE: candidate_link,
    RelationshipKind.IGNORE_CANDIDATE: ignore_candidate_link,
    RelationshipKind.ORIGINAL_MASTER: original_master_link,
    RelationshipKind.RECORD_OF_TRUTH: record_of_truth_link,
    RelationshipKind.REPLACES: replaces_link,
}


def build_relationship(
    kind: RelationshipKind,
    source_id: UUID,
    target_id: UUID,
    *,
    classification: LinkClassification,
    strength: float | None = None,
) -> Relationship:
    """Build a link of ``kind`` through its constructor function."""

    return RELATIONSHIP_FACTORIES[kind](
        source_id, target_id, classification=classification, strength=strength
    )
