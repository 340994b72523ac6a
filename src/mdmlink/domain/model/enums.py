"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum
from typing import Final
from uuid import UUID


class RecordKind(StrEnum):
    """Discriminator for governed record types."""

    PATIENT = "patient"
    PERSON = "person"
    PROVIDER = "provider"
    ORGANIZATION = "organization"
    PLACE = "place"


class RecordClass(StrEnum):
    """Position of a record in the master data graph."""

    LOCAL = "LOCAL"
    MASTER = "MASTER"
    RECORD_OF_TRUTH = "RECORD_OF_TRUTH"

    @property
    def type_tag(self) -> str:
        """Value carried by the ``$mdm.type`` tag."""
        return _TYPE_TAGS[self]


class RecordStatus(StrEnum):
    ACTIVE = "ACTIVE"
    OBSOLETE = "OBSOLETE"
    NULLIFIED = "NULLIFIED"


class RelationshipKind(StrEnum):
    """Closed set of link kinds the engine reads and writes."""

    MASTER = "MASTER"
    ORIGINAL_MASTER = "ORIGINAL_MASTER"
    RECORD_OF_TRUTH = "RECORD_OF_TRUTH"
    CANDIDATE = "CANDIDATE"
    IGNORE_CANDIDATE = "IGNORE_CANDIDATE"
    REPLACES = "REPLACES"

    @property
    def key(self) -> UUID:
        """Well-known persisted key of this relationship type."""
        return _RELATIONSHIP_KEYS[self]


class LinkClassification(StrEnum):
    AUTOMATIC = "AUTOMATIC"
    VERIFIED = "VERIFIED"
    SYSTEM = "SYSTEM"

    @property
    def key(self) -> UUID:
        return _CLASSIFICATION_KEYS[self]


class MatchClassification(StrEnum):
    """Outcome of a matching provider for one candidate record."""

    MATCH = "match"
    PROBABLE = "probable"
    NON_MATCH = "non_match"

    @property
    def rank(self) -> int:
        return _MATCH_RANKS[self]


class MatchMethod(StrEnum):
    IDENTIFIER = "identifier"
    WEIGHTED = "weighted"
    SIMPLE = "simple"


class MergeStatus(StrEnum):
    SUCCESS = "success"
    ALTERNATE = "alternate"
    CANCELLED = "cancelled"


_TYPE_TAGS: Final[dict[RecordClass, str]] = {
    RecordClass.LOCAL: "L",
    RecordClass.MASTER: "M",
    RecordClass.RECORD_OF_TRUTH: "T",
}

_RELATIONSHIP_KEYS: Final[dict[RelationshipKind, UUID]] = {
    RelationshipKind.MASTER: UUID("97730a52-7e30-4dcd-94cd-fd532d111578"),
    RelationshipKind.ORIGINAL_MASTER: UUID("a2837281-7e30-4dcd-94cd-fd532d111578"),
    RelationshipKind.RECORD_OF_TRUTH: UUID("1c778948-2cb6-4696-bc04-4a6eca140c20"),
    RelationshipKind.CANDIDATE: UUID("56cfb115-8207-4f89-b52e-d20dbad8f8cc"),
    RelationshipKind.IGNORE_CANDIDATE: UUID("decfb115-8207-4f89-b52e-d20dbad8f8cc"),
    RelationshipKind.REPLACES: UUID("d1578637-e1cb-415e-b319-4011da033813"),
}

_CLASSIFICATION_KEYS: Final[dict[LinkClassification, UUID]] = {
    LinkClassification.AUTOMATIC: UUID("4311e243-fcdf-43d0-9905-41fd231b1b51"),
    LinkClassification.VERIFIED: UUID("3b9365ba-c229-44c4-95ae-6489809a33f0"),
    LinkClassification.SYSTEM: UUID("253bed89-1c83-4723-af14-71cd83f4b249"),
}

_MATCH_RANKS: Final[dict[MatchClassification, int]] = {
    MatchClassification.NON_MATCH: 0,
    MatchClassification.PROBABLE: 1,
    MatchClassification.MATCH: 2,
}
