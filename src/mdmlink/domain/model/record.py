"""Governed records: source LOCALs, engine-owned MASTERs and records of truth."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from mdmlink.domain.model.constants import MASTER_ONLY_TAGS, MDM_TYPE_TAG
from mdmlink.domain.model.entity import utcnow
from mdmlink.domain.model.enums import RecordClass, RecordKind, RecordStatus
from mdmlink.domain.model.identifiers import IdentifiableMixin
from mdmlink.domain.model.provenance import ProvenanceTrackedMixin

type AttributeValue = Any


@dataclass(eq=False, kw_only=True)
class Record(IdentifiableMixin, ProvenanceTrackedMixin):
    """One governed domain record.

    ``attributes`` hold the matching-relevant domain data as a JSON-compatible mapping
    (names, date of birth, gender, ...). ``policies`` lists the restricted-data policy
    identifiers a principal must hold to see this record's data.
    """

    SYSTEM_ATTRIBUTES: ClassVar[frozenset[str]] = frozenset({"relationships"})

    kind: RecordKind = RecordKind.PATIENT
    classification: RecordClass = RecordClass.LOCAL
    status: RecordStatus = RecordStatus.ACTIVE
    determiner: str | None = None
    attributes: dict[str, AttributeValue] = field(default_factory=dict[str, "AttributeValue"])
    tags: dict[str, str] = field(default_factory=dict[str, str])
    policies: set[str] = field(default_factory=set[str])
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None

    # classification ---------------------------------------------------------

    @property
    def is_master(self) -> bool:
        return self.classification is RecordClass.MASTER

    @property
    def is_local(self) -> bool:
        return self.classification is RecordClass.LOCAL

    @property
    def is_record_of_truth(self) -> bool:
        return self.classification is RecordClass.RECORD_OF_TRUTH or (
            self.tags.get(MDM_TYPE_TAG) == RecordClass.RECORD_OF_TRUTH.type_tag
        )

    @property
    def is_active(self) -> bool:
        return self.status is RecordStatus.ACTIVE

    # lifecycle --------------------------------------------------------------

    def obsolete(self) -> None:
        self.status = RecordStatus.OBSOLETE
        self.touch()

    def touch(self) -> None:
        self.updated_at = utcnow()

    # tags -------------------------------------------------------------------

    def get_tag(self, name: str) -> str | None:
        return self.tags.get(name)

    def add_tag(self, name: str, value: str) -> None:
        self.tags[name] = value

    def remove_tag(self, name: str) -> None:
        self.tags.pop(name, None)

    def strip_master_tags(self) -> None:
        """Drop tags only engine-owned records may carry."""
        for name in MASTER_ONLY_TAGS:
            self.tags.pop(name, None)

    # data -------------------------------------------------------------------

    def copy_data_from(self, other: Record) -> None:
        """Copy incoming attribute changes and identifiers from ``other`` onto this record."""

        merged = dict(self.attributes)
        for name, value in other.attributes.items():
            if name in self.SYSTEM_ATTRIBUTES:
                continue
            merged[name] = value
        self.attributes = merged
        self.copy_identifiers_from(i.pair for i in other.identifiers)
        self.policies = set(self.policies) | set(other.policies)
        for name, value in other.tags.items():
            if name not in MASTER_ONLY_TAGS:
                self.tags[name] = value
        if other.determiner is not None:
            self.determiner = other.determiner
        self.touch()
