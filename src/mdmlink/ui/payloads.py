"""Pydantic models for records read from JSON lines and rendered back as JSON."""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, cast
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from mdmlink.domain.model import (
    MDM_TYPE_TAG,
    Provenance,
    Record,
    RecordClass,
    RecordKind,
    RecordStatus,
)

if TYPE_CHECKING:
    from mdmlink.domain.model import Principal, Relationship


class IdentifierInput(BaseModel):
    model_config = ConfigDict(extra="forbid")

    domain: str
    value: str


class RecordInput(BaseModel):
    """One line of an ingest file.

    ``identifiers`` may be a list of ``{"domain", "value"}`` objects or a ``{domain: value}``
    mapping. ``master`` names the master a record of truth speaks for.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: UUID | None = None
    kind: RecordKind = RecordKind.PATIENT
    status: RecordStatus = RecordStatus.ACTIVE
    determiner: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    identifiers: list[IdentifierInput] = Field(default_factory=list)
    tags: dict[str, str] = Field(default_factory=dict)
    policies: list[str] = Field(default_factory=list)
    record_of_truth: bool = Field(default=False, alias="recordOfTruth")
    master: UUID | None = None

    @model_validator(mode="before")
    @classmethod
    def _identifier_mapping(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return value
        data = dict(cast(Mapping[str, object], value))
        identifiers = data.get("identifiers")
        if isinstance(identifiers, Mapping):
            pairs = cast(Mapping[str, object], identifiers)
            data["identifiers"] = [
                {"domain": domain, "value": str(item)} for domain, item in pairs.items()
            ]
        return data

    @model_validator(mode="after")
    def _master_needs_record_of_truth(self) -> RecordInput:
        if self.master is not None and not self.record_of_truth:
            raise ValueError("'master' is only meaningful for a record of truth")
        return self

    def to_record(self, principal: Principal) -> Record:
        keyed: dict[str, Any] = {"id": self.id} if self.id is not None else {}
        record = Record(
            **keyed,
            kind=self.kind,
            classification=(
                RecordClass.RECORD_OF_TRUTH if self.record_of_truth else RecordClass.LOCAL
            ),
            status=self.status,
            determiner=self.determiner,
            attributes=dict(self.attributes),
            tags=dict(self.tags),
            policies=set(self.policies),
        )
        if self.record_of_truth:
            record.add_tag(MDM_TYPE_TAG, RecordClass.RECORD_OF_TRUTH.type_tag)
        for identifier in self.identifiers:
            record.add_identifier(identifier.domain, identifier.value)
        record.set_provenance(Provenance.of(principal))
        return record


def record_to_dict(record: Record) -> dict[str, Any]:
    provenance = record.provenance
    return {
        "id": str(record.id),
        "kind": record.kind.value,
        "classification": record.classification.value,
        "status": record.status.value,
        "determiner": record.determiner,
        "attributes": dict(record.attributes),
        "identifiers": [{"domain": i.domain, "value": i.value} for i in record.identifiers],
        "tags": dict(record.tags),
        "policies": sorted(record.policies),
        "source": provenance.source_name if provenance is not None else None,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


def relationship_to_dict(relationship: Relationship) -> dict[str, Any]:
    return {
        "id": str(relationship.id),
        "source": str(relationship.source_id),
        "target": str(relationship.target_id),
        "kind": relationship.kind.value,
        "classification": relationship.classification.value,
        "strength": relationship.strength,
        "active": relationship.is_active,
    }
