"""Pydantic models describing the remote matcher payloads."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mdmlink.domain.model import MatchClassification, MatchMethod


def _normalize_token(value: object) -> object:
    if isinstance(value, str):
        return value.strip().lower().replace("-", "_").replace("nonmatch", "non_match")
    return value


class MatcherBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class IdentifierPayload(MatcherBaseModel):
    domain: str
    value: str


class RecordPayload(MatcherBaseModel):
    id: UUID
    kind: str
    classification: str
    attributes: dict[str, Any] = Field(default_factory=dict)
    identifiers: list[IdentifierPayload] = Field(default_factory=list)


class BlockRequest(MatcherBaseModel):
    configuration: str
    record: RecordPayload
    ignore: list[UUID] = Field(default_factory=list)


class ClassifyRequest(MatcherBaseModel):
    configuration: str
    record: RecordPayload
    candidates: list[RecordPayload]


class BlockResponse(MatcherBaseModel):
    candidates: list[UUID] = Field(default_factory=list)


class ResultPayload(MatcherBaseModel):
    record_id: UUID = Field(alias="recordId")
    classification: MatchClassification
    method: MatchMethod = MatchMethod.WEIGHTED
    score: float | None = None
    strength: float | None = None

    _normalize_classification = field_validator("classification", "method", mode="before")(
        _normalize_token
    )


class MatchResponse(MatcherBaseModel):
    results: list[ResultPayload] = Field(default_factory=list)


class ConfigurationPayload(MatcherBaseModel):
    name: str
    auto_link: bool = Field(default=False, alias="autoLink")


class ConfigurationsResponse(MatcherBaseModel):
    configurations: list[ConfigurationPayload] = Field(default_factory=list)


class ErrorResponse(MatcherBaseModel):
    error: str
    code: int | None = None
