"""Translate between domain records and remote matcher payloads."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mdmlink.domain.ports import MatchResult

from .schema import IdentifierPayload, RecordPayload

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from mdmlink.domain.model import Record

    from .schema import ResultPayload


def record_to_payload(record: Record) -> RecordPayload:
    return RecordPayload(
        id=record.id,
        kind=record.kind.value,
        classification=record.classification.value,
        attributes=dict(record.attributes),
        identifiers=[
            IdentifierPayload(domain=identifier.domain, value=identifier.value)
            for identifier in record.identifiers
        ],
    )


def parse_results(
    payloads: list[ResultPayload],
    candidates: Mapping[UUID, Record],
    configuration: str,
) -> list[MatchResult]:
    """Attach result payloads to the candidate records they name; unknown ids are dropped."""

    return [
        MatchResult(
            record=candidates[payload.record_id],
            classification=payload.classification,
            method=payload.method,
            configuration=configuration,
            score=payload.score,
            strength=payload.strength,
        )
        for payload in payloads
        if payload.record_id in candidates
    ]
