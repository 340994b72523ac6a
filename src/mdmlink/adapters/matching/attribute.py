"""Deterministic matching on plain record attributes.

Candidates are blocked on equality of every blocking field. A blocked candidate is a MATCH
unless a discriminating field is present on both records with different values, in which case
it is only PROBABLE (twins share a date of birth but not a birth order).
Candidates handed to ``classify`` that do not share every blocking value are NON_MATCH.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from mdmlink.domain.model import MatchClassification, MatchMethod, RecordClass
from mdmlink.domain.ports import MatchResult, RecordCriteria

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Sequence
    from uuid import UUID

    from mdmlink.domain.model import Record
    from mdmlink.domain.ports import MdmRepositories, RecordRepository

log = getLogger(__name__)

_SOURCE_CLASSES = frozenset({RecordClass.LOCAL, RecordClass.RECORD_OF_TRUTH})


@dataclass(slots=True)
class AttributeMatcher:
    records: RecordRepository
    blocking_fields: tuple[str, ...]
    discriminating_fields: tuple[str, ...] = ()

    def block(
        self,
        record: Record,
        configuration: str,
        ignore_keys: Collection[UUID] = (),
    ) -> Sequence[Record]:
        if not self.blocking_fields:
            return []
        values = {name: record.attributes.get(name) for name in self.blocking_fields}
        if any(value is None for value in values.values()):
            log.debug("Record %s lacks blocking fields for %s", record.id, configuration)
            return []
        criteria = RecordCriteria(
            kind=record.kind, classifications=_SOURCE_CLASSES, attributes=values
        )
        return [
            other
            for other in self.records.query(criteria)
            if other.id != record.id and other.id not in ignore_keys
        ]

    def classify(
        self,
        record: Record,
        blocks: Sequence[Record],
        configuration: str,
    ) -> Sequence[MatchResult]:
        results: list[MatchResult] = []
        for other in blocks:
            if not self._same_block(record, other):
                results.append(
                    MatchResult(
                        record=other,
                        classification=MatchClassification.NON_MATCH,
                        method=MatchMethod.SIMPLE,
                        configuration=configuration,
                        score=0.0,
                    )
                )
                continue
            differing = self._differing_fields(record, other)
            classification = (
                MatchClassification.PROBABLE if differing else MatchClassification.MATCH
            )
            score = 1.0 - len(differing) / (len(self.discriminating_fields) + 1)
            results.append(
                MatchResult(
                    record=other,
                    classification=classification,
                    method=MatchMethod.SIMPLE,
                    configuration=configuration,
                    score=score,
                    strength=score,
                )
            )
        return results

    def match(
        self,
        record: Record,
        configuration: str,
        ignore_keys: Collection[UUID] = (),
    ) -> Sequence[MatchResult]:
        return self.classify(record, self.block(record, configuration, ignore_keys), configuration)

    def _same_block(self, record: Record, other: Record) -> bool:
        for name in self.blocking_fields:
            mine = record.attributes.get(name)
            if mine is None or mine != other.attributes.get(name):
                return False
        return True

    def _differing_fields(self, record: Record, other: Record) -> list[str]:
        differing: list[str] = []
        for name in self.discriminating_fields:
            mine = record.attributes.get(name)
            theirs = other.attributes.get(name)
            if mine is not None and theirs is not None and mine != theirs:
                differing.append(name)
        return differing


def attribute_matcher_factory(
    blocking_fields: tuple[str, ...], discriminating_fields: tuple[str, ...] = ()
) -> Callable[[MdmRepositories], AttributeMatcher]:
    def factory(repositories: MdmRepositories) -> AttributeMatcher:
        return AttributeMatcher(repositories.records, blocking_fields, discriminating_fields)

    return factory
