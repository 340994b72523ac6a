"""Built-in matcher on globally unique identifier domains.

The set of unique domains is process-wide state with an explicit lifecycle:
``initialize`` at engine start, ``refresh``/``evict`` when domains are created, updated or
removed, ``teardown`` at engine stop.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from mdmlink.domain.model import (
    IDENTITY_MATCH_CONFIGURATION,
    MatchClassification,
    MatchMethod,
)
from mdmlink.domain.ports import MatchConfiguration, MatchResult

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from uuid import UUID

    from mdmlink.domain.model import IdentifierDomain, Record
    from mdmlink.domain.ports import IdentifierDomainRepository, RecordRepository

log = getLogger(__name__)

IDENTITY_CONFIGURATION = MatchConfiguration(IDENTITY_MATCH_CONFIGURATION, auto_link=True)


class UniqueDomainCache:
    """Names of identifier domains flagged ``unique``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._names: frozenset[str] | None = None

    @property
    def is_initialized(self) -> bool:
        return self._names is not None

    @property
    def names(self) -> frozenset[str]:
        return self._names or frozenset()

    def initialize(self, domains: IdentifierDomainRepository) -> None:
        with self._lock:
            if self._names is None:
                self._names = _load(domains)
                log.debug("Loaded %d unique identifier domain(s)", len(self._names))

    def refresh(
        self,
        domains: IdentifierDomainRepository | None = None,
        *,
        changed: IdentifierDomain | None = None,
    ) -> None:
        """Reload everything, or fold one created/updated domain into the cache."""

        with self._lock:
            if domains is not None:
                self._names = _load(domains)
                return
            if changed is None or self._names is None:
                return
            if changed.unique:
                self._names = self._names | {changed.name}
            else:
                self._names = self._names - {changed.name}

    def evict(self, name: str) -> None:
        with self._lock:
            if self._names is not None:
                self._names = self._names - {name}

    def teardown(self) -> None:
        with self._lock:
            self._names = None

    def is_unique(self, domain: str) -> bool:
        return domain in self.names


def _load(domains: IdentifierDomainRepository) -> frozenset[str]:
    return frozenset(domain.name for domain in domains.list_all() if domain.unique)


UNIQUE_DOMAINS = UniqueDomainCache()


@dataclass(slots=True)
class IdentityMatcher:
    """Match records that share a value in a unique identifier domain."""

    records: RecordRepository
    domains: IdentifierDomainRepository
    cache: UniqueDomainCache = UNIQUE_DOMAINS

    def _unique_pairs(self, record: Record) -> list[tuple[str, str]]:
        if not self.cache.is_initialized:
            self.cache.initialize(self.domains)
        return [i.pair for i in record.identifiers if self.cache.is_unique(i.domain)]

    def block(
        self,
        record: Record,
        configuration: str = IDENTITY_MATCH_CONFIGURATION,
        ignore_keys: Collection[UUID] = (),
    ) -> Sequence[Record]:
        found: dict[UUID, Record] = {}
        for domain, value in self._unique_pairs(record):
            for other in self.records.find_by_identifier(domain, value, kind=record.kind):
                if other.id == record.id or other.id in ignore_keys:
                    continue
                found.setdefault(other.id, other)
        return list(found.values())

    def classify(
        self,
        record: Record,
        blocks: Sequence[Record],
        configuration: str = IDENTITY_MATCH_CONFIGURATION,
    ) -> Sequence[MatchResult]:
        pairs = set(self._unique_pairs(record))
        results: list[MatchResult] = []
        for other in blocks:
            shared = pairs.intersection(i.pair for i in other.identifiers)
            results.append(
                MatchResult(
                    record=other,
                    classification=(
                        MatchClassification.MATCH if shared else MatchClassification.NON_MATCH
                    ),
                    method=MatchMethod.IDENTIFIER,
                    configuration=configuration,
                    score=1.0 if shared else 0.0,
                    strength=1.0 if shared else None,
                )
            )
        return results

    def match(
        self,
        record: Record,
        configuration: str = IDENTITY_MATCH_CONFIGURATION,
        ignore_keys: Collection[UUID] = (),
    ) -> Sequence[MatchResult]:
        return self.classify(record, self.block(record, configuration, ignore_keys), configuration)
