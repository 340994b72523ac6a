"""Matching provider backed by the remote matcher client."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from .translator import parse_results

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Sequence
    from uuid import UUID

    from mdmlink.domain.model import Record
    from mdmlink.domain.ports import MatchResult, MdmRepositories, RecordRepository

    from .client import RemoteMatcherClient

log = getLogger(__name__)


@dataclass(slots=True)
class RemoteMatchingProvider:
    """Candidates come back as record ids and are resolved against the local store."""

    records: RecordRepository
    client: RemoteMatcherClient
    _known: frozenset[str] | None = field(default=None, init=False, repr=False)

    def supports(self, configuration: str) -> bool:
        if self._known is None:
            self._known = frozenset(item.name for item in self.client.configurations())
        return configuration in self._known

    def block(
        self,
        record: Record,
        configuration: str,
        ignore_keys: Collection[UUID] = (),
    ) -> Sequence[Record]:
        if not self.supports(configuration):
            log.warning("Matcher does not know configuration %r; skipping", configuration)
            return []
        candidates = self.client.block(record, configuration, ignore_keys)
        ids = [key for key in candidates if key != record.id]
        return self.records.get_many(ids)

    def classify(
        self,
        record: Record,
        blocks: Sequence[Record],
        configuration: str,
    ) -> Sequence[MatchResult]:
        if not blocks:
            return []
        payloads = self.client.classify(record, blocks, configuration)
        return parse_results(payloads, {other.id: other for other in blocks}, configuration)

    def match(
        self,
        record: Record,
        configuration: str,
        ignore_keys: Collection[UUID] = (),
    ) -> Sequence[MatchResult]:
        if not self.supports(configuration):
            log.warning("Matcher does not know configuration %r; skipping", configuration)
            return []
        payloads = self.client.match(record, configuration, ignore_keys)
        wanted = [p.record_id for p in payloads if p.record_id != record.id]
        wanted = [key for key in wanted if key not in ignore_keys]
        found = {other.id: other for other in self.records.get_many(wanted)}
        if len(found) < len(wanted):
            log.warning(
                "Matcher returned %d record(s) unknown to this store", len(wanted) - len(found)
            )
        return parse_results(payloads, found, configuration)


def remote_matcher_factory(
    client: RemoteMatcherClient,
) -> Callable[[MdmRepositories], RemoteMatchingProvider]:
    def factory(repositories: MdmRepositories) -> RemoteMatchingProvider:
        return RemoteMatchingProvider(repositories.records, client)

    return factory
