from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, cast
from uuid import UUID, uuid4

from mdmlink.adapters.remote_matcher import (
    ConfigurationPayload,
    RemoteMatcherClient,
    RemoteMatchingProvider,
    ResultPayload,
)
from mdmlink.domain.model import MatchClassification
from tests.helpers.memory import MemoryStore
from tests.helpers.records import make_patient

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    import pytest

    from mdmlink.domain.model import Record


def _result(record_id: UUID, classification: str = "match") -> ResultPayload:
    return ResultPayload.model_validate(
        {"recordId": str(record_id), "classification": classification}
    )


@dataclass
class FakeMatcherClient:
    candidates: list[UUID] = field(default_factory=list[UUID])
    results: list[ResultPayload] = field(default_factory=list[ResultPayload])
    names: tuple[str, ...] = ("default",)
    calls: list[str] = field(default_factory=list[str])

    def configurations(self) -> list[ConfigurationPayload]:
        self.calls.append("configurations")
        return [ConfigurationPayload(name=name) for name in self.names]

    def block(
        self, record: Record, configuration: str, ignore_keys: Collection[UUID] = ()
    ) -> list[UUID]:
        del record, configuration, ignore_keys
        self.calls.append("block")
        return list(self.candidates)

    def classify(
        self, record: Record, candidates: Sequence[Record], configuration: str
    ) -> list[ResultPayload]:
        del record, candidates, configuration
        self.calls.append("classify")
        return list(self.results)

    def match(
        self, record: Record, configuration: str, ignore_keys: Collection[UUID] = ()
    ) -> list[ResultPayload]:
        del record, configuration, ignore_keys
        self.calls.append("match")
        return list(self.results)


def _provider(store: MemoryStore, client: FakeMatcherClient) -> RemoteMatchingProvider:
    records = store.unit_of_work().repositories.records
    return RemoteMatchingProvider(records, cast(RemoteMatcherClient, cast(Any, client)))


def test_match_drops_self_ignored_and_unknown_records(caplog: pytest.LogCaptureFixture) -> None:
    store = MemoryStore()
    incoming, known, ignored = make_patient(), make_patient(), make_patient()
    store.seed(incoming, known, ignored)
    client = FakeMatcherClient(
        results=[
            _result(incoming.id),
            _result(known.id, "Probable"),
            _result(ignored.id),
            _result(uuid4()),
        ]
    )

    with caplog.at_level(logging.WARNING):
        results = _provider(store, client).match(incoming, "default", {ignored.id})

    assert [(r.record, r.classification) for r in results] == [
        (known, MatchClassification.PROBABLE)
    ]
    assert results[0].configuration == "default"
    assert "unknown to this store" in caplog.text


def test_unknown_configuration_is_skipped_and_names_are_cached() -> None:
    client = FakeMatcherClient(results=[_result(uuid4())])
    provider = _provider(MemoryStore(), client)

    assert provider.match(make_patient(), "strict") == []
    assert provider.block(make_patient(), "strict") == []
    assert provider.supports("default")
    assert client.calls == ["configurations"]


def test_block_resolves_candidate_ids() -> None:
    store = MemoryStore()
    incoming, other = make_patient(), make_patient()
    store.seed(incoming, other)
    client = FakeMatcherClient(candidates=[incoming.id, other.id, uuid4()])

    assert list(_provider(store, client).block(incoming, "default")) == [other]


def test_classify_without_candidates_skips_the_service() -> None:
    client = FakeMatcherClient()
    provider = _provider(MemoryStore(), client)

    assert provider.classify(make_patient(), [], "default") == []
    assert client.calls == []


def test_classify_keeps_only_the_given_candidates() -> None:
    incoming, other = make_patient(), make_patient()
    client = FakeMatcherClient(results=[_result(other.id, "nonmatch"), _result(uuid4())])

    (result,) = _provider(MemoryStore(), client).classify(incoming, [other], "default")

    assert result.record is other
    assert result.classification is MatchClassification.NON_MATCH
