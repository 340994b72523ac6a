"""Ports for pluggable matching providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from mdmlink.domain.model import MatchClassification, MatchMethod

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence
    from uuid import UUID

    from mdmlink.domain.model import Record


@dataclass(frozen=True, slots=True, kw_only=True)
class MatchResult:
    """One classified candidate produced by a matching provider."""

    record: Record
    classification: MatchClassification
    method: MatchMethod
    configuration: str
    score: float | None = None
    strength: float | None = None

    @property
    def is_match(self) -> bool:
        return self.classification is MatchClassification.MATCH

    @property
    def is_probable(self) -> bool:
        return self.classification is MatchClassification.PROBABLE


@dataclass(frozen=True, slots=True)
class MatchConfiguration:
    """Named matcher configuration and whether its definitive matches may auto-link."""

    name: str
    auto_link: bool = False


@runtime_checkable
class MatchingProvider(Protocol):
    """Black-box matcher: block candidates, then classify them."""

    def block(
        self,
        record: Record,
        configuration: str,
        ignore_keys: Collection[UUID] = (),
    ) -> Sequence[Record]: ...

    def classify(
        self,
        record: Record,
        blocks: Sequence[Record],
        configuration: str,
    ) -> Sequence[MatchResult]: ...

    def match(
        self,
        record: Record,
        configuration: str,
        ignore_keys: Collection[UUID] = (),
    ) -> Sequence[MatchResult]: ...


@dataclass(frozen=True, slots=True)
class MatcherBinding:
    """A provider bound to the configuration it is run with."""

    provider: MatchingProvider
    configuration: MatchConfiguration

    def run(self, record: Record, ignore_keys: Collection[UUID]) -> Sequence[MatchResult]:
        return self.provider.match(record, self.configuration.name, ignore_keys)
