"""Value types shared across the linkage core.

This module holds only:
- ``MasterMatch`` grouping of raw match results by owning master
- interceptor outcomes (``Proceed | Cancel``)
- operation results and validation issues
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Literal

from mdmlink.domain.model import MatchClassification, MergeStatus

if TYPE_CHECKING:
    from uuid import UUID

    from mdmlink.domain.ports import MatchResult


@dataclass(eq=False, slots=True, kw_only=True)
class MasterMatch:
    """Match results resolved to the master that owns the matched record.

    Two different locals that resolve to the same master count once; equality is by master key.
    """

    master_id: UUID
    results: list[MatchResult] = field(default_factory=list["MatchResult"])
    auto_link: bool = False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MasterMatch):
            return NotImplemented
        return self.master_id == other.master_id

    def __hash__(self) -> int:
        return hash(self.master_id)

    @property
    def classification(self) -> MatchClassification:
        return max(
            (r.classification for r in self.results),
            key=lambda c: c.rank,
            default=MatchClassification.NON_MATCH,
        )

    def add(self, result: MatchResult, *, auto_link: bool) -> None:
        """Record ``result``; definitive results from auto-linking configurations arm auto-link."""

        self.results.append(result)
        if auto_link and result.is_match:
            self.auto_link = True

    @property
    def strength(self) -> float | None:
        strengths = [r.strength for r in self.results if r.strength is not None]
        return max(strengths) if strengths else None


@dataclass(frozen=True, slots=True, kw_only=True)
class Proceed:
    """Let the write continue down the pipeline."""

    outcome: Literal["proceed"] = "proceed"


@dataclass(frozen=True, slots=True, kw_only=True)
class Cancel:
    """Stop the original write; ``result`` is what the caller receives instead."""

    reason: str
    result: Any = None
    outcome: Literal["cancel"] = "cancel"


type InterceptorOutcome = Proceed | Cancel

PROCEED = Proceed()


@dataclass(slots=True, kw_only=True)
class MergeResult:
    """Outcome of a merge or unmerge request."""

    status: MergeStatus
    survivors: tuple[UUID, ...] = ()
    replaced: tuple[UUID, ...] = ()
    reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self.status is MergeStatus.CANCELLED


class IssuePriority(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidationIssue:
    code: str
    message: str
    priority: IssuePriority = IssuePriority.ERROR
    record_id: UUID | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class RecordDifference:
    """One field-level difference between a master view and a record."""

    path: str
    master_value: Any
    record_value: Any
