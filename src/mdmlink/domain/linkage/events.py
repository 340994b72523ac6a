"""Merge and unmerge notification hooks."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mdmlink.domain.linkage.contracts import Cancel

if TYPE_CHECKING:
    from uuid import UUID

    from mdmlink.domain.linkage.contracts import InterceptorOutcome
    from mdmlink.domain.model import Principal


@dataclass(frozen=True, slots=True, kw_only=True)
class MergeEventArgs:
    principal: Principal
    survivor_id: UUID
    linked_ids: tuple[UUID, ...]


type PreMergeHandler = Callable[[MergeEventArgs], InterceptorOutcome]
type PostMergeHandler = Callable[[MergeEventArgs], None]


def _first_cancel(
    handlers: list[PreMergeHandler], args: MergeEventArgs
) -> Cancel | None:
    for handler in handlers:
        outcome = handler(args)
        if isinstance(outcome, Cancel):
            return outcome
    return None


@dataclass(slots=True)
class MergeEvents:
    """Ordered handler lists; ``merging``/``unmerging`` handlers may cancel."""

    merging: list[PreMergeHandler] = field(default_factory=list["PreMergeHandler"])
    merged: list[PostMergeHandler] = field(default_factory=list["PostMergeHandler"])
    unmerging: list[PreMergeHandler] = field(default_factory=list["PreMergeHandler"])
    unmerged: list[PostMergeHandler] = field(default_factory=list["PostMergeHandler"])

    def before_merge(self, args: MergeEventArgs) -> Cancel | None:
        return _first_cancel(self.merging, args)

    def after_merge(self, args: MergeEventArgs) -> None:
        for handler in self.merged:
            handler(args)

    def before_unmerge(self, args: MergeEventArgs) -> Cancel | None:
        return _first_cancel(self.unmerging, args)

    def after_unmerge(self, args: MergeEventArgs) -> None:
        for handler in self.unmerged:
            handler(args)
