"""Explicit transaction value threaded through every linkage call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from mdmlink.domain.model import SYSTEM_PRINCIPAL, Provenance, Record, Relationship

if TYPE_CHECKING:
    from collections.abc import Iterator
    from uuid import UUID

    from mdmlink.domain.model import Principal


type TransactionItem = Record | Relationship


@dataclass(slots=True)
class TransactionBuilder:
    """Ordered set of records and relationships that must be committed together.

    Items are keyed by id: adding an item twice keeps its first position and the latest object.
    Only items that are new or changed are registered, so the number of relationship items is
    the number of relationship deltas a decision produces.
    """

    principal: Principal = SYSTEM_PRINCIPAL
    _items: dict[UUID, TransactionItem] = field(
        default_factory=dict["UUID", "TransactionItem"], repr=False
    )

    def add[TItem: TransactionItem](self, item: TItem) -> TItem:
        if isinstance(item, Record) and item.provenance is None and item.is_local:
            item.set_provenance(Provenance.of(self.principal))
        self._items[item.id] = item
        return item

    def get(self, key: UUID) -> TransactionItem | None:
        return self._items.get(key)

    def record(self, key: UUID) -> Record | None:
        item = self._items.get(key)
        return item if isinstance(item, Record) else None

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[TransactionItem]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    @property
    def records(self) -> list[Record]:
        return [item for item in self._items.values() if isinstance(item, Record)]

    @property
    def relationships(self) -> list[Relationship]:
        return [item for item in self._items.values() if isinstance(item, Relationship)]

    @property
    def relationship_deltas(self) -> int:
        return len(self.relationships)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def merge(self, other: TransactionBuilder) -> None:
        """Append every item of ``other`` (used when a nested decision joins this one)."""

        for item in other:
            self.add(item)
