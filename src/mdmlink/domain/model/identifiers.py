"""Business identifiers owned by records.

An Identifier is a (domain, value) pair owned by one record id. Domains flagged
``unique`` promise that one value identifies exactly one real-world entity, which
is what the identity matcher relies on.
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from mdmlink.domain.model.entity import Entity

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID


@dataclass(eq=False, kw_only=True)
class IdentifierDomain:
    """Assigning authority for identifier values."""

    name: str
    oid: str | None = None
    unique: bool = False
    description: str | None = None


@dataclass(eq=False, kw_only=True)
class Identifier:
    domain: str
    value: str
    owner_id: UUID

    @property
    def pair(self) -> tuple[str, str]:
        return (self.domain, self.value)


class IdentifierCollection(Protocol):
    """Read-only access to owned identifiers."""

    @property
    def identifiers(self) -> tuple[Identifier, ...]: ...


@dataclass(eq=False, kw_only=True)
class IdentifiableMixin(Entity, ABC):
    """Capability: owns identifiers, at most one per (domain, value)."""

    _identifiers: list[Identifier] = field(
        default_factory=list["Identifier"], repr=False, init=False
    )

    @property
    def identifiers(self) -> tuple[Identifier, ...]:
        return tuple(self._identifiers)

    def has_identifier(self, domain: str, value: str) -> bool:
        return any(i.domain == domain and i.value == value for i in self._identifiers)

    def add_identifier(self, domain: str, value: str, *, replace: bool = False) -> bool:
        """Attach ``value`` in ``domain``; return False when it was already present."""

        if replace:
            self._identifiers[:] = [i for i in self._identifiers if i.domain != domain]
        elif self.has_identifier(domain, value):
            return False
        self._identifiers.append(Identifier(domain=domain, value=value, owner_id=self.id))
        return True

    def remove_identifier(self, domain: str, value: str) -> None:
        self._identifiers[:] = [
            i for i in self._identifiers if not (i.domain == domain and i.value == value)
        ]

    def copy_identifiers_from(self, pairs: Iterable[tuple[str, str]]) -> int:
        """Copy identifiers that are not yet present; return how many were added."""

        return sum(1 for domain, value in pairs if self.add_identifier(domain, value))

    def identifiers_in(self, domain: str) -> tuple[str, ...]:
        return tuple(i.value for i in self._identifiers if i.domain == domain)
