from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from mdmlink.domain.model.entity import Entity, utcnow

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from mdmlink.domain.model.principal import Principal


@dataclass(eq=False, kw_only=True)
class Provenance:
    """Who submitted a record: the source application/device and acting user."""

    owner_id: UUID | None = None
    application: str | None = None
    device: str | None = None
    user: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def of(cls, principal: Principal) -> Provenance:
        return cls(
            application=principal.application,
            device=principal.device,
            user=principal.name,
        )

    @property
    def source_name(self) -> str | None:
        """Name used for ownership checks (application first, then device)."""
        return self.application or self.device


class Provenanced(Protocol):
    """Read-only access to provenance."""

    @property
    def provenance(self) -> Provenance | None: ...


@dataclass(eq=False, kw_only=True)
class ProvenanceTrackedMixin(Entity, ABC):
    """Capability: carries submission provenance (optional)."""

    _provenance: Provenance | None = field(default=None, repr=False, init=False)

    @property
    def provenance(self) -> Provenance | None:
        return self._provenance

    def set_provenance(self, provenance: Provenance | None) -> None:
        if provenance is not None:
            provenance.owner_id = self.id
        self._provenance = provenance

    def ensure_provenance(self) -> Provenance:
        provenance = self._provenance
        if provenance is None:
            provenance = Provenance()
            self.set_provenance(provenance)
        return provenance
