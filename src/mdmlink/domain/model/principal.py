"""Security principal on whose behalf an operation runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final


@dataclass(frozen=True, slots=True, kw_only=True)
class Principal:
    name: str
    application: str | None = None
    device: str | None = None
    roles: frozenset[str] = field(default_factory=frozenset[str])
    is_system: bool = False

    @property
    def source_name(self) -> str | None:
        return self.application or self.device


SYSTEM_PRINCIPAL: Final[Principal] = Principal(
    name="SYSTEM",
    application="mdmlink",
    is_system=True,
)
