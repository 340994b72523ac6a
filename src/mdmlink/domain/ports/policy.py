"""Permission checking port."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from mdmlink.domain.model import Principal


@runtime_checkable
class PermissionChecker(Protocol):
    """Capability check against permission identifiers (policy OIDs)."""

    def demand(self, permission: str, principal: Principal) -> None:
        """Raise ``PolicyViolationError`` when ``principal`` lacks ``permission``."""
        ...

    def is_granted(self, permission: str, principal: Principal) -> bool: ...
