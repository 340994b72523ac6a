"""Linkage error definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from mdmlink.domain.model.principal import Principal
    from mdmlink.domain.model.record import Record


class MdmError(RuntimeError):
    """Raised by linkage operations; carries the record the failure concerns."""

    def __init__(self, message: str, *, record: Record | UUID | None = None) -> None:
        super().__init__(message)
        self.record = record

    @property
    def record_id(self) -> UUID | None:
        if self.record is None:
            return None
        return getattr(self.record, "id", self.record)  # pyright: ignore[reportReturnType]


class PolicyViolationError(MdmError):
    """Raised when a principal lacks a demanded permission."""

    def __init__(
        self,
        permission: str,
        principal: Principal,
        *,
        record: Record | UUID | None = None,
    ) -> None:
        super().__init__(
            f"Principal {principal.name!r} lacks permission {permission}",
            record=record,
        )
        self.permission = permission
        self.principal = principal


class InvalidMergeError(MdmError):
    """Raised when a merge combination or link direction is not supported."""


class StateConflictError(MdmError):
    """Raised when the requested change contradicts the current link state."""
