"""Static grant-table permission checker.

The policy file is TOML::

    [defaults]
    grants = []

    [roles.registrar]
    grants = ["1.3.6.1.4.1.33349.3.1.5.9.2.6.2"]

    [principals.alice]
    grants = ["1.3.6.1.4.1.33349.3.1.5.9.2.6"]

A granted OID implies every OID beneath it. The system principal is always granted.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, cast

from mdmlink.config import ConfigurationError
from mdmlink.domain.model import PolicyViolationError, permission_implies

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

    from mdmlink.domain.model import Principal

log = getLogger(__name__)


def _grants(section: object, where: str) -> frozenset[str]:
    if not isinstance(section, dict):
        raise ConfigurationError(f"Policy section {where} must be a table")
    raw = cast(dict[str, Any], section).get("grants", [])
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise ConfigurationError(f"Policy section {where} needs a list of OID strings")
    return frozenset(cast(list[str], raw))


@dataclass(frozen=True, slots=True)
class StaticPermissionChecker:
    principals: Mapping[str, frozenset[str]] = field(default_factory=dict[str, frozenset[str]])
    roles: Mapping[str, frozenset[str]] = field(default_factory=dict[str, frozenset[str]])
    defaults: frozenset[str] = frozenset()

    @classmethod
    def from_file(cls, path: Path) -> StaticPermissionChecker:
        try:
            with path.open("rb") as policy_file:
                document = tomllib.load(policy_file)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"Invalid policy file {path}: {exc}") from exc

        principals = {
            name: _grants(section, f"principals.{name}")
            for name, section in document.get("principals", {}).items()
        }
        roles = {
            name: _grants(section, f"roles.{name}")
            for name, section in document.get("roles", {}).items()
        }
        defaults = _grants(document.get("defaults", {}), "defaults")
        log.info(
            "Loaded policy file %s (%d principal(s), %d role(s))", path, len(principals), len(roles)
        )
        return cls(principals=principals, roles=roles, defaults=defaults)

    def granted_to(self, principal: Principal) -> frozenset[str]:
        granted = set(self.defaults)
        granted |= self.principals.get(principal.name, frozenset())
        for role in principal.roles:
            granted |= self.roles.get(role, frozenset())
        return frozenset(granted)

    def is_granted(self, permission: str, principal: Principal) -> bool:
        if principal.is_system:
            return True
        return any(
            permission_implies(granted, permission) for granted in self.granted_to(principal)
        )

    def demand(self, permission: str, principal: Principal) -> None:
        if not self.is_granted(permission, principal):
            log.info("Denied %s to %s", permission, principal.name)
            raise PolicyViolationError(permission, principal)


if TYPE_CHECKING:
    from mdmlink.domain.ports import PermissionChecker

    _checker_check: PermissionChecker = StaticPermissionChecker()
