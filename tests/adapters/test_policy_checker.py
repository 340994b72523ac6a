from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from mdmlink.adapters.policy import StaticPermissionChecker
from mdmlink.config import ConfigurationError
from mdmlink.domain.model import SYSTEM_PRINCIPAL, MdmPermission, PolicyViolationError
from tests.helpers.records import make_principal

if TYPE_CHECKING:
    from pathlib import Path

POLICY = f"""
[defaults]
grants = ["{MdmPermission.READ_MDM_LOCALS}"]

[roles.registrar]
grants = ["{MdmPermission.ESTABLISH_RECORD_OF_TRUTH}"]

[principals.alice]
grants = ["{MdmPermission.UNRESTRICTED_MDM}"]
"""


def _checker(tmp_path: Path, text: str = POLICY) -> StaticPermissionChecker:
    path = tmp_path / "policy.toml"
    path.write_text(text)
    return StaticPermissionChecker.from_file(path)


def test_grants_combine_defaults_roles_and_principal(tmp_path: Path) -> None:
    checker = _checker(tmp_path)
    registrar = make_principal("bob", roles=("registrar",))

    assert checker.granted_to(registrar) == {
        MdmPermission.READ_MDM_LOCALS,
        MdmPermission.ESTABLISH_RECORD_OF_TRUTH,
    }
    assert checker.is_granted(MdmPermission.EDIT_RECORD_OF_TRUTH, registrar)
    assert not checker.is_granted(MdmPermission.WRITE_MDM_MASTER, registrar)


def test_parent_oid_implies_children(tmp_path: Path) -> None:
    checker = _checker(tmp_path)
    alice = make_principal("alice")

    assert checker.is_granted(MdmPermission.MERGE_MDM_MASTER, alice)
    assert checker.is_granted(MdmPermission.EDIT_RECORD_OF_TRUTH, alice)
    assert not checker.is_granted("1.3.6.1.4.1.33349.3.1.5.9.2.60", alice)


def test_system_principal_is_always_granted() -> None:
    assert StaticPermissionChecker().is_granted(MdmPermission.UNRESTRICTED_MDM, SYSTEM_PRINCIPAL)


def test_demand_raises_for_missing_grant(tmp_path: Path) -> None:
    checker = _checker(tmp_path)

    checker.demand(MdmPermission.READ_MDM_LOCALS, make_principal("nobody"))
    with pytest.raises(PolicyViolationError, match="nobody"):
        checker.demand(MdmPermission.MERGE_MDM_MASTER, make_principal("nobody"))


def test_invalid_policy_files_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Invalid policy file"):
        _checker(tmp_path, "[defaults\n")
    with pytest.raises(ConfigurationError, match="list of OID strings"):
        _checker(tmp_path, '[principals.alice]\ngrants = "1.2.3"\n')
    with pytest.raises(ConfigurationError, match="must be a table"):
        _checker(tmp_path, 'principals = { alice = "1.2.3" }\n')
