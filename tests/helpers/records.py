"""Builders for governed records, principals and linkage wiring used across tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mdmlink.adapters.matching import attribute_matcher_factory
from mdmlink.adapters.policy import StaticPermissionChecker
from mdmlink.domain.linkage import MatcherRegistration
from mdmlink.domain.model import MdmPermission, Principal, Provenance, Record, RecordKind
from mdmlink.domain.ports import MatchConfiguration

if TYPE_CHECKING:
    from collections.abc import Iterable

NHID_DOMAIN = "NHID"
SOURCE_DOMAIN = "MDM"


def make_patient(
    *,
    dob: str = "1983-01-10",
    birth_order: int | None = None,
    identifiers: Iterable[tuple[str, str]] = (),
    family: str = "Smith",
    given: str = "John",
    application: str | None = "clinic-a",
    **attributes: Any,
) -> Record:
    """A LOCAL patient; ``birth_order`` feeds the discriminating attribute."""

    data: dict[str, Any] = {
        "name": [{"family": family, "given": given}],
        "date_of_birth": dob,
        "gender": "male",
    }
    if birth_order is not None:
        data["multiple_birth_order"] = birth_order
    data.update(attributes)
    record = Record(kind=RecordKind.PATIENT, attributes=data)
    for domain, value in identifiers:
        record.add_identifier(domain, value)
    if application is not None:
        record.set_provenance(Provenance(application=application, user="clerk"))
    return record


def revision_of(record: Record, **attributes: Any) -> Record:
    """A resubmission of ``record`` carrying changed attributes."""

    revised = Record(id=record.id, kind=record.kind, attributes=dict(attributes))
    if record.provenance is not None:
        revised.set_provenance(
            Provenance(application=record.provenance.application, user=record.provenance.user)
        )
    return revised


def make_principal(
    name: str = "clerk",
    *,
    application: str | None = "clinic-a",
    roles: Iterable[str] = (),
) -> Principal:
    return Principal(name=name, application=application, roles=frozenset(roles))


def grants(**principals: Iterable[str]) -> StaticPermissionChecker:
    """Permission checker granting each named principal the given OIDs."""

    return StaticPermissionChecker(
        principals={name: frozenset(oids) for name, oids in principals.items()}
    )


def mdm_operator_grants(*names: str) -> StaticPermissionChecker:
    return grants(**{name: (MdmPermission.UNRESTRICTED_MDM,) for name in names})


def nhid_hook(master: Record, _source: Record) -> None:
    """Stamp every new master with a generated national health identifier."""

    master.add_identifier(NHID_DOMAIN, f"NHID-{master.id.hex[:12].upper()}")


def patient_matchers(*, auto_link: bool = True) -> list[MatcherRegistration]:
    """Date of birth blocks, multiple birth order tells twins apart."""

    return [
        MatcherRegistration(
            MatchConfiguration("default", auto_link=auto_link),
            attribute_matcher_factory(("date_of_birth",), ("multiple_birth_order",)),
        )
    ]
