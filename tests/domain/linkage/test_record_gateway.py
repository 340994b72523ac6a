from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import uuid4

import pytest

from mdmlink.domain.linkage import RecordGateway
from mdmlink.domain.model import (
    MDM_TYPE_TAG,
    MdmError,
    PolicyViolationError,
    Record,
    RecordClass,
    RecordKind,
)
from tests.helpers.linkage import make_application, master_link_of, master_of
from tests.helpers.memory import MemoryStore
from tests.helpers.records import make_patient, make_principal, mdm_operator_grants

if TYPE_CHECKING:
    from uuid import UUID

    from mdmlink.domain.linkage import InterceptorOutcome
    from mdmlink.domain.linkage.interceptors import WriteContext


def _master_update(master_id: UUID, **attributes: Any) -> Record:
    return Record(id=master_id, kind=RecordKind.PATIENT, attributes=dict(attributes))


def test_update_of_master_lands_on_callers_own_local() -> None:
    store = MemoryStore()
    app = make_application(store.unit_of_work)
    patient = app.gateway.insert(make_patient())
    master_id = master_of(store.unit_of_work, patient.id)

    result = app.gateway.update(_master_update(master_id, gender="female"), make_principal())

    assert result.id == patient.id
    assert store.records[patient.id].attributes["gender"] == "female"
    assert store.records[master_id].attributes == {}
    assert master_of(store.unit_of_work, patient.id) == master_id


def test_update_of_master_by_stranger_creates_verified_local() -> None:
    store = MemoryStore()
    app = make_application(store.unit_of_work)
    patient = app.gateway.insert(make_patient())
    master_id = master_of(store.unit_of_work, patient.id)
    stranger = make_principal("nurse", application="clinic-b")

    result = app.gateway.update(_master_update(master_id, gender="female"), stranger)

    assert result.id not in {patient.id, master_id}
    created = store.records[result.id]
    assert created.is_local
    assert created.attributes == {"gender": "female"}
    assert created.provenance is not None
    assert created.provenance.application == "clinic-b"
    link = master_link_of(store.unit_of_work, created.id)
    assert link.target_id == master_id
    assert link.is_verified


def test_external_insert_of_master_is_downgraded() -> None:
    store = MemoryStore()
    app = make_application(store.unit_of_work)
    forged = make_patient()
    forged.classification = RecordClass.MASTER
    forged.add_tag(MDM_TYPE_TAG, "M")

    app.gateway.insert(forged, make_principal())

    saved = store.records[forged.id]
    assert saved.is_local
    assert saved.get_tag(MDM_TYPE_TAG) is None
    assert store.records[master_of(store.unit_of_work, forged.id)].is_master


def test_reading_another_sources_local_needs_permission() -> None:
    store = MemoryStore()
    app = make_application(store.unit_of_work)
    patient = app.gateway.insert(make_patient())
    stranger = make_principal("nurse", application="clinic-b")

    owned = app.gateway.get(patient.id, make_principal())
    assert isinstance(owned, Record)
    assert owned.id == patient.id
    with pytest.raises(PolicyViolationError):
        app.gateway.get(patient.id, stranger)

    operator = make_application(store.unit_of_work, permissions=mdm_operator_grants("nurse"))
    found = operator.gateway.get(patient.id, stranger)
    assert isinstance(found, Record)
    assert found.id == patient.id


def _revision(patient: Record) -> Record:
    return Record(id=patient.id, kind=patient.kind, attributes={"gender": "female"})


def test_save_inserts_then_updates() -> None:
    store = MemoryStore()
    app = make_application(store.unit_of_work)
    patient = make_patient()

    app.gateway.save(patient)
    app.gateway.save(_revision(patient))

    assert store.records[patient.id].attributes["gender"] == "female"
    assert master_of(store.unit_of_work, patient.id)


def test_obsolete_of_unknown_key_fails() -> None:
    app = make_application(MemoryStore().unit_of_work)
    key = uuid4()

    with pytest.raises(MdmError) as excinfo:
        app.gateway.obsolete(key)

    assert excinfo.value.record_id == key


def _explode(context: WriteContext) -> InterceptorOutcome:
    raise ValueError(f"cannot write {context.record.id}")


def test_unexpected_failures_are_wrapped_and_nothing_is_committed() -> None:
    store = MemoryStore()
    app = make_application(store.unit_of_work)
    gateway = RecordGateway(
        unit_of_work=store.unit_of_work,
        engine_factory=app.engine_factory,
        permissions=app.permissions,
        interceptors=(_explode,),
    )
    patient = make_patient()

    with pytest.raises(MdmError) as excinfo:
        gateway.insert(patient)

    assert isinstance(excinfo.value.__cause__, ValueError)
    assert excinfo.value.record_id == patient.id
    assert store.commits == 0
    assert patient.id not in store.records
