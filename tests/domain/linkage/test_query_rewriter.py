from __future__ import annotations

import pytest

from mdmlink.domain.linkage import MasterView
from mdmlink.domain.model import PolicyViolationError, Record, RecordClass, RecordKind
from mdmlink.domain.ports import RecordCriteria
from tests.helpers.linkage import make_application, master_of
from tests.helpers.memory import MemoryStore
from tests.helpers.records import NHID_DOMAIN, make_patient, make_principal, mdm_operator_grants

LOCALS_ONLY = RecordCriteria(classifications=frozenset({RecordClass.LOCAL}))


def _two_patients(store: MemoryStore) -> tuple[Record, Record]:
    app = make_application(store.unit_of_work)
    first, second = make_patient(), make_patient(dob="1970-07-07")
    app.gateway.insert(first)
    app.gateway.insert(second)
    return first, second


def test_queries_resolve_to_master_views() -> None:
    store = MemoryStore()
    first, second = _two_patients(store)
    app = make_application(store.unit_of_work)

    views = app.gateway.query(RecordCriteria(kind=RecordKind.PATIENT))

    assert all(isinstance(view, MasterView) for view in views)
    assert [view.id for view in views] == [
        master_of(store.unit_of_work, first.id),
        master_of(store.unit_of_work, second.id),
    ]
    (paged,) = app.gateway.query(RecordCriteria(), offset=1, limit=1)
    assert paged.id == master_of(store.unit_of_work, second.id)


def test_attribute_filter_applies_to_sources() -> None:
    store = MemoryStore()
    _, second = _two_patients(store)
    app = make_application(store.unit_of_work)

    (view,) = app.gateway.query(RecordCriteria(attributes={"date_of_birth": "1970-07-07"}))

    assert view.id == master_of(store.unit_of_work, second.id)


def test_identifier_filter_finds_master_directly() -> None:
    store = MemoryStore()
    first, _ = _two_patients(store)
    app = make_application(store.unit_of_work)
    master_id = master_of(store.unit_of_work, first.id)
    (nhid,) = store.records[master_id].identifiers_in(NHID_DOMAIN)

    (view,) = app.gateway.query(RecordCriteria(identifiers=((NHID_DOMAIN, nhid),)))

    assert view.id == master_id


def test_locals_only_query_needs_permission() -> None:
    store = MemoryStore()
    _two_patients(store)
    clerk = make_principal()

    with pytest.raises(PolicyViolationError):
        make_application(store.unit_of_work).gateway.query(LOCALS_ONLY, clerk)

    app = make_application(store.unit_of_work, permissions=mdm_operator_grants("clerk"))
    found = app.gateway.query(LOCALS_ONLY, clerk)
    assert len(found) == 2
    assert all(isinstance(record, Record) and record.is_local for record in found)


def test_ungoverned_kinds_are_queried_as_stored() -> None:
    store = MemoryStore()
    app = make_application(store.unit_of_work)
    provider = Record(kind=RecordKind.PROVIDER)
    app.gateway.insert(provider)

    assert app.gateway.query(RecordCriteria(kind=RecordKind.PROVIDER)) == [provider]
