from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from mdmlink.adapters.policy import StaticPermissionChecker
from mdmlink.domain.linkage import SynthesisBuilder
from mdmlink.domain.model import (
    MDM_GENERATED_TAG,
    MDM_ROT_INDICATOR_TAG,
    MDM_TYPE_TAG,
    Record,
    RecordClass,
    master_link,
    original_master_link,
    record_of_truth_link,
)
from tests.helpers.memory import MemoryStore
from tests.helpers.records import NHID_DOMAIN, SOURCE_DOMAIN, grants, make_patient, make_principal

if TYPE_CHECKING:
    from uuid import UUID

    from mdmlink.domain.linkage import MasterView
    from mdmlink.domain.model import Principal
    from mdmlink.domain.ports import PermissionChecker

RESTRICTED = "1.2.840.10008.restricted"


def _linked_pair(store: MemoryStore) -> tuple[Record, Record, Record]:
    master = Record(classification=RecordClass.MASTER)
    master.add_identifier(NHID_DOMAIN, "NHID-1")
    older = make_patient(identifiers=[(SOURCE_DOMAIN, "1")])
    newer = make_patient(given="Johnny", gender="M", identifiers=[(SOURCE_DOMAIN, "1")])
    newer.created_at = older.created_at + timedelta(seconds=1)
    store.seed(
        master, older, newer, master_link(older.id, master.id), master_link(newer.id, master.id)
    )
    return master, older, newer


def _build(
    store: MemoryStore,
    master_id: UUID,
    permissions: PermissionChecker | None = None,
    principal: Principal | None = None,
) -> MasterView | None:
    with store.unit_of_work() as uow:
        builder = SynthesisBuilder(uow.repositories, permissions or StaticPermissionChecker())
        return builder.build(master_id, principal or make_principal())


def test_newest_source_wins_and_lists_are_unioned() -> None:
    store = MemoryStore()
    master, older, newer = _linked_pair(store)

    view = _build(store, master.id)

    assert view is not None
    assert view.attributes["gender"] == "M"
    assert view.attributes["name"] == [
        {"family": "Smith", "given": "Johnny"},
        {"family": "Smith", "given": "John"},
    ]
    assert view.source_ids == (newer.id, older.id)
    assert view.identifiers == ((NHID_DOMAIN, "NHID-1"), (SOURCE_DOMAIN, "1"))
    assert view.tags[MDM_TYPE_TAG] == "M"
    assert view.tags[MDM_GENERATED_TAG] == "true"
    assert MDM_ROT_INDICATOR_TAG not in view.tags


def test_sources_under_unheld_policy_are_left_out() -> None:
    store = MemoryStore()
    master, older, newer = _linked_pair(store)
    newer.policies.add(RESTRICTED)

    hidden = _build(store, master.id)
    shown = _build(store, master.id, grants(clerk=["1.2.840.10008"]))

    assert hidden is not None
    assert hidden.source_ids == (older.id,)
    assert hidden.attributes["gender"] == "male"
    assert shown is not None
    assert shown.source_ids == (newer.id, older.id)


def test_record_of_truth_locks_its_fields() -> None:
    store = MemoryStore()
    master = Record(classification=RecordClass.MASTER)
    local = make_patient()
    truth = Record(
        classification=RecordClass.RECORD_OF_TRUTH,
        attributes={"name": [{"family": "Official", "given": "John"}]},
    )
    store.seed(
        master,
        local,
        truth,
        master_link(local.id, master.id),
        master_link(truth.id, master.id),
        record_of_truth_link(master.id, truth.id),
    )

    view = _build(store, master.id)

    assert view is not None
    assert view.attributes["name"] == [{"family": "Official", "given": "John"}]
    assert view.attributes["gender"] == "male"
    assert view.record_of_truth_id == truth.id
    assert view.source_ids == (local.id,)
    assert view.tags[MDM_ROT_INDICATOR_TAG] == "true"


def test_hidden_record_of_truth_is_not_applied() -> None:
    store = MemoryStore()
    master = Record(classification=RecordClass.MASTER)
    local = make_patient()
    truth = Record(
        classification=RecordClass.RECORD_OF_TRUTH,
        attributes={"name": [{"family": "Official"}]},
        policies={RESTRICTED},
    )
    store.seed(master, local, truth, master_link(local.id, master.id))
    store.seed(record_of_truth_link(master.id, truth.id))

    view = _build(store, master.id)

    assert view is not None
    assert view.record_of_truth_id is None
    assert view.attributes["name"] == [{"family": "Smith", "given": "John"}]


def test_master_without_locals_falls_back_to_original_sources() -> None:
    store = MemoryStore()
    master = Record(classification=RecordClass.MASTER)
    former = make_patient()
    store.seed(master, former, original_master_link(former.id, master.id))

    view = _build(store, master.id)

    assert view is not None
    assert view.source_ids == (former.id,)
    assert view.attributes["date_of_birth"] == "1983-01-10"


def test_only_masters_are_synthesized() -> None:
    store = MemoryStore()
    local = make_patient()
    store.seed(local)

    assert _build(store, local.id) is None
