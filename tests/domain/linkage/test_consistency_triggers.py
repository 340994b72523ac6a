from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from mdmlink.domain.linkage import ConsistencyTriggers, TransactionBuilder
from mdmlink.domain.model import (
    LinkClassification,
    Record,
    RecordClass,
    RecordStatus,
    RelationshipKind,
    candidate_link,
    master_link,
    record_of_truth_link,
    utcnow,
)
from tests.helpers.linkage import links, make_application, master_link_of
from tests.helpers.memory import MemoryStore
from tests.helpers.records import make_patient


def _master() -> Record:
    return Record(classification=RecordClass.MASTER)


def _triggers(store: MemoryStore) -> tuple[ConsistencyTriggers, TransactionBuilder]:
    uow = store.unit_of_work()
    engine = make_application(store.unit_of_work).engine_factory(uow.repositories)
    return ConsistencyTriggers(engine), TransactionBuilder()


def test_active_master_link_retires_overlapping_side_links() -> None:
    store = MemoryStore()
    local, master = make_patient(), _master()
    link = master_link(local.id, master.id)
    overlap = candidate_link(local.id, master.id)
    store.seed(local, master, link, overlap)
    triggers, tx = _triggers(store)

    repairs = triggers.after_commit([link], tx)

    assert repairs == 1
    assert not overlap.is_active
    assert tx.relationships == [overlap]


def test_retired_master_link_obsoletes_orphaned_master() -> None:
    store = MemoryStore()
    local, master = make_patient(), _master()
    link = master_link(local.id, master.id)
    link.obsolete()
    store.seed(local, master, link)
    triggers, tx = _triggers(store)

    assert triggers.after_commit([link], tx) == 1
    assert master.status is RecordStatus.OBSOLETE


def test_links_from_obsolete_records_do_not_keep_a_master_alive() -> None:
    store = MemoryStore()
    replaced, survivor, master = make_patient(), make_patient(), _master()
    replaced.obsolete()
    survivor.obsolete()
    kept = master_link(replaced.id, master.id, classification=LinkClassification.VERIFIED)
    store.seed(replaced, survivor, master, kept)
    triggers, tx = _triggers(store)

    report = triggers.reconcile([master], tx)

    assert report.orphans_obsoleted == 1
    assert master.status is RecordStatus.OBSOLETE


def test_second_record_of_truth_link_wins() -> None:
    store = MemoryStore()
    master = _master()
    first, second = Record(classification=RecordClass.RECORD_OF_TRUTH), Record(
        classification=RecordClass.RECORD_OF_TRUTH
    )
    old = record_of_truth_link(master.id, first.id)
    new = record_of_truth_link(master.id, second.id)
    store.seed(master, first, second, old, new)
    triggers, tx = _triggers(store)

    assert triggers.after_commit([new], tx) == 1
    assert not old.is_active
    assert new.is_active


def test_consistent_graph_needs_no_repairs() -> None:
    store = MemoryStore()
    local, master = make_patient(), _master()
    store.seed(local, master, master_link(local.id, master.id))
    triggers, tx = _triggers(store)

    report = triggers.reconcile([local, master], tx)

    assert report.examined == 2
    assert report.repairs == 0
    assert tx.is_empty


def test_reconcile_keeps_newest_of_duplicate_master_links() -> None:
    store = MemoryStore()
    local, stale_master, current_master = make_patient(), _master(), _master()
    stale = master_link(local.id, stale_master.id)
    stale.created_at = utcnow() - timedelta(minutes=5)
    current = master_link(local.id, current_master.id)
    store.seed(local, stale_master, current_master, stale, current)
    triggers, tx = _triggers(store)

    report = triggers.reconcile([local], tx)

    assert report.duplicate_links_retired == 1
    assert report.orphans_obsoleted == 1
    assert not stale.is_active
    assert current.is_active
    assert stale_master.status is RecordStatus.OBSOLETE


def test_reconcile_reconstructs_missing_record_of_truth_link(
    caplog: pytest.LogCaptureFixture,
) -> None:
    store = MemoryStore()
    master = _master()
    truth = Record(classification=RecordClass.RECORD_OF_TRUTH)
    store.seed(master, truth, record_of_truth_link(master.id, truth.id))
    triggers, tx = _triggers(store)

    with caplog.at_level(logging.WARNING):
        report = triggers.reconcile([truth], tx)

    assert report.links_reconstructed == 1
    (link,) = [rel for rel in tx.relationships if rel.kind is RelationshipKind.MASTER]
    assert link.pair == (truth.id, master.id)
    assert link.classification is LinkClassification.VERIFIED
    assert "reconstructing" in caplog.text


def test_reconcile_gives_unlinked_local_a_master() -> None:
    store = MemoryStore()
    local = make_patient()
    store.seed(local)
    triggers, tx = _triggers(store)

    report = triggers.reconcile([local], tx)

    assert report.masters_established == 1
    (master,) = [record for record in tx.records if record.is_master]
    assert master.kind is local.kind


def test_reconcile_all_commits_repairs() -> None:
    store = MemoryStore()
    app = make_application(store.unit_of_work)
    orphan_master = _master()
    unlinked = make_patient()
    store.seed(orphan_master, unlinked)

    report = app.reconcile()

    assert report.repairs == 2
    assert store.records[orphan_master.id].status is RecordStatus.OBSOLETE
    master_link_of(store.unit_of_work, unlinked.id)
    assert app.reconcile().repairs == 0
    assert len(links(store.unit_of_work, RelationshipKind.MASTER)) == 1
