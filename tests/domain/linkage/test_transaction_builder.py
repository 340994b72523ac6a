from __future__ import annotations

from uuid import uuid4

from mdmlink.domain.linkage import TransactionBuilder
from mdmlink.domain.model import Record, RecordClass, master_link
from tests.helpers.records import make_principal


def test_add_keeps_first_position_and_latest_object() -> None:
    tx = TransactionBuilder()
    first = Record()
    second = Record()
    link = master_link(first.id, uuid4())

    tx.add(first)
    tx.add(link)
    tx.add(second)
    link.obsolete()
    tx.add(link)

    assert list(tx) == [first, link, second]
    assert tx.relationship_deltas == 1
    assert tx.records == [first, second]
    assert first.id in tx
    assert tx.get(link.id) is link
    assert tx.record(link.id) is None


def test_add_stamps_provenance_on_locals_only() -> None:
    principal = make_principal("registrar", application="admissions")
    tx = TransactionBuilder(principal)
    local = Record()
    master = Record(classification=RecordClass.MASTER)

    tx.add(local)
    tx.add(master)

    assert local.provenance is not None
    assert local.provenance.source_name == "admissions"
    assert local.provenance.user == "registrar"
    assert master.provenance is None


def test_merge_appends_other_transaction() -> None:
    tx = TransactionBuilder()
    nested = TransactionBuilder()
    record = Record()
    nested.add(record)
    nested.add(master_link(record.id, uuid4()))

    tx.merge(nested)

    assert len(tx) == 2
    assert not tx.is_empty
    assert TransactionBuilder().is_empty
