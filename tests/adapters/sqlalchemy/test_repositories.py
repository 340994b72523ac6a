"""Tests for SQLAlchemy repositories."""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

from sqlalchemy.orm import Session  # noqa: TC002

from mdmlink.adapters.sqlalchemy.repositories import (
    SqlAlchemyIdentifierDomainRepository,
    SqlAlchemyRecordRepository,
    SqlAlchemyRelationshipRepository,
)
from mdmlink.domain.model import (
    IdentifierDomain,
    Record,
    RecordClass,
    RecordKind,
    RelationshipKind,
    candidate_link,
    master_link,
)
from mdmlink.domain.ports import RecordCriteria
from tests.helpers.records import make_patient


def _stored_patients(session: Session) -> tuple[SqlAlchemyRecordRepository, list[Record]]:
    repository = SqlAlchemyRecordRepository(session)
    patients = [
        make_patient(identifiers=[("MDM", "1")]),
        make_patient(dob="1970-07-07", identifiers=[("MDM", "2")]),
        make_patient(dob="1970-07-07", identifiers=[("SSN", "078-05-1120")]),
    ]
    for offset, patient in enumerate(patients):
        patient.created_at += timedelta(seconds=offset)
        repository.add(patient)
    patients[2].obsolete()
    repository.add(Record(kind=RecordKind.PROVIDER))
    repository.add(Record(classification=RecordClass.MASTER))
    session.commit()
    return repository, patients


def test_query_filters_by_kind_class_and_status(sqlite_session: Session) -> None:
    repository, (first, second, _) = _stored_patients(sqlite_session)
    criteria = RecordCriteria(
        kind=RecordKind.PATIENT, classifications=frozenset({RecordClass.LOCAL})
    )

    assert repository.query(criteria) == [first, second]
    assert repository.query(criteria, offset=1, limit=1) == [second]
    assert repository.count(criteria) == 2
    assert repository.count(RecordCriteria(statuses=None)) == 5


def test_query_by_identifier_and_attribute(sqlite_session: Session) -> None:
    repository, (first, second, third) = _stored_patients(sqlite_session)

    assert repository.query(RecordCriteria(identifiers=(("MDM", "1"),))) == [first]
    by_dob = RecordCriteria(attributes={"date_of_birth": "1970-07-07"}, statuses=None)
    assert repository.query(by_dob) == [second, third]
    assert repository.query(by_dob, offset=1) == [third]
    assert repository.count(by_dob) == 2


def test_find_by_identifier_honours_kind_and_status(sqlite_session: Session) -> None:
    repository, (_, _, third) = _stored_patients(sqlite_session)

    assert repository.find_by_identifier("SSN", "078-05-1120") == []
    assert repository.find_by_identifier("SSN", "078-05-1120", active_only=False) == [third]
    assert (
        repository.find_by_identifier(
            "SSN", "078-05-1120", kind=RecordKind.PROVIDER, active_only=False
        )
        == []
    )


def test_get_many_keeps_requested_order(sqlite_session: Session) -> None:
    repository, (first, second, _) = _stored_patients(sqlite_session)

    assert repository.get_many([second.id, uuid4(), first.id, second.id]) == [second, first]
    assert repository.get_many([]) == []


def test_relationship_query_filters(sqlite_session: Session) -> None:
    repository = SqlAlchemyRelationshipRepository(sqlite_session)
    source, master, other = uuid4(), uuid4(), uuid4()
    link = master_link(source, master)
    retired = candidate_link(source, other)
    retired.obsolete()
    proposed = candidate_link(source, master)
    for rel in (link, retired, proposed):
        repository.add(rel)
    sqlite_session.commit()

    assert repository.query(source_id=source, kinds=(RelationshipKind.MASTER,)) == [link]
    assert repository.query(target_id=other) == []
    assert repository.query(target_id=other, active_only=False) == [retired]
    assert set(repository.query(source_id=source)) == {link, proposed}
    assert repository.get(link.id) is link


def test_identifier_domain_repository_upserts_and_removes(sqlite_session: Session) -> None:
    repository = SqlAlchemyIdentifierDomainRepository(sqlite_session)
    repository.add(IdentifierDomain(name="SSN"))
    repository.add(IdentifierDomain(name="MRN", unique=False))
    sqlite_session.commit()

    repository.add(IdentifierDomain(name="SSN", unique=True, description="Social security"))
    sqlite_session.commit()

    domains = repository.list_all()
    assert [domain.name for domain in domains] == ["MRN", "SSN"]
    ssn = repository.get("SSN")
    assert ssn is not None
    assert ssn.unique
    assert ssn.description == "Social security"
    assert repository.remove("MRN")
    assert not repository.remove("MRN")
