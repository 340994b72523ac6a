from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from mdmlink.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from mdmlink.domain.model import RecordClass, master_link
from mdmlink.domain.ports import RecordCriteria
from tests.helpers.records import make_patient

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine

LOCALS = RecordCriteria(classifications=frozenset({RecordClass.LOCAL}))


@pytest.fixture(autouse=True)
def reset_unit_of_work_state() -> Iterator[None]:
    shutdown()
    yield
    shutdown()


def test_sqlalchemy_unit_of_work_requires_startup() -> None:
    assert not is_started()
    with pytest.raises(StartupError):
        SqlAlchemyUnitOfWork()


def test_startup_requires_force_for_reconfiguration() -> None:
    engine_a = create_engine("sqlite+pysqlite:///:memory:", future=True)
    engine_b = create_engine("sqlite+pysqlite:///:memory:", future=True)

    startup(engine=engine_a, force=True)

    with pytest.raises(StartupError):
        startup(engine=engine_b)

    startup(engine=engine_b, force=True)
    assert configured_engine() is engine_b


def test_repositories_need_an_open_unit_of_work(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)

    with pytest.raises(StartupError):
        _ = SqlAlchemyUnitOfWork().repositories


def test_committed_records_survive_the_session(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    patient = make_patient(identifiers=[("MDM", "7")])

    with SqlAlchemyUnitOfWork() as uow:
        uow.repositories.records.add(patient)
        uow.commit()

    with SqlAlchemyUnitOfWork() as uow:
        loaded = uow.repositories.records.get(patient.id)
    # collections were loaded eagerly, so they stay readable after the session closes
    assert loaded is not None
    assert loaded.identifiers_in("MDM") == ("7",)
    assert loaded.provenance is not None
    assert loaded.provenance.application == "clinic-a"


def test_exception_rolls_back_pending_changes(sqlite_engine: Engine) -> None:
    startup(engine=sqlite_engine, force=True)
    patient = make_patient()
    link = master_link(patient.id, patient.id)

    with pytest.raises(RuntimeError), SqlAlchemyUnitOfWork() as uow:
        uow.repositories.records.add(patient)
        uow.repositories.relationships.add(link)
        uow.session.flush()
        raise RuntimeError("boom")

    with SqlAlchemyUnitOfWork() as uow:
        assert uow.repositories.records.get(patient.id) is None
        assert uow.repositories.relationships.get(link.id) is None
        assert uow.repositories.records.count(LOCALS) == 0
