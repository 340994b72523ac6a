"""Background re-matching of every governed source record."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from mdmlink.domain.linkage.persist import commit_transaction
from mdmlink.domain.linkage.transaction import TransactionBuilder
from mdmlink.domain.linkage.triggers import ConsistencyTriggers, ReconcileReport
from mdmlink.domain.model import SYSTEM_PRINCIPAL, RecordClass
from mdmlink.domain.ports import RecordCriteria

if TYPE_CHECKING:
    from uuid import UUID

    from mdmlink.domain.linkage.engine import LinkageEngine
    from mdmlink.domain.model import Principal, RecordKind
    from mdmlink.domain.ports import MdmRepositories, MdmUnitOfWork

log = getLogger(__name__)

type UnitOfWorkFactory = Callable[[], MdmUnitOfWork]
type EngineFactory = Callable[[MdmRepositories], LinkageEngine]

DEFAULT_PAGE_SIZE = 20


class JobState(StrEnum):
    NOT_RUNNING = "not_running"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ABORTED = "aborted"


def _source_criteria(kind: RecordKind | None) -> RecordCriteria:
    return RecordCriteria(kind=kind, classifications=frozenset({RecordClass.LOCAL}))


@dataclass(slots=True)
class MatchJob:
    """Re-run matching for all sources of ``kind``, one unit of work per record.

    A failure on one record is logged and counted; the run carries on. ``cancel`` is honoured
    between records.
    """

    unit_of_work: UnitOfWorkFactory
    engine_factory: EngineFactory
    kind: RecordKind | None = None
    page_size: int = DEFAULT_PAGE_SIZE
    principal: Principal = SYSTEM_PRINCIPAL

    state: JobState = JobState.NOT_RUNNING
    total: int = 0
    processed: int = 0
    failed: int = 0
    deltas: int = 0
    error: BaseException | None = None
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False, init=False)
    _thread: threading.Thread | None = field(default=None, repr=False, init=False)

    @property
    def progress(self) -> float:
        if self.total == 0:
            return 1.0 if self.state is JobState.COMPLETED else 0.0
        return min(1.0, self.processed / self.total)

    def start(self) -> threading.Thread:
        if self.state is JobState.RUNNING:
            raise RuntimeError("Match job is already running")
        self._cancelled.clear()
        self._thread = threading.Thread(target=self.run, name="mdm-match-job", daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def cancel(self) -> None:
        self._cancelled.set()

    def run(self) -> JobState:
        self.state = JobState.RUNNING
        self.processed = self.failed = self.deltas = 0
        try:
            with self.unit_of_work() as uow:
                self.total = uow.repositories.records.count(_source_criteria(self.kind))
            log.info("Match job started for %d record(s)", self.total)
            offset = 0
            while True:
                page = self._page(offset)
                if not page:
                    break
                for key in page:
                    if self._cancelled.is_set():
                        self.state = JobState.CANCELLED
                        log.info("Match job cancelled after %d record(s)", self.processed)
                        return self.state
                    self._match_one(key)
                offset += len(page)
        except Exception as exc:
            self.error = exc
            self.state = JobState.ABORTED
            log.exception("Match job aborted")
            return self.state
        self.state = JobState.COMPLETED
        log.info(
            "Match job finished: %d processed, %d failed, %d relationship delta(s)",
            self.processed,
            self.failed,
            self.deltas,
        )
        return self.state

    def _page(self, offset: int) -> list[UUID]:
        with self.unit_of_work() as uow:
            records = uow.repositories.records.query(
                _source_criteria(self.kind), offset=offset, limit=self.page_size
            )
            return [record.id for record in records]

    def _match_one(self, key: UUID) -> None:
        try:
            with self.unit_of_work() as uow:
                engine = self.engine_factory(uow.repositories)
                tx = TransactionBuilder(self.principal)
                record = uow.repositories.records.get(key)
                if record is not None and record.is_active and not record.is_record_of_truth:
                    engine.match_masters(record, tx)
                self.deltas += tx.relationship_deltas
                commit_transaction(uow, engine, tx)
        except Exception:
            self.failed += 1
            log.warning("Matching record %s failed", key, exc_info=True)
        finally:
            self.processed += 1


def reconcile_all(
    unit_of_work: UnitOfWorkFactory,
    engine_factory: EngineFactory,
    *,
    kind: RecordKind | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> ReconcileReport:
    """Sweep every record of ``kind`` and repair graph anomalies, one page per unit of work."""

    report = ReconcileReport()
    offset = 0
    while True:
        with unit_of_work() as uow:
            page = uow.repositories.records.query(
                RecordCriteria(kind=kind, statuses=None), offset=offset, limit=page_size
            )
            if not page:
                break
            engine = engine_factory(uow.repositories)
            tx = TransactionBuilder(SYSTEM_PRINCIPAL)
            ConsistencyTriggers(engine).reconcile(page, tx, report)
            commit_transaction(uow, engine, tx)
        offset += len(page)
    if report.repairs:
        log.warning("Reconciliation repaired %d anomaly(ies)", report.repairs)
    else:
        log.info("Reconciliation examined %d record(s); nothing to repair", report.examined)
    return report
