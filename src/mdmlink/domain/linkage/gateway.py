"""Persistence boundary for governed records.

Writes run through the interceptor pipeline and are committed as one transaction followed by
the consistency triggers. Reads of MASTER keys are synthesized; queries are rewritten to master
level.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from mdmlink.domain.linkage.contracts import Cancel
from mdmlink.domain.linkage.interceptors import (
    ReadGuard,
    WriteContext,
    WriteInterceptor,
    WriteOperation,
    default_write_interceptors,
)
from mdmlink.domain.linkage.persist import commit_transaction
from mdmlink.domain.linkage.query import QueryRewriter
from mdmlink.domain.linkage.synthesis import MasterView, SynthesisBuilder
from mdmlink.domain.linkage.transaction import TransactionBuilder
from mdmlink.domain.model import SYSTEM_PRINCIPAL, MdmError, RecordKind

if TYPE_CHECKING:
    from uuid import UUID

    from mdmlink.domain.linkage.engine import LinkageEngine
    from mdmlink.domain.model import Principal, Record
    from mdmlink.domain.ports import (
        MdmRepositories,
        MdmUnitOfWork,
        PermissionChecker,
        RecordCriteria,
    )

log = getLogger(__name__)

type UnitOfWorkFactory = Callable[[], MdmUnitOfWork]
type EngineFactory = Callable[[MdmRepositories], LinkageEngine]


@dataclass(slots=True)
class RecordGateway:
    unit_of_work: UnitOfWorkFactory
    engine_factory: EngineFactory
    permissions: PermissionChecker
    governed_kinds: frozenset[RecordKind] = frozenset({RecordKind.PATIENT})
    interceptors: Sequence[WriteInterceptor] = field(default_factory=default_write_interceptors)

    # writes -------------------------------------------------------------------

    def insert(
        self,
        record: Record,
        principal: Principal = SYSTEM_PRINCIPAL,
        *,
        master_id: UUID | None = None,
    ) -> Record:
        return self._write(WriteOperation.INSERT, record, principal, master_id=master_id)

    def update(
        self,
        record: Record,
        principal: Principal = SYSTEM_PRINCIPAL,
        *,
        master_id: UUID | None = None,
    ) -> Record:
        return self._write(WriteOperation.UPDATE, record, principal, master_id=master_id)

    def save(self, record: Record, principal: Principal = SYSTEM_PRINCIPAL) -> Record:
        """Insert or update depending on whether ``record.id`` is already stored."""

        with self.unit_of_work() as uow:
            exists = uow.repositories.records.get(record.id) is not None
        operation = WriteOperation.UPDATE if exists else WriteOperation.INSERT
        return self._write(operation, record, principal)

    def obsolete(self, key: UUID, principal: Principal = SYSTEM_PRINCIPAL) -> Record:
        with self.unit_of_work() as uow:
            stored = uow.repositories.records.get(key)
        if stored is None:
            raise MdmError(f"Record {key} not found", record=key)
        return self._write(WriteOperation.OBSOLETE, stored, principal)

    def _write(
        self,
        operation: WriteOperation,
        incoming: Record,
        principal: Principal,
        *,
        master_id: UUID | None = None,
    ) -> Record:
        with self.unit_of_work() as uow:
            engine = self.engine_factory(uow.repositories)
            tx = TransactionBuilder(principal)
            stored = uow.repositories.records.get(incoming.id)
            record = incoming
            if operation is WriteOperation.UPDATE and stored is not None:
                if not stored.is_master or principal.is_system:
                    stored.copy_data_from(incoming)
                    if incoming.status is not stored.status:
                        stored.status = incoming.status
                record = stored
            context = WriteContext(
                operation=operation,
                record=record,
                incoming=incoming,
                stored=stored,
                engine=engine,
                tx=tx,
                governed=incoming.kind in self.governed_kinds,
                master_id=master_id,
            )
            try:
                result = self._run(context)
            except MdmError:
                raise
            except Exception as exc:
                raise MdmError(f"Failed to {operation} record", record=incoming.id) from exc
            commit_transaction(uow, engine, tx)
        log.debug("%s of %s committed", operation, result.id)
        return result

    def _run(self, context: WriteContext) -> Record:
        for interceptor in self.interceptors:
            outcome = interceptor(context)
            if isinstance(outcome, Cancel):
                return outcome.result if outcome.result is not None else context.record
        if context.operation is WriteOperation.OBSOLETE:
            context.record.obsolete()
        return context.tx.add(context.record)

    # reads --------------------------------------------------------------------

    def get(
        self, key: UUID, principal: Principal = SYSTEM_PRINCIPAL
    ) -> Record | MasterView | None:
        with self.unit_of_work() as uow:
            record = uow.repositories.records.get(key)
            if record is None:
                return None
            if record.is_master:
                return SynthesisBuilder(uow.repositories, self.permissions).build(key, principal)
            ReadGuard(self.permissions, self.governed_kinds).check(record, principal)
            return record

    def query(
        self,
        criteria: RecordCriteria,
        principal: Principal = SYSTEM_PRINCIPAL,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Record] | list[MasterView]:
        with self.unit_of_work() as uow:
            if criteria.kind is not None and criteria.kind not in self.governed_kinds:
                return uow.repositories.records.query(criteria, offset=offset, limit=limit)
            rewriter = QueryRewriter(
                uow.repositories,
                self.permissions,
                SynthesisBuilder(uow.repositories, self.permissions),
            )
            return rewriter.query(criteria, principal, offset=offset, limit=limit)
