"""Ordered interceptor pipeline run at the persistence boundary.

Each write interceptor returns ``Proceed`` to pass the write on, or ``Cancel`` when it has
absorbed the write into the transaction itself. The default order is:
1) master redirect (external writes aimed at a MASTER land on the caller's own LOCAL)
2) record of truth (bypasses matching)
3) linkage (match-and-rewrite for ordinary records)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from mdmlink.domain.linkage.contracts import PROCEED, Cancel
from mdmlink.domain.model import MdmPermission, RecordClass, StateConflictError

if TYPE_CHECKING:
    from uuid import UUID

    from mdmlink.domain.linkage.contracts import InterceptorOutcome
    from mdmlink.domain.linkage.engine import LinkageEngine
    from mdmlink.domain.linkage.transaction import TransactionBuilder
    from mdmlink.domain.model import Principal, Record, RecordKind
    from mdmlink.domain.ports import PermissionChecker

log = getLogger(__name__)


class WriteOperation(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    OBSOLETE = "obsolete"


@dataclass(slots=True, kw_only=True)
class WriteContext:
    """One write travelling through the pipeline.

    ``record`` is what would be persisted (the stored instance for updates); ``incoming`` is the
    record as submitted, which still carries any record-of-truth flag.
    """

    operation: WriteOperation
    record: Record
    incoming: Record
    stored: Record | None
    engine: LinkageEngine
    tx: TransactionBuilder
    governed: bool
    master_id: UUID | None = None

    @property
    def principal(self) -> Principal:
        return self.tx.principal


@runtime_checkable
class WriteInterceptor(Protocol):
    def __call__(self, context: WriteContext) -> InterceptorOutcome: ...


class MasterRedirectInterceptor:
    """External callers never mutate a MASTER directly."""

    def __call__(self, context: WriteContext) -> InterceptorOutcome:
        if not context.governed or context.principal.is_system:
            return PROCEED
        if context.operation is WriteOperation.OBSOLETE:
            return PROCEED
        if context.operation is WriteOperation.INSERT and context.record.is_master:
            context.record.classification = RecordClass.LOCAL
            context.record.strip_master_tags()
            return PROCEED
        if context.stored is None or not context.stored.is_master:
            return PROCEED

        engine, tx = context.engine, context.tx
        master_id = context.stored.id
        local = engine.get_local_for(master_id, context.principal, tx)
        if local is None:
            local = engine.create_local_for(master_id, tx)
            log.info("Redirected write on master %s to new local %s", master_id, local.id)
        else:
            log.info("Redirected write on master %s to local %s", master_id, local.id)
        local.copy_data_from(context.incoming)
        local.strip_master_tags()
        engine.save_local(local, tx)
        return Cancel(reason="redirected to owned local", result=local)


class RecordOfTruthInterceptor:
    def __call__(self, context: WriteContext) -> InterceptorOutcome:
        if not context.governed or context.operation is WriteOperation.OBSOLETE:
            return PROCEED
        if not (context.incoming.is_record_of_truth or context.record.is_record_of_truth):
            return PROCEED
        engine, tx = context.engine, context.tx
        master_id = context.master_id or engine.view(tx).master_for(context.record)
        if master_id is None:
            raise StateConflictError(
                "A record of truth needs the master it speaks for", record=context.record
            )
        engine.save_record_of_truth(context.record, master_id, tx)
        return Cancel(reason="record of truth saved", result=context.record)


class LinkageInterceptor:
    def __call__(self, context: WriteContext) -> InterceptorOutcome:
        if not context.governed:
            return PROCEED
        engine, tx, record = context.engine, context.tx, context.record
        if record.is_master:
            if context.operation is WriteOperation.OBSOLETE:
                engine.obsolete(record, tx)
            else:
                tx.add(record)
            return Cancel(reason="master written by system", result=record)
        if context.operation is WriteOperation.OBSOLETE:
            engine.obsolete(record, tx)
        else:
            engine.save_local(record, tx)
        return Cancel(reason="absorbed into linkage transaction", result=record)


def default_write_interceptors() -> tuple[WriteInterceptor, ...]:
    return (MasterRedirectInterceptor(), RecordOfTruthInterceptor(), LinkageInterceptor())


@dataclass(slots=True)
class ReadGuard:
    """Reading a non-master record requires ownership or the read-locals permission."""

    permissions: PermissionChecker
    governed_kinds: frozenset[RecordKind]

    def check(self, record: Record, principal: Principal) -> None:
        if record.kind not in self.governed_kinds or record.is_master or principal.is_system:
            return
        provenance = record.provenance
        if (
            provenance is not None
            and principal.source_name is not None
            and provenance.source_name == principal.source_name
        ):
            return
        self.permissions.demand(MdmPermission.READ_MDM_LOCALS, principal)
