"""Apply a finished transaction to the repositories of a unit of work."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from mdmlink.domain.linkage.transaction import TransactionBuilder
from mdmlink.domain.linkage.triggers import ConsistencyTriggers
from mdmlink.domain.model import Record

if TYPE_CHECKING:
    from mdmlink.domain.linkage.engine import LinkageEngine
    from mdmlink.domain.ports import MdmRepositories, MdmUnitOfWork

log = getLogger(__name__)


def persist_transaction(repositories: MdmRepositories, tx: TransactionBuilder) -> None:
    for item in tx:
        if isinstance(item, Record):
            repositories.records.add(item)
        else:
            repositories.relationships.add(item)


def commit_transaction(
    uow: MdmUnitOfWork, engine: LinkageEngine, tx: TransactionBuilder
) -> TransactionBuilder:
    """Commit ``tx`` atomically, then commit whatever the consistency triggers repair.

    Returns the follow-up transaction produced by the triggers (empty when none fired).
    """

    persist_transaction(uow.repositories, tx)
    uow.commit()
    log.debug("Committed %d item(s), %d relationship delta(s)", len(tx), tx.relationship_deltas)

    follow_up = TransactionBuilder(tx.principal)
    ConsistencyTriggers(engine).after_commit(tx.relationships, follow_up)
    if not follow_up.is_empty:
        persist_transaction(uow.repositories, follow_up)
        uow.commit()
    return follow_up
