"""Expose governed records at master level unless locals are explicitly requested."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from mdmlink.domain.linkage.transaction import TransactionBuilder
from mdmlink.domain.linkage.view import LinkageView
from mdmlink.domain.model import MdmPermission, RecordClass
from mdmlink.domain.ports import RecordCriteria

if TYPE_CHECKING:
    from uuid import UUID

    from mdmlink.domain.linkage.synthesis import MasterView, SynthesisBuilder
    from mdmlink.domain.model import Principal, Record
    from mdmlink.domain.ports import MdmRepositories, PermissionChecker

log = getLogger(__name__)


def wants_locals_only(criteria: RecordCriteria) -> bool:
    return criteria.classifications == frozenset({RecordClass.LOCAL})


@dataclass(slots=True)
class QueryRewriter:
    repositories: MdmRepositories
    permissions: PermissionChecker
    synthesis: SynthesisBuilder

    def query(
        self,
        criteria: RecordCriteria,
        principal: Principal,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Record] | list[MasterView]:
        if wants_locals_only(criteria):
            if not principal.is_system:
                self.permissions.demand(MdmPermission.READ_MDM_LOCALS, principal)
            return self.repositories.records.query(criteria, offset=offset, limit=limit)

        master_ids = self.resolve_master_ids(criteria, principal)
        window = master_ids[offset : None if limit is None else offset + limit]
        views: list[MasterView] = []
        for master_id in window:
            built = self.synthesis.build(master_id, principal)
            if built is not None:
                views.append(built)
        return views

    def resolve_master_ids(self, criteria: RecordCriteria, principal: Principal) -> list[UUID]:
        """Masters of matching sources, then masters matching identifier filters directly."""

        view = LinkageView(self.repositories, TransactionBuilder(principal))
        ordered: dict[UUID, None] = {}
        source_criteria = criteria.with_classes(RecordClass.LOCAL, RecordClass.RECORD_OF_TRUTH)
        for record in self.repositories.records.query(source_criteria):
            master_id = view.master_for(record)
            if master_id is not None:
                ordered.setdefault(master_id, None)

        if criteria.has_identifier_filter:
            direct = RecordCriteria(
                kind=criteria.kind,
                classifications=frozenset({RecordClass.MASTER}),
                statuses=criteria.statuses,
                identifiers=criteria.identifiers,
            )
            for master in self.repositories.records.query(direct):
                ordered.setdefault(master.id, None)

        result: list[UUID] = []
        for master_id in ordered:
            master = view.record(master_id)
            if master is not None and (
                criteria.statuses is None or master.status in criteria.statuses
            ):
                result.append(master_id)
        log.debug("Query resolved to %d master(s)", len(result))
        return result
