"""Read-time composite view of a MASTER.

Field precedence:
1) the record of truth, when one is linked and visible
2) linked sources, newest first; list-valued fields are unioned without duplicates
3) the master anchor's own attributes

Sources carrying a policy the principal does not hold are left out silently.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mdmlink.domain.linkage.transaction import TransactionBuilder
from mdmlink.domain.linkage.view import LinkageView
from mdmlink.domain.model import (
    MDM_GENERATED_TAG,
    MDM_RESOURCE_TAG,
    MDM_ROT_INDICATOR_TAG,
    MDM_TYPE_TAG,
    RecordClass,
    RelationshipKind,
)

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from mdmlink.domain.model import Principal, Record, RecordKind, RecordStatus
    from mdmlink.domain.ports import MdmRepositories, PermissionChecker


@dataclass(frozen=True, slots=True, kw_only=True)
class MasterView:
    """Synthesized, read-only record for one MASTER key."""

    id: UUID
    kind: RecordKind
    status: RecordStatus
    attributes: dict[str, Any] = field(default_factory=dict[str, Any])
    identifiers: tuple[tuple[str, str], ...] = ()
    tags: dict[str, str] = field(default_factory=dict[str, str])
    source_ids: tuple[UUID, ...] = ()
    record_of_truth_id: UUID | None = None
    updated_at: datetime | None = None

    @property
    def classification(self) -> RecordClass:
        return RecordClass.MASTER

    def identifiers_in(self, domain: str) -> tuple[str, ...]:
        return tuple(value for name, value in self.identifiers if name == domain)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "kind": self.kind.value,
            "classification": self.classification.value,
            "status": self.status.value,
            "attributes": self.attributes,
            "identifiers": [{"domain": d, "value": v} for d, v in self.identifiers],
            "tags": self.tags,
            "sources": [str(key) for key in self.source_ids],
            "record_of_truth": str(self.record_of_truth_id) if self.record_of_truth_id else None,
        }


def _newest_first(record: Record) -> datetime:
    return record.updated_at or record.created_at


def _fill(target: dict[str, Any], source: dict[str, Any], *, locked: set[str]) -> None:
    for name, value in source.items():
        if value is None or name in locked:
            continue
        current = target.get(name)
        if isinstance(value, list):
            merged: list[Any] = list(current) if isinstance(current, list) else []
            for item in value:  # pyright: ignore[reportUnknownVariableType]
                if item not in merged:
                    merged.append(deepcopy(item))
            target[name] = merged
        elif current is None:
            target[name] = deepcopy(value)


@dataclass(slots=True)
class SynthesisBuilder:
    repositories: MdmRepositories
    permissions: PermissionChecker

    def is_visible(self, record: Record, principal: Principal) -> bool:
        return all(self.permissions.is_granted(policy, principal) for policy in record.policies)

    def build(
        self,
        master_id: UUID,
        principal: Principal,
        tx: TransactionBuilder | None = None,
    ) -> MasterView | None:
        view = LinkageView(self.repositories, tx or TransactionBuilder(principal))
        master = view.record(master_id)
        if master is None or master.classification is not RecordClass.MASTER:
            return None

        rot: Record | None = None
        rot_link = view.record_of_truth_relationship(master_id)
        if rot_link is not None:
            candidate = view.record(rot_link.target_id)
            if candidate is not None and self.is_visible(candidate, principal):
                rot = candidate

        rot_id = rot_link.target_id if rot_link is not None else None
        sources = [local for local in view.locals_of(master_id) if local.id != rot_id]
        if not sources and rot is None:
            sources = self._original_sources(view, master_id)
        visible = sorted(
            (s for s in sources if self.is_visible(s, principal)),
            key=_newest_first,
            reverse=True,
        )

        attributes: dict[str, Any] = {}
        locked: set[str] = set()
        if rot is not None:
            _fill(attributes, rot.attributes, locked=locked)
            locked = {name for name, value in rot.attributes.items() if value is not None}
        for source in visible:
            _fill(attributes, source.attributes, locked=locked)
        _fill(attributes, master.attributes, locked=locked)

        identifiers: dict[tuple[str, str], None] = {}
        for contributor in (master, *((rot,) if rot is not None else ()), *visible):
            for identifier in contributor.identifiers:
                identifiers.setdefault(identifier.pair, None)

        tags = {
            MDM_TYPE_TAG: RecordClass.MASTER.type_tag,
            MDM_GENERATED_TAG: "true",
            MDM_RESOURCE_TAG: master.kind.value,
        }
        if rot is not None:
            tags[MDM_ROT_INDICATOR_TAG] = "true"

        contributors = [s.updated_at or s.created_at for s in visible]
        return MasterView(
            id=master.id,
            kind=master.kind,
            status=master.status,
            attributes=attributes,
            identifiers=tuple(identifiers),
            tags=tags,
            source_ids=tuple(s.id for s in visible),
            record_of_truth_id=rot.id if rot is not None else None,
            updated_at=max(contributors, default=master.updated_at or master.created_at),
        )

    def _original_sources(self, view: LinkageView, master_id: UUID) -> list[Record]:
        found: list[Record] = []
        for rel in view.relationships(
            target_id=master_id, kinds=(RelationshipKind.ORIGINAL_MASTER,)
        ):
            record = view.record(rel.source_id)
            if record is not None and record.is_active:
                found.append(record)
        return found
