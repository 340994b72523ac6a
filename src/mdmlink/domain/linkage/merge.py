"""Operator-driven graph operations: merge, unmerge, ignore and their housekeeping."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from mdmlink.domain.linkage.contracts import MergeResult, RecordDifference
from mdmlink.domain.linkage.events import MergeEventArgs, MergeEvents
from mdmlink.domain.linkage.persist import commit_transaction
from mdmlink.domain.linkage.synthesis import SynthesisBuilder
from mdmlink.domain.linkage.transaction import TransactionBuilder
from mdmlink.domain.model import (
    SYSTEM_PRINCIPAL,
    InvalidMergeError,
    MdmError,
    MdmPermission,
    MergeStatus,
    PolicyViolationError,
    Record,
    RecordClass,
    RelationshipKind,
    StateConflictError,
)
from mdmlink.domain.model.constants import INVALID_MERGE_ISSUE
from mdmlink.domain.ports import RecordCriteria

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence
    from uuid import UUID

    from mdmlink.domain.linkage.engine import LinkageEngine
    from mdmlink.domain.linkage.view import LinkageView
    from mdmlink.domain.model import Principal, RecordKind, Relationship
    from mdmlink.domain.ports import MdmRepositories, MdmUnitOfWork, PermissionChecker

log = getLogger(__name__)

type UnitOfWorkFactory = Callable[[], MdmUnitOfWork]
type EngineFactory = Callable[[MdmRepositories], LinkageEngine]

_DIFF_EXCLUDED = frozenset({"relationships"})


@dataclass(slots=True)
class _Session:
    uow: MdmUnitOfWork
    engine: LinkageEngine
    tx: TransactionBuilder

    @property
    def view(self) -> LinkageView:
        return self.engine.view(self.tx)

    def require(self, key: UUID) -> Record:
        record = self.view.record(key)
        if record is None:
            raise MdmError(f"Record {key} not found", record=key)
        return record


@dataclass(slots=True)
class MergeOrchestrator:
    unit_of_work: UnitOfWorkFactory
    engine_factory: EngineFactory
    permissions: PermissionChecker
    events: MergeEvents = field(default_factory=MergeEvents)

    # plumbing -----------------------------------------------------------------

    def _open(self, uow: MdmUnitOfWork, principal: Principal) -> _Session:
        return _Session(uow, self.engine_factory(uow.repositories), TransactionBuilder(principal))

    def _run[T](
        self,
        principal: Principal,
        action: str,
        key: UUID | None,
        operation: Callable[[_Session], T],
    ) -> tuple[T, int]:
        """Run ``operation`` in one unit of work; return its result and the relationship deltas."""

        with self.unit_of_work() as uow:
            session = self._open(uow, principal)
            try:
                result = operation(session)
            except MdmError:
                raise
            except Exception as exc:
                raise MdmError(f"{action} failed", record=key) from exc
            deltas = session.tx.relationship_deltas
            commit_transaction(uow, session.engine, session.tx)
        return result, deltas

    def _demand_unless_system(self, permission: str, principal: Principal) -> None:
        if not principal.is_system:
            self.permissions.demand(permission, principal)

    # merge --------------------------------------------------------------------

    def merge(
        self,
        survivor_id: UUID,
        duplicate_ids: Sequence[UUID],
        principal: Principal = SYSTEM_PRINCIPAL,
    ) -> MergeResult:
        args = MergeEventArgs(
            principal=principal, survivor_id=survivor_id, linked_ids=tuple(duplicate_ids)
        )
        cancelled = self.events.before_merge(args)
        if cancelled is not None:
            log.info("Merge into %s cancelled: %s", survivor_id, cancelled.reason)
            return MergeResult(status=MergeStatus.CANCELLED, reason=cancelled.reason)

        def operation(session: _Session) -> MergeResult:
            survivor = session.require(survivor_id)
            status = MergeStatus.SUCCESS
            survivors: list[UUID] = []
            replaced: list[UUID] = []
            for duplicate_id in duplicate_ids:
                duplicate = session.require(duplicate_id)
                for record in (survivor, duplicate):
                    if not record.is_active:
                        raise StateConflictError(
                            f"Record {record.id} is not active and cannot be merged",
                            record=record,
                        )
                effective, alternate = self._merge_one(session, survivor, duplicate)
                if alternate:
                    status = MergeStatus.ALTERNATE
                if effective not in survivors:
                    survivors.append(effective)
                replaced.append(duplicate.id)
            return MergeResult(status=status, survivors=tuple(survivors), replaced=tuple(replaced))

        result, _ = self._run(principal, "Merge", survivor_id, operation)
        log.info(
            "Merged %d record(s) into %s (%s)", len(result.replaced), survivor_id, result.status
        )
        self.events.after_merge(args)
        return result

    def _merge_one(
        self, session: _Session, survivor: Record, duplicate: Record
    ) -> tuple[UUID, bool]:
        engine, tx, principal = session.engine, session.tx, session.tx.principal
        match survivor.classification, duplicate.classification:
            case RecordClass.MASTER, RecordClass.LOCAL:
                try:
                    self._demand_unless_system(MdmPermission.MERGE_MDM_MASTER, principal)
                except PolicyViolationError as exc:
                    own = self._own_local(session, survivor, exc)
                    self._merge_locals(session, own, duplicate)
                    return own.id, True
                if not principal.is_system and not engine.is_owner(duplicate, principal):
                    self.permissions.demand(MdmPermission.UNRESTRICTED_MDM, principal)
                engine.master_link(duplicate.id, survivor.id, tx, verified=True)
                return survivor.id, False
            case RecordClass.MASTER, RecordClass.MASTER:
                try:
                    self._demand_unless_system(MdmPermission.WRITE_MDM_MASTER, principal)
                    self._demand_unless_system(MdmPermission.MERGE_MDM_MASTER, principal)
                except PolicyViolationError as exc:
                    own_survivor = self._own_local(session, survivor, exc)
                    own_duplicate = self._own_local(session, duplicate, exc)
                    self._merge_locals(session, own_survivor, own_duplicate)
                    return own_survivor.id, True
                engine.merge_masters(survivor, duplicate, tx)
                return survivor.id, False
            case RecordClass.LOCAL, RecordClass.LOCAL:
                self._merge_locals(session, survivor, duplicate)
                return survivor.id, False
            case _:
                raise InvalidMergeError(
                    f"Cannot merge {duplicate.classification} into {survivor.classification}",
                    record=duplicate,
                )

    def _own_local(
        self, session: _Session, master: Record, denial: PolicyViolationError
    ) -> Record:
        own = session.engine.get_local_for(master.id, session.tx.principal, session.tx)
        if own is None:
            raise InvalidMergeError(
                f"{INVALID_MERGE_ISSUE}: no owned local under master {master.id}", record=master
            ) from denial
        return own

    def _merge_locals(self, session: _Session, survivor: Record, duplicate: Record) -> None:
        principal = session.tx.principal
        engine = session.engine
        owns_both = engine.is_owner(survivor, principal) and engine.is_owner(duplicate, principal)
        if not (principal.is_system or owns_both):
            self.permissions.demand(MdmPermission.UNRESTRICTED_MDM, principal)
        engine.merge_locals(survivor, duplicate, session.tx)

    # unmerge ------------------------------------------------------------------

    def unmerge(
        self,
        master_id: UUID,
        record_id: UUID,
        principal: Principal = SYSTEM_PRINCIPAL,
    ) -> MergeResult:
        """Detach ``record_id`` from ``master_id`` onto a new, VERIFIED master."""

        self._demand_unless_system(MdmPermission.WRITE_MDM_MASTER, principal)
        args = MergeEventArgs(principal=principal, survivor_id=master_id, linked_ids=(record_id,))
        cancelled = self.events.before_unmerge(args)
        if cancelled is not None:
            log.info("Unmerge of %s cancelled: %s", record_id, cancelled.reason)
            return MergeResult(status=MergeStatus.CANCELLED, reason=cancelled.reason)

        def operation(session: _Session) -> Record:
            master = session.require(master_id)
            if not master.is_master:
                raise InvalidMergeError(f"{master_id} is not a MASTER", record=master)
            return session.engine.master_unlink(record_id, master_id, session.tx)

        new_master, _ = self._run(principal, "Unmerge", record_id, operation)
        log.info("Unmerged %s from %s onto new master %s", record_id, master_id, new_master.id)
        self.events.after_unmerge(args)
        return MergeResult(
            status=MergeStatus.SUCCESS, survivors=(master_id, new_master.id), replaced=()
        )

    # ignore -------------------------------------------------------------------

    def _expand_sources(self, session: _Session, key: UUID) -> list[Record]:
        record = session.require(key)
        if record.is_master:
            return session.view.locals_of(record.id)
        return [record]

    def ignore(
        self,
        master_id: UUID,
        false_positive_ids: Sequence[UUID],
        principal: Principal = SYSTEM_PRINCIPAL,
    ) -> int:
        """Permanently suppress candidate pairings; return the relationship deltas."""

        self._demand_unless_system(MdmPermission.WRITE_MDM_MASTER, principal)

        def operation(session: _Session) -> None:
            session.require(master_id)
            for key in false_positive_ids:
                for source in self._expand_sources(session, key):
                    session.engine.ignore_candidate(source.id, master_id, session.tx)

        _, deltas = self._run(principal, "Ignore", master_id, operation)
        log.info("Ignored %d record(s) against master %s", len(false_positive_ids), master_id)
        return deltas

    def unignore(
        self,
        master_id: UUID,
        ids: Sequence[UUID],
        principal: Principal = SYSTEM_PRINCIPAL,
    ) -> int:
        self._demand_unless_system(MdmPermission.WRITE_MDM_MASTER, principal)

        def operation(session: _Session) -> None:
            for key in ids:
                for source in self._expand_sources(session, key):
                    session.engine.unignore_candidate(source.id, master_id, session.tx)
                    session.engine.match_masters(source, session.tx)

        _, deltas = self._run(principal, "Unignore", master_id, operation)
        log.info("Un-ignored %d record(s) against master %s", len(ids), master_id)
        return deltas

    # rematching ---------------------------------------------------------------

    def flag_duplicates(self, key: UUID, principal: Principal = SYSTEM_PRINCIPAL) -> int:
        """Re-run matching for one record (or every source of a master)."""

        def operation(session: _Session) -> None:
            for source in self._expand_sources(session, key):
                if source.is_active and not source.is_record_of_truth:
                    session.engine.match_masters(source, session.tx)

        _, deltas = self._run(principal, "Flag duplicates", key, operation)
        log.info("Re-matched %s: %d relationship delta(s)", key, deltas)
        return deltas

    # review helpers -----------------------------------------------------------

    def _edges_around(
        self, session: _Session, master_id: UUID, kind: RelationshipKind
    ) -> list[Relationship]:
        view = session.view
        edges = {rel.id: rel for rel in view.relationships(target_id=master_id, kinds=(kind,))}
        for local in view.locals_of(master_id):
            for rel in view.relationships(source_id=local.id, kinds=(kind,)):
                edges.setdefault(rel.id, rel)
        return list(edges.values())

    def get_merge_candidates(
        self, master_id: UUID, principal: Principal = SYSTEM_PRINCIPAL
    ) -> list[Relationship]:
        with self.unit_of_work() as uow:
            session = self._open(uow, principal)
            return self._edges_around(session, master_id, RelationshipKind.CANDIDATE)

    def get_ignored(
        self, master_id: UUID, principal: Principal = SYSTEM_PRINCIPAL
    ) -> list[Relationship]:
        with self.unit_of_work() as uow:
            session = self._open(uow, principal)
            return self._edges_around(session, master_id, RelationshipKind.IGNORE_CANDIDATE)

    def get_global_merge_candidates(
        self,
        kind: RecordKind | None = None,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Relationship]:
        with self.unit_of_work() as uow:
            edges = list(self._global_edges(uow.repositories, RelationshipKind.CANDIDATE, kind))
        return edges[offset : None if limit is None else offset + limit]

    @staticmethod
    def _global_edges(
        repositories: MdmRepositories, rel_kind: RelationshipKind, kind: RecordKind | None
    ) -> Iterator[Relationship]:
        for rel in repositories.relationships.query(kinds=(rel_kind,)):
            if kind is not None:
                source = repositories.records.get(rel.source_id)
                if source is None or source.kind is not kind:
                    continue
            yield rel

    # clearing -----------------------------------------------------------------

    def _clear(
        self,
        principal: Principal,
        action: str,
        master_id: UUID | None,
        collect: Callable[[_Session], list[Relationship]],
    ) -> int:
        self._demand_unless_system(MdmPermission.WRITE_MDM_MASTER, principal)

        def operation(session: _Session) -> None:
            for rel in collect(session):
                if rel.is_active:
                    rel.obsolete()
                    session.tx.add(rel)

        _, deltas = self._run(principal, action, master_id, operation)
        log.info("%s: %d relationship(s) retired", action, deltas)
        return deltas

    def clear_merge_candidates(
        self, master_id: UUID, principal: Principal = SYSTEM_PRINCIPAL
    ) -> int:
        return self._clear(
            principal,
            "Clear merge candidates",
            master_id,
            lambda s: self._edges_around(s, master_id, RelationshipKind.CANDIDATE),
        )

    def clear_ignore_flags(self, master_id: UUID, principal: Principal = SYSTEM_PRINCIPAL) -> int:
        return self._clear(
            principal,
            "Clear ignore flags",
            master_id,
            lambda s: self._edges_around(s, master_id, RelationshipKind.IGNORE_CANDIDATE),
        )

    def clear_global_merge_candidates(
        self, kind: RecordKind | None = None, principal: Principal = SYSTEM_PRINCIPAL
    ) -> int:
        return self._clear(
            principal,
            "Clear global merge candidates",
            None,
            lambda s: list(
                self._global_edges(s.uow.repositories, RelationshipKind.CANDIDATE, kind)
            ),
        )

    def clear_global_ignore_flags(
        self, kind: RecordKind | None = None, principal: Principal = SYSTEM_PRINCIPAL
    ) -> int:
        return self._clear(
            principal,
            "Clear global ignore flags",
            None,
            lambda s: list(
                self._global_edges(s.uow.repositories, RelationshipKind.IGNORE_CANDIDATE, kind)
            ),
        )

    def reset(
        self,
        master_id: UUID | None = None,
        *,
        kind: RecordKind | None = None,
        include_verified: bool = False,
        links_only: bool = False,
        principal: Principal = SYSTEM_PRINCIPAL,
    ) -> int:
        """Throw away automatic linkage state and re-match from scratch.

        ``links_only`` only clears candidate links (and ignore flags when
        ``include_verified``); otherwise sources are detached from their masters (VERIFIED links
        only when ``include_verified``), emptied masters are obsoleted and the detached sources
        are matched again.
        """

        self._demand_unless_system(MdmPermission.WRITE_MDM_MASTER, principal)

        def operation(session: _Session) -> None:
            view, engine, tx = session.view, session.engine, session.tx
            if master_id is not None:
                masters = [session.require(master_id)]
            else:
                masters = session.uow.repositories.records.query(
                    RecordCriteria(kind=kind, classifications=frozenset({RecordClass.MASTER}))
                )
            clear_kinds = [RelationshipKind.CANDIDATE]
            if include_verified:
                clear_kinds.append(RelationshipKind.IGNORE_CANDIDATE)
            detached: list[Record] = []
            for master in masters:
                for rel_kind in clear_kinds:
                    for rel in self._edges_around(session, master.id, rel_kind):
                        if rel.is_active:
                            rel.obsolete()
                            tx.add(rel)
                if links_only:
                    continue
                for rel in view.master_links_to(master.id):
                    source = view.record(rel.source_id)
                    if source is None or source.is_record_of_truth:
                        continue
                    if rel.is_verified and not include_verified:
                        continue
                    rel.obsolete()
                    tx.add(rel)
                    detached.append(source)
                engine.cascade_orphan(master.id, tx)
            for source in detached:
                if source.is_active:
                    engine.match_masters(source, tx)

        _, deltas = self._run(principal, "Reset", master_id, operation)
        log.info("Reset linkage: %d relationship delta(s)", deltas)
        return deltas

    # diff ---------------------------------------------------------------------

    def diff(
        self,
        master_id: UUID,
        record_id: UUID,
        principal: Principal = SYSTEM_PRINCIPAL,
    ) -> list[RecordDifference]:
        """Field-level differences between the synthesized master and a record."""

        with self.unit_of_work() as uow:
            master = SynthesisBuilder(uow.repositories, self.permissions).build(
                master_id, principal
            )
            if master is None:
                raise MdmError(f"{master_id} is not a MASTER", record=master_id)
            record = uow.repositories.records.get(record_id)
            if record is None:
                raise MdmError(f"Record {record_id} not found", record=record_id)
            if record.is_master:
                other = SynthesisBuilder(uow.repositories, self.permissions).build(
                    record_id, principal
                )
                if other is None:
                    raise MdmError(f"Master {record_id} is not readable", record=record_id)
                record_attributes, record_identifiers = other.attributes, set(other.identifiers)
            else:
                record_attributes = record.attributes
                record_identifiers = {i.pair for i in record.identifiers}

        differences: list[RecordDifference] = []
        names = sorted((set(master.attributes) | set(record_attributes)) - _DIFF_EXCLUDED)
        for name in names:
            left: Any = master.attributes.get(name)
            right: Any = record_attributes.get(name)
            if left != right:
                differences.append(
                    RecordDifference(path=name, master_value=left, record_value=right)
                )
        master_identifiers = set(master.identifiers)
        for pair in sorted(master_identifiers ^ record_identifiers):
            differences.append(
                RecordDifference(
                    path=f"identifier[{pair[0]}]",
                    master_value=pair[1] if pair in master_identifiers else None,
                    record_value=pair[1] if pair in record_identifiers else None,
                )
            )
        return differences
