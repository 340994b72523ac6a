"""Record-linkage decision engine.

Every operation receives the ``TransactionBuilder`` it contributes to and registers each record
or relationship it creates or changes. Nothing is persisted here: the caller commits the
transaction as one unit.

Match-and-rewrite for one LOCAL:
1) resolve the current master and the ignore list
2) run the identity matcher and every configured matcher, grouping results per owning master
3) one definitive, auto-linkable master wins the MASTER link unless the current link is VERIFIED
4) otherwise keep (or establish) a master conservatively
5) definitive losers and probable matches become CANDIDATE links
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from mdmlink.domain.linkage.contracts import IssuePriority, MasterMatch, ValidationIssue
from mdmlink.domain.linkage.identity import (
    IDENTITY_CONFIGURATION,
    UNIQUE_DOMAINS,
    IdentityMatcher,
    UniqueDomainCache,
)
from mdmlink.domain.linkage.view import LinkageView
from mdmlink.domain.model import (
    MDM_TYPE_TAG,
    InvalidMergeError,
    LinkClassification,
    MatchClassification,
    MdmError,
    MdmPermission,
    Provenance,
    Record,
    RecordClass,
    RelationshipKind,
    StateConflictError,
    candidate_link,
    ignore_candidate_link,
    master_link,
    original_master_link,
    record_of_truth_link,
    replaces_link,
)
from mdmlink.domain.model.constants import ORPHAN_ISSUE
from mdmlink.domain.ports import MatchConfiguration, MatcherBinding

if TYPE_CHECKING:
    from uuid import UUID

    from mdmlink.domain.linkage.transaction import TransactionBuilder
    from mdmlink.domain.model import Principal, Relationship
    from mdmlink.domain.ports import (
        MatchingProvider,
        MdmRepositories,
        PermissionChecker,
    )

log = getLogger(__name__)

type MasterHook = Callable[[Record, Record], None]
"""Called with ``(new_master, source_record)`` whenever the engine establishes a master."""

type MatcherFactory = Callable[[MdmRepositories], MatchingProvider]

_SIDE_KINDS = (
    RelationshipKind.CANDIDATE,
    RelationshipKind.ORIGINAL_MASTER,
    RelationshipKind.IGNORE_CANDIDATE,
)


@dataclass(frozen=True, slots=True)
class MatcherRegistration:
    """A matcher factory and the configuration its provider runs with."""

    configuration: MatchConfiguration
    factory: MatcherFactory


@dataclass(slots=True)
class LinkageEngine:
    """Rewrites the relationship graph in response to record changes."""

    repositories: MdmRepositories
    permissions: PermissionChecker
    bindings: Sequence[MatcherBinding] = ()
    master_hooks: Sequence[MasterHook] = ()
    domain_cache: UniqueDomainCache = UNIQUE_DOMAINS
    identity: MatcherBinding = field(init=False)

    def __post_init__(self) -> None:
        matcher = IdentityMatcher(
            self.repositories.records, self.repositories.domains, self.domain_cache
        )
        self.identity = MatcherBinding(matcher, IDENTITY_CONFIGURATION)

    @property
    def all_bindings(self) -> tuple[MatcherBinding, ...]:
        return (self.identity, *self.bindings)

    def view(self, tx: TransactionBuilder) -> LinkageView:
        return LinkageView(self.repositories, tx)

    # entry points -------------------------------------------------------------

    def save_local(self, record: Record, tx: TransactionBuilder) -> Record:
        """Register ``record`` and rewrite its links according to current matches."""

        if record.is_master:
            raise InvalidMergeError("save_local expects a non-master record", record=record)
        tx.add(record)
        if not record.is_active:
            self.obsolete(record, tx)
            return record
        if record.is_record_of_truth:
            return record
        self.match_masters(record, tx)
        return record

    def match_masters(self, local: Record, tx: TransactionBuilder) -> None:
        view = self.view(tx)
        existing = view.master_relationship(local.id)
        existing_master = existing.target_id if existing is not None else None
        ignored = view.ignored_master_ids(local.id)

        groups = self._group_matches(local, view, ignored)
        definitive = [g for g in groups if g.classification is MatchClassification.MATCH]
        probable = [g for g in groups if g.classification is MatchClassification.PROBABLE]
        log.debug(
            "Record %s: %d definitive, %d probable master match(es)",
            local.id,
            len(definitive),
            len(probable),
        )

        wanted: dict[UUID, MasterMatch] = {}
        if len(definitive) == 1 and definitive[0].auto_link:
            winner = definitive[0]
            if existing is None:
                self._link(local.id, winner.master_id, tx, strength=winner.strength)
            elif existing_master != winner.master_id:
                if existing.is_verified:
                    wanted[winner.master_id] = winner
                else:
                    self.master_link(local.id, winner.master_id, tx, verified=False)
        else:
            for group in definitive:
                wanted[group.master_id] = group
            confirmed = any(g.master_id == existing_master for g in definitive)
            if existing is None:
                self.establish_master(local, tx)
            elif not confirmed and not existing.is_verified:
                self._recheck_shared_master(local, existing, tx)

        for group in probable:
            wanted.setdefault(group.master_id, group)
        self._sync_candidates(local, wanted, tx)

    # matching -----------------------------------------------------------------

    def _group_matches(
        self, local: Record, view: LinkageView, ignored: set[UUID]
    ) -> list[MasterMatch]:
        groups: dict[UUID, MasterMatch] = {}
        for binding in self.all_bindings:
            for result in binding.run(local, ignored):
                if result.classification is MatchClassification.NON_MATCH:
                    continue
                if result.record.id == local.id:
                    continue
                master_id = view.master_for(result.record)
                if master_id is None or master_id in ignored or master_id == local.id:
                    continue
                master = view.record(master_id)
                if master is None or not master.is_active:
                    continue
                group = groups.setdefault(master_id, MasterMatch(master_id=master_id))
                group.add(result, auto_link=binding.configuration.auto_link)
        return list(groups.values())

    def _recheck_shared_master(
        self, local: Record, existing: Relationship, tx: TransactionBuilder
    ) -> None:
        """Keep an unconfirmed master unless ``local`` no longer resembles its other locals."""

        view = self.view(tx)
        others = view.locals_of(existing.target_id, exclude=local.id)
        if not others:
            return
        for binding in self.all_bindings:
            results = binding.provider.classify(local, others, binding.configuration.name)
            if any(r.classification is not MatchClassification.NON_MATCH for r in results):
                return
        log.debug("Detaching %s from shared master %s", local.id, existing.target_id)
        self._retire(existing, tx)
        tx.add(
            original_master_link(
                local.id, existing.target_id, classification=existing.classification
            )
        )
        self.establish_master(local, tx)

    def _sync_candidates(
        self, local: Record, wanted: dict[UUID, MasterMatch], tx: TransactionBuilder
    ) -> None:
        view = self.view(tx)
        current_master = view.master_for(local.id)
        if current_master is not None:
            wanted.pop(current_master, None)
        kept: set[UUID] = set()
        for rel in view.candidates(source_id=local.id):
            if rel.target_id in wanted and rel.target_id not in kept:
                kept.add(rel.target_id)
            elif not rel.is_verified:
                self._retire(rel, tx)
        for master_id, group in wanted.items():
            if master_id not in kept:
                tx.add(candidate_link(local.id, master_id, strength=group.strength))

    # link primitives ----------------------------------------------------------

    def _retire(self, rel: Relationship, tx: TransactionBuilder) -> None:
        if rel.is_active:
            rel.obsolete()
            tx.add(rel)

    def _link(
        self,
        source_id: UUID,
        master_id: UUID,
        tx: TransactionBuilder,
        *,
        classification: LinkClassification = LinkClassification.AUTOMATIC,
        strength: float | None = None,
    ) -> Relationship:
        view = self.view(tx)
        for rel in view.pair(source_id, master_id, *_SIDE_KINDS):
            self._retire(rel, tx)
        for rel in view.pair(source_id, master_id, RelationshipKind.MASTER, active=False):
            if rel.id in tx and not rel.is_active:
                rel.revive()
                rel.classification = classification
                return tx.add(rel)
        log.debug("Linking %s -> master %s (%s)", source_id, master_id, classification)
        return tx.add(
            master_link(source_id, master_id, classification=classification, strength=strength)
        )

    def master_link(
        self,
        source_id: UUID,
        master_id: UUID,
        tx: TransactionBuilder,
        *,
        verified: bool,
        strength: float | None = None,
    ) -> Relationship:
        """Point ``source_id`` at ``master_id``, retiring its previous master link."""

        view = self.view(tx)
        source = view.record(source_id)
        target = view.record(master_id)
        if source is None or target is None:
            missing = source_id if source is None else master_id
            raise MdmError("Cannot link unknown record", record=missing)
        if source.is_master and not target.is_master:
            source, target = target, source
        if source.is_master:
            raise InvalidMergeError("Cannot link MASTER to MASTER", record=source)
        if not target.is_master:
            raise InvalidMergeError("Link target is not a MASTER", record=target)

        classification = LinkClassification.VERIFIED if verified else LinkClassification.AUTOMATIC
        current = view.master_relationship(source.id)
        if current is not None and current.target_id == target.id:
            if verified and not current.is_verified:
                current.classification = LinkClassification.VERIFIED
                tx.add(current)
            for rel in view.pair(source.id, target.id, *_SIDE_KINDS):
                self._retire(rel, tx)
            return current

        if current is not None:
            self._retire(current, tx)
            if not verified:
                tx.add(
                    original_master_link(
                        source.id, current.target_id, classification=current.classification
                    )
                )
        link = self._link(
            source.id, target.id, tx, classification=classification, strength=strength
        )
        if current is not None:
            self.cascade_orphan(current.target_id, tx, replacement=target.id)
        return link

    def master_unlink(self, source_id: UUID, master_id: UUID, tx: TransactionBuilder) -> Record:
        """Detach ``source_id`` from ``master_id`` onto a fresh VERIFIED master."""

        view = self.view(tx)
        links = view.pair(source_id, master_id, RelationshipKind.MASTER)
        source = view.record(source_id)
        if not links or source is None:
            raise StateConflictError(
                f"Record {source_id} is not linked to master {master_id}", record=source_id
            )
        if view.pair(master_id, source_id, RelationshipKind.RECORD_OF_TRUTH):
            raise StateConflictError(
                f"Record {source_id} is the record of truth of {master_id}; obsolete it instead",
                record=source_id,
            )
        for rel in links:
            self._retire(rel, tx)
        tx.add(
            original_master_link(source_id, master_id, classification=LinkClassification.VERIFIED)
        )
        tx.add(ignore_candidate_link(source_id, master_id))
        new_master = self.establish_master(
            source, tx, classification=LinkClassification.VERIFIED
        )
        self.cascade_orphan(master_id, tx, replacement=new_master.id)
        return new_master

    def establish_master(
        self,
        source: Record,
        tx: TransactionBuilder,
        *,
        classification: LinkClassification = LinkClassification.AUTOMATIC,
    ) -> Record:
        master = Record(
            kind=source.kind,
            classification=RecordClass.MASTER,
            determiner=source.determiner,
            tags={MDM_TYPE_TAG: RecordClass.MASTER.type_tag},
        )
        for hook in self.master_hooks:
            hook(master, source)
        tx.add(master)
        log.debug("Established master %s for %s", master.id, source.id)
        self._link(source.id, master.id, tx, classification=classification)
        return master

    def cascade_orphan(
        self, master_id: UUID, tx: TransactionBuilder, *, replacement: UUID | None = None
    ) -> bool:
        """Obsolete ``master_id`` when no active record links to it any more."""

        view = self.view(tx)
        master = view.record(master_id)
        if master is None or not master.is_master or not master.is_active:
            return False
        if view.locals_of(master_id):
            return False
        master.obsolete()
        tx.add(master)
        for rel in view.candidates(master_id=master_id):
            self._retire(rel, tx)
        if replacement is not None:
            tx.add(replaces_link(replacement, master_id))
        log.debug("Obsoleted orphaned master %s", master_id)
        return True

    def ignore_candidate(self, source_id: UUID, master_id: UUID, tx: TransactionBuilder) -> None:
        view = self.view(tx)
        for rel in view.pair(source_id, master_id, RelationshipKind.CANDIDATE):
            self._retire(rel, tx)
        if not view.pair(source_id, master_id, RelationshipKind.IGNORE_CANDIDATE):
            tx.add(ignore_candidate_link(source_id, master_id))

    def unignore_candidate(self, source_id: UUID, master_id: UUID, tx: TransactionBuilder) -> int:
        retired = 0
        for rel in self.view(tx).pair(source_id, master_id, RelationshipKind.IGNORE_CANDIDATE):
            self._retire(rel, tx)
            retired += 1
        return retired

    # records of truth ---------------------------------------------------------

    def save_record_of_truth(
        self, record: Record, master_id: UUID, tx: TransactionBuilder
    ) -> Record:
        """Designate ``record`` as the record of truth of ``master_id``."""

        view = self.view(tx)
        master = view.record(master_id)
        if master is None or not master.is_master:
            raise StateConflictError(f"{master_id} is not a MASTER", record=record)
        current = view.record_of_truth_relationship(master_id)
        is_edit = current is not None and current.target_id == record.id
        permission = (
            MdmPermission.EDIT_RECORD_OF_TRUTH
            if is_edit
            else MdmPermission.ESTABLISH_RECORD_OF_TRUTH
        )
        self.permissions.demand(permission, tx.principal)
        rot_kinds = (RelationshipKind.RECORD_OF_TRUTH,)
        for rel in view.relationships(target_id=record.id, kinds=rot_kinds):
            if rel.source_id != master_id:
                raise StateConflictError(
                    f"Record is already the record of truth for master {rel.source_id}",
                    record=record,
                )

        record.classification = RecordClass.RECORD_OF_TRUTH
        record.add_tag(MDM_TYPE_TAG, RecordClass.RECORD_OF_TRUTH.type_tag)
        if record.provenance is None:
            record.set_provenance(Provenance.of(tx.principal))
        tx.add(record)

        if current is not None and not is_edit:
            self._retire_record_of_truth(current, tx)
        if not is_edit:
            tx.add(record_of_truth_link(master_id, record.id))

        link = view.master_relationship(record.id)
        if link is None or link.target_id != master_id:
            if link is not None:
                self._retire(link, tx)
            self._link(record.id, master_id, tx, classification=LinkClassification.VERIFIED)
            if link is not None:
                self.cascade_orphan(link.target_id, tx, replacement=master_id)
        elif not link.is_verified:
            link.classification = LinkClassification.VERIFIED
            tx.add(link)
        return record

    def _retire_record_of_truth(self, rel: Relationship, tx: TransactionBuilder) -> None:
        view = self.view(tx)
        self._retire(rel, tx)
        for link in view.pair(rel.target_id, rel.source_id, RelationshipKind.MASTER):
            self._retire(link, tx)
        previous = view.record(rel.target_id)
        if previous is not None and previous.is_active:
            previous.obsolete()
            tx.add(previous)
        log.debug("Retired record of truth %s of master %s", rel.target_id, rel.source_id)

    # lifecycle ----------------------------------------------------------------

    def obsolete(self, record: Record, tx: TransactionBuilder) -> None:
        view = self.view(tx)
        if record.is_master:
            if not tx.principal.is_system:
                self.permissions.demand(MdmPermission.WRITE_MDM_MASTER, tx.principal)
            if view.locals_of(record.id):
                raise StateConflictError("Master still has active locals", record=record)
            if record.is_active:
                record.obsolete()
            tx.add(record)
            for rel in view.candidates(master_id=record.id):
                self._retire(rel, tx)
            return

        if record.is_active:
            record.obsolete()
        tx.add(record)
        masters: list[UUID] = []
        for rel in view.relationships(
            source_id=record.id,
            kinds=(RelationshipKind.MASTER, RelationshipKind.CANDIDATE),
        ):
            self._retire(rel, tx)
            if rel.kind is RelationshipKind.MASTER:
                masters.append(rel.target_id)
        rot_kinds = (RelationshipKind.RECORD_OF_TRUTH,)
        for rel in view.relationships(target_id=record.id, kinds=rot_kinds):
            self._retire(rel, tx)
        for master_id in masters:
            self.cascade_orphan(master_id, tx)

    # merges -------------------------------------------------------------------

    def merge_masters(self, survivor: Record, victim: Record, tx: TransactionBuilder) -> None:
        """Fold ``victim`` into ``survivor``: migrate inbound links, record REPLACES."""

        if survivor.id == victim.id:
            raise InvalidMergeError("Cannot merge a master into itself", record=survivor)
        view = self.view(tx)
        survivor_rot = view.record_of_truth_relationship(survivor.id)
        victim_rot = view.record_of_truth_relationship(victim.id)
        dropped_rot: UUID | None = None
        if victim_rot is not None:
            self._retire(victim_rot, tx)
            if survivor_rot is None:
                tx.add(record_of_truth_link(survivor.id, victim_rot.target_id))
            else:
                dropped_rot = victim_rot.target_id
                self._retire_record_of_truth(victim_rot, tx)

        for rel in view.master_links_to(victim.id):
            if rel.source_id == dropped_rot:
                continue
            self._retire(rel, tx)
            self._link(rel.source_id, survivor.id, tx, classification=rel.classification)

        linked_to_survivor = {rel.source_id for rel in view.master_links_to(survivor.id)}
        for kind, factory in (
            (RelationshipKind.CANDIDATE, candidate_link),
            (RelationshipKind.IGNORE_CANDIDATE, ignore_candidate_link),
        ):
            for rel in view.relationships(target_id=victim.id, kinds=(kind,)):
                self._retire(rel, tx)
                if rel.source_id in linked_to_survivor:
                    continue
                if not view.pair(rel.source_id, survivor.id, kind):
                    tx.add(
                        factory(rel.source_id, survivor.id, classification=rel.classification)
                    )

        survivor.copy_identifiers_from(i.pair for i in victim.identifiers)
        survivor.touch()
        tx.add(survivor)
        tx.add(replaces_link(survivor.id, victim.id))
        victim.obsolete()
        tx.add(victim)
        log.debug("Merged master %s into %s", victim.id, survivor.id)

    def merge_locals(self, survivor: Record, duplicate: Record, tx: TransactionBuilder) -> None:
        """Fold ``duplicate`` into ``survivor``'s master and mark it replaced."""

        if survivor.id == duplicate.id:
            raise InvalidMergeError("Cannot merge a record into itself", record=survivor)
        view = self.view(tx)
        survivor_master = view.master_for(survivor.id)
        if survivor_master is None:
            survivor_master = self.establish_master(survivor, tx).id
        current = view.master_relationship(duplicate.id)
        if current is not None and current.target_id == survivor_master:
            self.master_link(duplicate.id, survivor_master, tx, verified=True)
        else:
            if current is not None:
                self._retire(current, tx)
                tx.add(
                    original_master_link(
                        duplicate.id, current.target_id, classification=current.classification
                    )
                )
            self._link(
                duplicate.id, survivor_master, tx, classification=LinkClassification.VERIFIED
            )
        tx.add(replaces_link(survivor.id, duplicate.id))
        survivor.copy_identifiers_from(i.pair for i in duplicate.identifiers)
        tx.add(survivor)
        duplicate.obsolete()
        tx.add(duplicate)
        if current is not None and current.target_id != survivor_master:
            self.cascade_orphan(current.target_id, tx, replacement=survivor_master)
        log.debug("Merged local %s into %s", duplicate.id, survivor.id)

    # ownership ----------------------------------------------------------------

    def is_owner(self, record: Record, principal: Principal) -> bool:
        provenance = record.provenance
        if provenance is None or principal.source_name is None:
            return False
        return provenance.source_name == principal.source_name

    def get_local_for(
        self, master_id: UUID, principal: Principal, tx: TransactionBuilder
    ) -> Record | None:
        """The caller's own LOCAL feeding ``master_id``, if there is one."""

        for local in self.view(tx).locals_of(master_id):
            if not local.is_record_of_truth and self.is_owner(local, principal):
                return local
        return None

    def create_local_for(self, master_id: UUID, tx: TransactionBuilder) -> Record:
        view = self.view(tx)
        master = view.record(master_id)
        if master is None or not master.is_master:
            raise StateConflictError(f"{master_id} is not a MASTER", record=master_id)
        local = tx.add(Record(kind=master.kind, classification=RecordClass.LOCAL))
        self._link(local.id, master_id, tx, classification=LinkClassification.VERIFIED)
        log.debug("Created local %s for master %s", local.id, master_id)
        return local

    # validation ---------------------------------------------------------------

    def validate(self, record: Record, tx: TransactionBuilder) -> list[ValidationIssue]:
        if not record.is_local or not record.is_active:
            return []
        links = self.view(tx).relationships(
            source_id=record.id, kinds=(RelationshipKind.MASTER,)
        )
        if len(links) == 1:
            return []
        return [
            ValidationIssue(
                code=ORPHAN_ISSUE,
                message=f"Record has {len(links)} active MASTER link(s); expected exactly one",
                priority=IssuePriority.ERROR,
                record_id=record.id,
            )
        ]


@dataclass(slots=True)
class LinkageEngineFactory:
    """Build one engine per unit of work from process-wide settings."""

    permissions: PermissionChecker
    matchers: Sequence[MatcherRegistration] = ()
    master_hooks: Sequence[MasterHook] = ()
    domain_cache: UniqueDomainCache = UNIQUE_DOMAINS

    def __post_init__(self) -> None:
        if not self.matchers:
            log.warning(
                "No matching provider configured; only identifier matching is available"
            )

    def __call__(self, repositories: MdmRepositories) -> LinkageEngine:
        self.domain_cache.initialize(repositories.domains)
        bindings = [
            MatcherBinding(registration.factory(repositories), registration.configuration)
            for registration in self.matchers
        ]
        return LinkageEngine(
            repositories=repositories,
            permissions=self.permissions,
            bindings=bindings,
            master_hooks=self.master_hooks,
            domain_cache=self.domain_cache,
        )
