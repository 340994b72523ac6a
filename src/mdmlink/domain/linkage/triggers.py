"""Post-commit consistency rules and the reconciliation sweep.

The rules are idempotent: applied to a consistent graph they register nothing, so they are
safe to run after every commit and again from a background sweep.
"""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from mdmlink.domain.model import LinkClassification, RecordClass, RelationshipKind

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mdmlink.domain.linkage.engine import LinkageEngine
    from mdmlink.domain.linkage.transaction import TransactionBuilder
    from mdmlink.domain.model import Record, Relationship

log = getLogger(__name__)

_NON_MASTER_KINDS = tuple(kind for kind in RelationshipKind if kind is not RelationshipKind.MASTER)


@dataclass(slots=True)
class ReconcileReport:
    examined: int = 0
    orphans_obsoleted: int = 0
    duplicate_links_retired: int = 0
    overlaps_retired: int = 0
    masters_established: int = 0
    links_reconstructed: int = 0

    @property
    def repairs(self) -> int:
        return (
            self.orphans_obsoleted
            + self.duplicate_links_retired
            + self.overlaps_retired
            + self.masters_established
            + self.links_reconstructed
        )


@dataclass(slots=True)
class ConsistencyTriggers:
    engine: LinkageEngine

    def after_commit(self, changed: Iterable[Relationship], tx: TransactionBuilder) -> int:
        """Apply the relationship rules to ``changed``; return the number of repairs."""

        repairs = 0
        for rel in changed:
            if rel.kind is RelationshipKind.MASTER:
                if rel.is_active:
                    repairs += self._retire_overlaps(rel, tx)
                elif self.engine.cascade_orphan(rel.target_id, tx):
                    repairs += 1
            elif rel.kind is RelationshipKind.RECORD_OF_TRUTH and rel.is_active:
                repairs += self._retire_other_records_of_truth(rel, tx)
        if repairs:
            log.debug("Consistency triggers applied %d repair(s)", repairs)
        return repairs

    def _retire_overlaps(self, link: Relationship, tx: TransactionBuilder) -> int:
        retired = 0
        for rel in self.engine.view(tx).pair(link.source_id, link.target_id, *_NON_MASTER_KINDS):
            rel.obsolete()
            tx.add(rel)
            retired += 1
        return retired

    def _retire_other_records_of_truth(self, link: Relationship, tx: TransactionBuilder) -> int:
        retired = 0
        view = self.engine.view(tx)
        for rel in view.relationships(
            source_id=link.source_id, kinds=(RelationshipKind.RECORD_OF_TRUTH,)
        ):
            if rel.id == link.id:
                continue
            rel.obsolete()
            tx.add(rel)
            retired += 1
        return retired

    # sweep --------------------------------------------------------------------

    def reconcile(
        self,
        records: Iterable[Record],
        tx: TransactionBuilder,
        report: ReconcileReport | None = None,
    ) -> ReconcileReport:
        """Repair anomalies around ``records``; repairs are registered in ``tx``."""

        report = report or ReconcileReport()
        for record in records:
            report.examined += 1
            if not record.is_active:
                continue
            if record.classification is RecordClass.MASTER:
                self._reconcile_master(record, tx, report)
            else:
                self._reconcile_source(record, tx, report)
        return report

    def _reconcile_master(
        self, master: Record, tx: TransactionBuilder, report: ReconcileReport
    ) -> None:
        view = self.engine.view(tx)
        rots = sorted(
            view.relationships(source_id=master.id, kinds=(RelationshipKind.RECORD_OF_TRUTH,)),
            key=lambda rel: rel.created_at,
        )
        if rots:
            report.duplicate_links_retired += self._retire_other_records_of_truth(rots[-1], tx)
        if self.engine.cascade_orphan(master.id, tx):
            report.orphans_obsoleted += 1

    def _reconcile_source(
        self, record: Record, tx: TransactionBuilder, report: ReconcileReport
    ) -> None:
        view = self.engine.view(tx)
        links = sorted(
            view.relationships(source_id=record.id, kinds=(RelationshipKind.MASTER,)),
            key=lambda rel: rel.created_at,
        )
        for stale in links[:-1]:
            log.warning(
                "Record %s had %d active MASTER links; retiring %s",
                record.id,
                len(links),
                stale.id,
            )
            stale.obsolete()
            tx.add(stale)
            report.duplicate_links_retired += 1
            if self.engine.cascade_orphan(stale.target_id, tx):
                report.orphans_obsoleted += 1
        if links:
            report.overlaps_retired += self._retire_overlaps(links[-1], tx)
            return

        if record.is_record_of_truth:
            owners = view.relationships(
                target_id=record.id, kinds=(RelationshipKind.RECORD_OF_TRUTH,)
            )
            if owners:
                log.warning(
                    "Record of truth %s has no MASTER link to %s; reconstructing it",
                    record.id,
                    owners[0].source_id,
                )
                self.engine.master_link(
                    record.id, owners[0].source_id, tx, verified=True
                )
                report.links_reconstructed += 1
                return
        self.engine.establish_master(record, tx, classification=LinkClassification.AUTOMATIC)
        report.masters_established += 1
