"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from mdmlink.adapters.matching import attribute_matcher_factory
from mdmlink.adapters.policy import StaticPermissionChecker
from mdmlink.adapters.remote_matcher import RemoteMatcherClient, remote_matcher_factory
from mdmlink.adapters.sqlalchemy import SqlAlchemyUnitOfWork, is_started, startup
from mdmlink.config import (
    get_mdm_config,
    get_policy_config,
    get_remote_matcher_config,
    remote_matcher_enabled,
)
from mdmlink.domain.linkage import (
    LinkageEngineFactory,
    MatcherRegistration,
    MatchJob,
    MergeEvents,
    MergeOrchestrator,
    RecordGateway,
    reconcile_all,
)
from mdmlink.domain.model import SYSTEM_PRINCIPAL
from mdmlink.domain.ports import MatchConfiguration

if TYPE_CHECKING:
    from collections.abc import Iterable

    from mdmlink.config import MdmConfig
    from mdmlink.domain.linkage import MasterHook, ReconcileReport
    from mdmlink.domain.linkage.engine import MatcherFactory
    from mdmlink.domain.model import IdentifierDomain, Principal, Record, RecordKind
    from mdmlink.domain.ports import MdmUnitOfWork, PermissionChecker
    from mdmlink.ui.payloads import RecordInput

type UnitOfWorkFactory = Callable[[], MdmUnitOfWork]

log = getLogger(__name__)


@dataclass(slots=True)
class MdmApplication:
    """Everything the CLI needs, wired once per process."""

    unit_of_work: UnitOfWorkFactory
    engine_factory: LinkageEngineFactory
    permissions: PermissionChecker
    gateway: RecordGateway
    merges: MergeOrchestrator

    # identifier domains -------------------------------------------------------

    def add_domain(self, domain: IdentifierDomain) -> None:
        with self.unit_of_work() as uow:
            uow.repositories.domains.add(domain)
            uow.commit()
        self.engine_factory.domain_cache.refresh(changed=domain)
        log.info("Saved identifier domain %s (unique=%s)", domain.name, domain.unique)

    def list_domains(self) -> list[IdentifierDomain]:
        with self.unit_of_work() as uow:
            return uow.repositories.domains.list_all()

    def remove_domain(self, name: str) -> bool:
        with self.unit_of_work() as uow:
            removed = uow.repositories.domains.remove(name)
            uow.commit()
        if removed:
            self.engine_factory.domain_cache.evict(name)
            log.info("Removed identifier domain %s", name)
        return removed

    # records ------------------------------------------------------------------

    def ingest(
        self, inputs: Iterable[RecordInput], principal: Principal = SYSTEM_PRINCIPAL
    ) -> list[Record]:
        saved: list[Record] = []
        for item in inputs:
            record = item.to_record(principal)
            if item.master is not None:
                saved.append(self.gateway.insert(record, principal, master_id=item.master))
            else:
                saved.append(self.gateway.save(record, principal))
        log.info("Ingested %d record(s)", len(saved))
        return saved

    # background work ----------------------------------------------------------

    def match_job(self, kind: RecordKind | None = None, *, page_size: int = 20) -> MatchJob:
        return MatchJob(
            unit_of_work=self.unit_of_work,
            engine_factory=self.engine_factory,
            kind=kind,
            page_size=page_size,
        )

    def reconcile(self, kind: RecordKind | None = None) -> ReconcileReport:
        return reconcile_all(self.unit_of_work, self.engine_factory, kind=kind)


def configured_matchers(config: MdmConfig) -> list[MatcherRegistration]:
    """One registration per configured match configuration.

    The remote matcher serves every configuration when ``MDM_MATCHER_URL`` is set; otherwise the
    in-process attribute matcher does.
    """

    factory: MatcherFactory
    if remote_matcher_enabled():
        factory = remote_matcher_factory(RemoteMatcherClient(get_remote_matcher_config()))
        log.info("Using remote matcher for %d configuration(s)", len(config.match_configurations))
    elif config.blocking_fields:
        factory = attribute_matcher_factory(config.blocking_fields, config.discriminating_fields)
    else:
        return []
    return [
        MatcherRegistration(MatchConfiguration(item.name, auto_link=item.auto_link), factory)
        for item in config.match_configurations
    ]


def configured_permissions() -> PermissionChecker:
    policy = get_policy_config()
    if policy.path is None:
        log.warning("No permission policy file; only the system principal holds MDM permissions")
        return StaticPermissionChecker()
    return StaticPermissionChecker.from_file(policy.path)


def build_application(
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    permissions: PermissionChecker | None = None,
    matchers: Sequence[MatcherRegistration] | None = None,
    master_hooks: Sequence[MasterHook] = (),
    config: MdmConfig | None = None,
    events: MergeEvents | None = None,
) -> MdmApplication:
    """Wire adapters and the linkage core from configuration, overriding any piece given."""

    mdm_config = config or get_mdm_config()
    if unit_of_work_factory is None:
        if not is_started():
            startup()
        unit_of_work_factory = SqlAlchemyUnitOfWork
    effective_permissions = permissions or configured_permissions()
    engine_factory = LinkageEngineFactory(
        permissions=effective_permissions,
        matchers=configured_matchers(mdm_config) if matchers is None else matchers,
        master_hooks=master_hooks,
    )
    return MdmApplication(
        unit_of_work=unit_of_work_factory,
        engine_factory=engine_factory,
        permissions=effective_permissions,
        gateway=RecordGateway(
            unit_of_work=unit_of_work_factory,
            engine_factory=engine_factory,
            permissions=effective_permissions,
            governed_kinds=mdm_config.governed_kinds,
        ),
        merges=MergeOrchestrator(
            unit_of_work=unit_of_work_factory,
            engine_factory=engine_factory,
            permissions=effective_permissions,
            events=events or MergeEvents(),
        ),
    )
