# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from dotenv import load_dotenv
from pydantic import ValidationError

from mdmlink.adapters.sqlalchemy.migrations import upgrade_head
from mdmlink.app import build_application
from mdmlink.config import ConfigurationError, configure_logging
from mdmlink.domain.linkage import JobState, MasterView
from mdmlink.domain.model import (
    SYSTEM_PRINCIPAL,
    IdentifierDomain,
    Principal,
    RecordClass,
    RecordKind,
)
from mdmlink.domain.ports import RecordCriteria
from mdmlink.ui.payloads import RecordInput, record_to_dict, relationship_to_dict

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from mdmlink.app import MdmApplication
    from mdmlink.domain.model import Record

log = logging.getLogger(__name__)


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid UUID: {value}") from exc


def _parse_identifier(value: str) -> tuple[str, str]:
    domain, sep, identifier = value.partition("=")
    if not sep or not domain or not identifier:
        raise argparse.ArgumentTypeError(f"Expected DOMAIN=VALUE, got {value!r}")
    return domain, identifier


def _parse_kind(value: str) -> RecordKind:
    try:
        return RecordKind(value.lower())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Unknown record kind: {value}") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mdmlink", description="MDM record linkage")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG level")
    parser.add_argument("--as", dest="principal", help="Act as this principal (default: system)")
    parser.add_argument("--application", help="Source application of the acting principal")
    parser.add_argument("--device", help="Source device of the acting principal")
    parser.add_argument("--role", action="append", default=[], help="Role of the principal")
    subparsers = parser.add_subparsers(dest="command", required=True)

    db = subparsers.add_parser("db", help="Database maintenance")
    db_sub = db.add_subparsers(dest="db_command", required=True)
    db_sub.add_parser("upgrade", help="Apply migrations up to the latest revision")

    domain = subparsers.add_parser("domain", help="Identifier domain management")
    domain_sub = domain.add_subparsers(dest="domain_command", required=True)
    domain_add = domain_sub.add_parser("add", help="Create or update an identifier domain")
    domain_add.add_argument("name")
    domain_add.add_argument("--oid")
    domain_add.add_argument("--unique", action="store_true", help="Values identify one entity")
    domain_add.add_argument("--description")
    domain_sub.add_parser("list", help="List identifier domains")
    domain_remove = domain_sub.add_parser("remove", help="Remove an identifier domain")
    domain_remove.add_argument("name")

    ingest = subparsers.add_parser("ingest", help="Save records from a JSON lines file")
    ingest.add_argument("file", type=Path, help="JSON lines file ('-' reads stdin)")

    show = subparsers.add_parser("show", help="Show a record (masters are synthesized)")
    show.add_argument("key", type=_parse_uuid)

    find = subparsers.add_parser("find", help="Query records")
    find.add_argument(
        "--identifier", type=_parse_identifier, action="append", default=[], metavar="D=V"
    )
    find.add_argument("--kind", type=_parse_kind, default=RecordKind.PATIENT)
    find.add_argument("--locals", action="store_true", help="Return LOCAL records only")
    find.add_argument("--offset", type=int, default=0)
    find.add_argument("--limit", type=int)

    merge = subparsers.add_parser("merge", help="Merge duplicates into a survivor")
    merge.add_argument("survivor", type=_parse_uuid)
    merge.add_argument("duplicates", type=_parse_uuid, nargs="+")

    unmerge = subparsers.add_parser("unmerge", help="Detach a record from its master")
    unmerge.add_argument("master", type=_parse_uuid)
    unmerge.add_argument("record", type=_parse_uuid)

    ignore = subparsers.add_parser("ignore", help="Mark records as not matching a master")
    ignore.add_argument("master", type=_parse_uuid)
    ignore.add_argument("records", type=_parse_uuid, nargs="+")

    unignore = subparsers.add_parser("unignore", help="Lift ignore flags and re-match")
    unignore.add_argument("master", type=_parse_uuid)
    unignore.add_argument("records", type=_parse_uuid, nargs="+")

    candidates = subparsers.add_parser("candidates", help="List candidate links")
    candidates.add_argument("master", type=_parse_uuid, nargs="?")
    candidates.add_argument("--ignored", action="store_true", help="List ignore flags instead")
    candidates.add_argument("--kind", type=_parse_kind)
    candidates.add_argument("--offset", type=int, default=0)
    candidates.add_argument("--limit", type=int)

    flag = subparsers.add_parser("flag", help="Re-run matching for a record or master")
    flag.add_argument("key", type=_parse_uuid)

    job = subparsers.add_parser("match-job", help="Re-match every source record")
    job.add_argument("--kind", type=_parse_kind)
    job.add_argument("--page-size", type=int, default=20)

    reconcile = subparsers.add_parser("reconcile", help="Repair relationship anomalies")
    reconcile.add_argument("--kind", type=_parse_kind)

    diff = subparsers.add_parser("diff", help="Differences between a master and a record")
    diff.add_argument("master", type=_parse_uuid)
    diff.add_argument("record", type=_parse_uuid)

    clear = subparsers.add_parser("clear", help="Retire candidate links or ignore flags")
    clear.add_argument("what", choices=("candidates", "ignores"))
    clear.add_argument("master", type=_parse_uuid, nargs="?")
    clear.add_argument("--kind", type=_parse_kind)

    reset = subparsers.add_parser("reset", help="Discard automatic links and re-match")
    reset.add_argument("master", type=_parse_uuid, nargs="?")
    reset.add_argument("--kind", type=_parse_kind)
    reset.add_argument("--include-verified", action="store_true")
    reset.add_argument("--links-only", action="store_true")

    return parser


def _principal(args: argparse.Namespace) -> Principal:
    if args.principal is None:
        return SYSTEM_PRINCIPAL
    return Principal(
        name=args.principal,
        application=args.application,
        device=args.device,
        roles=frozenset(args.role),
    )


def _emit(payload: object) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _render(item: Record | MasterView) -> dict[str, Any]:
    if isinstance(item, MasterView):
        return item.to_dict()
    return record_to_dict(item)


def _read_inputs(path: Path) -> list[RecordInput]:
    handle = sys.stdin if str(path) == "-" else path.open(encoding="utf-8")
    inputs: list[RecordInput] = []
    try:
        for number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                inputs.append(RecordInput.model_validate_json(line))
            except ValidationError as exc:
                raise ValueError(f"{path}:{number}: {exc}") from exc
    finally:
        if handle is not sys.stdin:
            handle.close()
    return inputs


def _cmd_domain(app: MdmApplication, args: argparse.Namespace, _: Principal) -> None:
    if args.domain_command == "add":
        app.add_domain(
            IdentifierDomain(
                name=args.name, oid=args.oid, unique=args.unique, description=args.description
            )
        )
    elif args.domain_command == "list":
        _emit(
            [
                {"name": d.name, "oid": d.oid, "unique": d.unique, "description": d.description}
                for d in app.list_domains()
            ]
        )
    elif not app.remove_domain(args.name):
        raise ValueError(f"Unknown identifier domain: {args.name}")


def _cmd_ingest(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    saved = app.ingest(_read_inputs(args.file), principal)
    _emit([str(record.id) for record in saved])


def _cmd_show(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    item = app.gateway.get(args.key, principal)
    if item is None:
        raise ValueError(f"Record {args.key} not found")
    _emit(_render(item))


def _cmd_find(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    criteria = RecordCriteria(
        kind=args.kind,
        classifications=frozenset({RecordClass.LOCAL}) if args.locals else None,
        identifiers=tuple(args.identifier),
    )
    found = app.gateway.query(criteria, principal, offset=args.offset, limit=args.limit)
    _emit([_render(item) for item in found])


def _cmd_merge(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    result = app.merges.merge(args.survivor, args.duplicates, principal)
    _emit(
        {
            "status": result.status.value,
            "survivors": [str(key) for key in result.survivors],
            "replaced": [str(key) for key in result.replaced],
            "reason": result.reason,
        }
    )


def _cmd_unmerge(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    result = app.merges.unmerge(args.master, args.record, principal)
    _emit({"status": result.status.value, "survivors": [str(k) for k in result.survivors]})


def _cmd_ignore(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    _emit({"deltas": app.merges.ignore(args.master, args.records, principal)})


def _cmd_unignore(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    _emit({"deltas": app.merges.unignore(args.master, args.records, principal)})


def _cmd_candidates(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    if args.master is None:
        if args.ignored:
            raise ValueError("--ignored needs a master key")
        edges = app.merges.get_global_merge_candidates(
            args.kind, offset=args.offset, limit=args.limit
        )
    elif args.ignored:
        edges = app.merges.get_ignored(args.master, principal)
    else:
        edges = app.merges.get_merge_candidates(args.master, principal)
    _emit([relationship_to_dict(edge) for edge in edges])


def _cmd_flag(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    _emit({"deltas": app.merges.flag_duplicates(args.key, principal)})


def _cmd_match_job(app: MdmApplication, args: argparse.Namespace, _: Principal) -> None:
    job = app.match_job(args.kind, page_size=args.page_size)
    job.start()
    job.join()
    _emit(
        {
            "state": job.state.value,
            "processed": job.processed,
            "failed": job.failed,
            "deltas": job.deltas,
        }
    )
    if job.state is JobState.ABORTED:
        raise RuntimeError("Match job aborted") from job.error


def _cmd_reconcile(app: MdmApplication, args: argparse.Namespace, _: Principal) -> None:
    report = app.reconcile(args.kind)
    _emit({"examined": report.examined, "repairs": report.repairs})


def _cmd_diff(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    differences = app.merges.diff(args.master, args.record, principal)
    _emit(
        [
            {"path": d.path, "master": d.master_value, "record": d.record_value}
            for d in differences
        ]
    )


def _cmd_clear(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    merges = app.merges
    if args.master is not None:
        if args.what == "candidates":
            deltas = merges.clear_merge_candidates(args.master, principal)
        else:
            deltas = merges.clear_ignore_flags(args.master, principal)
    elif args.what == "candidates":
        deltas = merges.clear_global_merge_candidates(args.kind, principal)
    else:
        deltas = merges.clear_global_ignore_flags(args.kind, principal)
    _emit({"deltas": deltas})


def _cmd_reset(app: MdmApplication, args: argparse.Namespace, principal: Principal) -> None:
    deltas = app.merges.reset(
        args.master,
        kind=args.kind,
        include_verified=args.include_verified,
        links_only=args.links_only,
        principal=principal,
    )
    _emit({"deltas": deltas})


_COMMANDS: dict[str, Callable[[MdmApplication, argparse.Namespace, Principal], None]] = {
    "domain": _cmd_domain,
    "ingest": _cmd_ingest,
    "show": _cmd_show,
    "find": _cmd_find,
    "merge": _cmd_merge,
    "unmerge": _cmd_unmerge,
    "ignore": _cmd_ignore,
    "unignore": _cmd_unignore,
    "candidates": _cmd_candidates,
    "flag": _cmd_flag,
    "match-job": _cmd_match_job,
    "reconcile": _cmd_reconcile,
    "diff": _cmd_diff,
    "clear": _cmd_clear,
    "reset": _cmd_reset,
}


def main(argv: Sequence[str] | None = None, *, app: MdmApplication | None = None) -> None:
    """Main application entry point."""

    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    args = _build_parser().parse_args(args_list)
    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.command == "db":
            upgrade_head()
            log.info("Database schema is up to date")
            return
        application = app or build_application()
        _COMMANDS[args.command](application, args, _principal(args))
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Command %s failed", args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
