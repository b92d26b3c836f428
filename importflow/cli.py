from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any

from importflow import __version__ as TOOL_VERSION
from importflow.aggregate import status_shares, top_delayed_suppliers
from importflow.config import Settings, load_settings
from importflow.contracts import build_payload, build_run_summary, serialize_record
from importflow.loader import SpreadsheetDecodeError
from importflow.query import RecordQuery, run_query, table_counts, timeline_fraction
from importflow.records import ImportRecord, ImportStatus
from importflow.session import VIEW_ALL, VIEW_EXCLUDED, ImportSession, view_title
from importflow.store import OverrideStore

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_DECODE_FAILED = 2
EXIT_FOLLOW_UP = 3

TRANSITION_COMMANDS = ("ship", "unship", "exclude", "restore")
VIEW_CHOICES = [VIEW_ALL, VIEW_EXCLUDED] + [status.value for status in ImportStatus]


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class ImportflowArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def parse_date_arg(value: str | None, flag: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise CliError(f"{flag} expects YYYY-MM-DD, got {value!r}", EXIT_COMMAND_ERROR)


def classify_backend_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (ImportError, SpreadsheetDecodeError)):
        return EXIT_DECODE_FAILED
    return EXIT_COMMAND_ERROR


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def open_session(args: argparse.Namespace) -> tuple[ImportSession, Settings]:
    try:
        settings = load_settings(
            store_dir=args.store_dir,
            today=args.today,
            quiet=args.quiet,
            verbose=args.verbose,
        )
    except ValueError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from exc
    configure_logging(settings)
    store = OverrideStore.at_directory(settings.store_dir)
    session = ImportSession(store, today=settings.today)
    session.import_file(Path(args.input))
    for warning in session.warnings:
        emit_human(f"Warning: {warning}", quiet=args.quiet)
    return session, settings


def render_summary_text(session: ImportSession) -> str:
    stats = session.stats()
    shares = status_shares(stats)
    lines = [
        "importflow summary",
        f"File: {session.source_name or '[unknown]'}",
        f"Imported items: {stats.total_imported}",
        f"National items: {stats.total_national}",
        f"Excluded items: {len(session.excluded())}",
    ]
    for status in (ImportStatus.ATRASADO, ImportStatus.CRITICO, ImportStatus.ALERTA, ImportStatus.PRODUCAO, ImportStatus.EMBARCADO):
        lines.append(f"  {status.value:<10} {stats.count_for(status):>5}  ({shares[status.value]}%)")
    lines.append(f"Follow-up needed: {stats.follow_up_needed}")
    delayed = top_delayed_suppliers(session.records)
    if delayed:
        lines.append("Top delayed suppliers:")
        lines.extend(f"  {name}: {count}" for name, count in delayed)
    return "\n".join(lines) + "\n"


def render_bar(days: int, width: int = 10) -> str:
    filled = round(timeline_fraction(days) * width)
    return "#" * filled + "." * (width - filled)


def render_records_text(title: str, records: list[ImportRecord]) -> str:
    counts = table_counts(records)
    lines = [
        title,
        f"Rows: {counts['total']}",
    ]
    for record in records:
        need = record.contract_need_date.strftime("%d/%m/%Y")
        lines.append(
            f"{record.status.value:<10} {record.days_until_need:>5}d [{render_bar(record.days_until_need)}] "
            f"{need}  {record.identity}  {record.supplier}  {record.product}"
        )
    return "\n".join(lines) + "\n"


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--store-dir", dest="store_dir", help="Directory holding the shipped/excluded overrides")
    parser.add_argument("--today", help="Pin today's date (YYYY-MM-DD)")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    parser.add_argument("-v", "--verbose", action="store_true", help="More human logs")


def build_parser() -> argparse.ArgumentParser:
    parser = ImportflowArgumentParser(prog="importflow", description="Import follow-up for procurement spreadsheets.")
    subparsers = parser.add_subparsers(dest="command", required=True, parser_class=ImportflowArgumentParser)

    summary = subparsers.add_parser("summary", help="Count records by urgency status.")
    summary.add_argument("input", help="Spreadsheet path")
    summary.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    summary.add_argument("--fail-on-follow-up", dest="fail_on_follow_up", action="store_true", help="Return exit code 3 when critical or alert items exist")
    add_common_arguments(summary)

    listing = subparsers.add_parser("list", help="List records filtered and sorted by urgency.")
    listing.add_argument("input", help="Spreadsheet path")
    listing.add_argument("--view", choices=VIEW_CHOICES, default=VIEW_ALL, help="Which records to list")
    listing.add_argument("--search", default="", help="Free text over SC/PO/PC numbers, supplier and product")
    listing.add_argument("--supplier", default="", help="Exact supplier name")
    listing.add_argument("--product", default="", help="Product description substring")
    listing.add_argument("--status", choices=[status.value for status in ImportStatus], help="Exact status")
    listing.add_argument("--from", dest="date_from", help="Need date from (YYYY-MM-DD, inclusive)")
    listing.add_argument("--to", dest="date_to", help="Need date to (YYYY-MM-DD, inclusive)")
    listing.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    add_common_arguments(listing)

    for command, help_text in (
        ("ship", "Mark an imported record as shipped."),
        ("unship", "Undo a shipped mark."),
        ("exclude", "Hide a record from the working views."),
        ("restore", "Bring an excluded record back."),
    ):
        transition = subparsers.add_parser(command, help=help_text)
        transition.add_argument("input", help="Spreadsheet path")
        transition.add_argument("identity", help="Record identity")
        transition.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
        add_common_arguments(transition)

    subparsers.add_parser("version", help="Print version")
    return parser


def run_summary(args: argparse.Namespace) -> int:
    try:
        session, _ = open_session(args)
        stats = session.stats()
        payload = build_payload(
            "importflow.summary",
            {
                "stats": stats.to_dict(),
                "sidebar_counts": session.sidebar_counts(),
                "status_shares": status_shares(stats),
                "top_delayed_suppliers": [
                    {"supplier": name, "count": count} for name, count in top_delayed_suppliers(session.records)
                ],
            },
            build_run_summary(
                command="summary",
                input_path=Path(args.input),
                metrics={"records": len(session.records), "follow_up_needed": stats.follow_up_needed},
                warnings=session.warnings,
            ),
        )
        if args.json:
            maybe_emit_json_stdout(payload, True)
        else:
            emit_human(render_summary_text(session).rstrip(), quiet=args.quiet)
        if args.fail_on_follow_up and stats.follow_up_needed:
            return EXIT_FOLLOW_UP
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def run_list(args: argparse.Namespace) -> int:
    try:
        query = RecordQuery(
            text=args.search,
            supplier=args.supplier,
            product=args.product,
            status=args.status,
            need_date_from=parse_date_arg(args.date_from, "--from"),
            need_date_to=parse_date_arg(args.date_to, "--to"),
        )
        session, _ = open_session(args)
        records = run_query(session.records_for_view(args.view), query)
        if args.json:
            payload = build_payload(
                "importflow.records",
                {
                    "view": args.view,
                    "records": [
                        {**serialize_record(record), "timeline_fraction": timeline_fraction(record.days_until_need)}
                        for record in records
                    ],
                    "counts": table_counts(records),
                },
                build_run_summary(
                    command="list",
                    input_path=Path(args.input),
                    metrics={"matched": len(records), "filtered": query.is_active},
                    warnings=session.warnings,
                ),
            )
            maybe_emit_json_stdout(payload, True)
        else:
            print(render_records_text(view_title(args.view), records), end="")
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def run_transition(args: argparse.Namespace) -> int:
    try:
        session, _ = open_session(args)
        before = session.find(args.identity)
        if before is None:
            raise CliError(f"No record with identity {args.identity!r}", EXIT_COMMAND_ERROR)
        apply = {
            "ship": session.mark_shipped,
            "unship": session.unmark_shipped,
            "exclude": session.exclude,
            "restore": session.restore,
        }[args.command]
        after = apply(args.identity)
        changed = after != before
        payload = build_payload(
            "importflow.transition",
            {
                "action": args.command,
                "changed": changed,
                "record": serialize_record(after),
            },
            build_run_summary(
                command=args.command,
                input_path=Path(args.input),
                status="ok" if changed else "unchanged",
                warnings=session.warnings,
            ),
        )
        if args.json:
            maybe_emit_json_stdout(payload, True)
        elif changed:
            emit_human(f"{args.command}: {after.identity} -> {after.status.value}{' (excluded)' if after.excluded else ''}", quiet=args.quiet)
        else:
            emit_human(f"{args.command}: {after.identity} unchanged ({after.status.value})", quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_backend_exception(exc)


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "summary":
            return run_summary(args)
        if args.command == "list":
            return run_list(args)
        if args.command in TRANSITION_COMMANDS:
            return run_transition(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
