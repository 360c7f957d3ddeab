"""CLI entry point for filtered views, duplicates, CSV, and bulk operations.

Usage:
    python -m crmview list investors --status Active --sort value --desc
    python -m crmview board --category customerTasks
    python -m crmview analytics customers --overdue
    python -m crmview duplicates contacts [--transitive] [--e164]
    python -m crmview export partners [--output partners.csv | --save]
    python -m crmview template contacts
    python -m crmview import contacts people.csv --into investors
    python -m crmview bulk-delete tasks --id ID [--id ID ...]
    python -m crmview bulk-tag vip --scope investors --all --search acme
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from . import config
from .bulk import (
    BulkCoordinator,
    BulkOp,
    bulk_delete_contacts,
    bulk_delete_items,
    bulk_export,
    bulk_tag_contacts,
)
from .csv_io import (
    export_filename,
    generate_template,
    get_schema,
    import_rows,
    parse_csv,
    processor_for,
)
from .display import (
    display_analytics,
    display_board,
    display_bulk_report,
    display_duplicate_groups,
    display_import_result,
    display_records,
)
from .duplicates import detect_duplicates
from .filters import CountFilter, FilterState, LinkStatus, today_string
from .models import ACCOUNT_COLLECTIONS, TASK_STATUSES, Priority, Record
from .selection import SelectionState
from .sorting import SortKey, SortOrder, SortState
from .store import JsonSnapshotStore
from .view import derive_view

console = Console()

_TARGETS = ("accounts", *ACCOUNT_COLLECTIONS, "contacts", "tasks")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _open_store(args: argparse.Namespace) -> JsonSnapshotStore:
    path = Path(args.data) if args.data else config.SNAPSHOT_PATH
    if not path.exists():
        raise FileNotFoundError(f"Snapshot not found: {path}")
    return JsonSnapshotStore(path)


def _load_records(store: JsonSnapshotStore, target: str, account_scope: str | None) -> list[Record]:
    if target == "tasks":
        return list(store.tasks())
    if target == "contacts":
        return list(store.contacts(account_scope))
    if target == "accounts":
        return list(store.accounts())
    return list(store.accounts(target))


def _filter_state(args: argparse.Namespace) -> FilterState:
    return FilterState(
        search=args.search or "",
        selected_categories=set(args.category or []),
        selected_statuses=set(args.status or []),
        selected_priorities={Priority.parse(p) for p in args.priority or []},
        selected_tags=set(args.tag or []),
        only_mine=bool(args.user),
        current_user_id=args.user,
        high_priority_only=args.high_priority,
        overdue_only=args.overdue,
        contact_count=CountFilter(args.contacts),
        note_count=CountFilter(args.notes),
        meeting_count=CountFilter(args.meetings),
        link_status=LinkStatus(args.link),
        title=args.title or "",
    )


def _sort_state(args: argparse.Namespace) -> SortState | None:
    if not args.sort:
        return None
    order = SortOrder.DESC if args.desc else SortOrder.ASC
    return SortState(SortKey.parse(args.sort), order)


def _view(args: argparse.Namespace, store: JsonSnapshotStore):
    records = _load_records(store, args.target, getattr(args, "scope", None))
    today = args.today or today_string()
    view = derive_view(
        records,
        _filter_state(args),
        _sort_state(args),
        today=today,
        accounts=store.accounts(),
    )
    return records, view, today


def _write_or_print(text: str, output: str | None) -> None:
    if output:
        Path(output).write_text(text, encoding="utf-8")
        console.print(f"[green]Wrote {output}[/green]")
    else:
        sys.stdout.write(text + "\n")


def _contact_collection(args: argparse.Namespace) -> str:
    if args.scope:
        return args.scope
    raise ValueError("Contact operations need --scope investors|customers|partners")


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

def cmd_list(args: argparse.Namespace) -> None:
    """Show the filtered, sorted view."""
    store = _open_store(args)
    _, view, today = _view(args, store)
    display_records(
        view.records, title=args.target.title(), today=today,
        original_count=view.original_count,
    )


def cmd_board(args: argparse.Namespace) -> None:
    """Show tasks as kanban columns."""
    store = _open_store(args)
    args.target = "tasks"
    _, view, _ = _view(args, store)
    display_board(view.groups)


def cmd_analytics(args: argparse.Namespace) -> None:
    store = _open_store(args)
    _, view, _ = _view(args, store)
    display_analytics(view.analytics)


def cmd_duplicates(args: argparse.Namespace) -> None:
    """Scan the full (unfiltered) collection for likely duplicates."""
    store = _open_store(args)
    records = _load_records(store, args.target, args.scope)
    groups = detect_duplicates(records, transitive=args.transitive, e164=args.e164)
    display_duplicate_groups(groups)


def cmd_export(args: argparse.Namespace) -> None:
    store = _open_store(args)
    _, view, today = _view(args, store)
    text = bulk_export(view.records, accounts=store.accounts(), include_bom=not args.no_bom)
    output = args.output
    if args.save and not output:
        output = export_filename(args.target, today)
    _write_or_print(text, output)


def cmd_template(args: argparse.Namespace) -> None:
    _write_or_print(generate_template(get_schema(args.entity)), args.output)


def cmd_import(args: argparse.Namespace) -> None:
    """Import rows from a CSV file through the snapshot store."""
    store = _open_store(args)
    schema = get_schema(args.entity)
    text = Path(args.file).read_text(encoding="utf-8")
    processor = processor_for(schema, store, store.accounts(args.into), args.into)
    result = import_rows(parse_csv(text), schema, processor)
    display_import_result(result)


def _select(args: argparse.Namespace, view_records: list[Record]) -> SelectionState:
    selection = SelectionState()
    selection.enable_selection_mode()
    if args.all:
        selection.select_all(view_records)
    for record_id in args.id or []:
        selection.toggle(record_id)
    return selection


def cmd_bulk_delete(args: argparse.Namespace) -> None:
    store = _open_store(args)
    records, view, _ = _view(args, store)
    selection = _select(args, view.records)
    coordinator = BulkCoordinator(selection)

    if args.target == "contacts":
        collection = _contact_collection(args)
        coordinator.register(BulkOp.DELETE, lambda selected: bulk_delete_contacts(
            store, collection, selected, store.accounts(collection),
        ))
    elif args.target == "accounts":
        raise ValueError("Pick one account collection for bulk delete")
    else:
        coordinator.register(BulkOp.DELETE, lambda selected: bulk_delete_items(
            store, args.target, selected,
        ))

    report = coordinator.dispatch(BulkOp.DELETE, records)
    display_bulk_report(report, "Delete")


def cmd_bulk_tag(args: argparse.Namespace) -> None:
    store = _open_store(args)
    args.target = "contacts"
    records, view, _ = _view(args, store)
    selection = _select(args, view.records)
    collection = _contact_collection(args)
    coordinator = BulkCoordinator(selection, {
        BulkOp.TAG: lambda selected: bulk_tag_contacts(
            store, collection, selected, store.accounts(collection), args.tag_value,
        ),
    })
    report = coordinator.dispatch(BulkOp.TAG, records)
    display_bulk_report(report, f"Tag '{args.tag_value}'")


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def _add_view_args(p: argparse.ArgumentParser, *, target: bool = True) -> None:
    if target:
        p.add_argument("target", choices=_TARGETS, help="Collection to view")
    p.add_argument("--scope", choices=ACCOUNT_COLLECTIONS,
                   help="Account collection that owns the contacts")
    p.add_argument("--search", help="Free-text search")
    p.add_argument("--category", action="append", help="Task category (repeatable)")
    p.add_argument("--status", action="append", help="Status (repeatable)")
    p.add_argument("--priority", action="append", help="Priority (repeatable)")
    p.add_argument("--tag", dest="tag", action="append", help="Tag (repeatable)")
    p.add_argument("--user", help="Only records assigned to this user id")
    p.add_argument("--high-priority", action="store_true", help="Only High priority")
    p.add_argument("--overdue", action="store_true", help="Only overdue records")
    p.add_argument("--contacts", choices=[c.value for c in CountFilter], default="any")
    p.add_argument("--notes", choices=[c.value for c in CountFilter], default="any")
    p.add_argument("--meetings", choices=[c.value for c in CountFilter], default="any")
    p.add_argument("--link", choices=[s.value for s in LinkStatus], default="all")
    p.add_argument("--title", help="Contact title contains")
    p.add_argument("--sort", help="company|name|priority|status|value|lastContact")
    p.add_argument("--desc", action="store_true", help="Sort descending")
    p.add_argument("--today", help="Override today's date (YYYY-MM-DD)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m crmview",
        description="Filter, sort, deduplicate, and bulk-edit a CRM snapshot",
    )
    parser.add_argument("--data", help=f"Snapshot file (default: {config.SNAPSHOT_PATH})")
    sub = parser.add_subparsers(dest="command", required=True)

    _add_view_args(sub.add_parser("list", help="List the filtered view"))

    bd = sub.add_parser("board", help=f"Tasks by status ({', '.join(TASK_STATUSES)})")
    _add_view_args(bd, target=False)

    _add_view_args(sub.add_parser("analytics", help="Summary figures for the view"))

    dp = sub.add_parser("duplicates", help="Find likely duplicate records")
    dp.add_argument("target", choices=_TARGETS)
    dp.add_argument("--scope", choices=ACCOUNT_COLLECTIONS)
    dp.add_argument("--transitive", action="store_true",
                    help="Merge chains of matches into one group")
    dp.add_argument("--e164", action="store_true",
                    help="Also match phones that parse to the same E.164 number")

    ex = sub.add_parser("export", help="Export the filtered view as CSV")
    _add_view_args(ex)
    ex.add_argument("--output", "-o", help="Write to file instead of stdout")
    ex.add_argument("--no-bom", action="store_true", help="Omit the UTF-8 BOM")
    ex.add_argument("--save", action="store_true",
                    help="Write to <target>_export_<date>.csv when no --output is given")

    tp = sub.add_parser("template", help="Print a CSV import template")
    tp.add_argument("entity", help="contacts|accounts|investors|customers|partners|tasks")
    tp.add_argument("--output", "-o")

    im = sub.add_parser("import", help="Import records from CSV")
    im.add_argument("entity", help="contacts|accounts|investors|customers|partners|tasks")
    im.add_argument("file", help="CSV file path")
    im.add_argument("--into", choices=ACCOUNT_COLLECTIONS, default="partners",
                    help="Account collection for contacts/accounts (default: partners)")

    bdel = sub.add_parser("bulk-delete", help="Delete selected records")
    _add_view_args(bdel)
    bdel.add_argument("--id", action="append", help="Toggle this id into the selection")
    bdel.add_argument("--all", action="store_true", help="Select the whole filtered view")

    btag = sub.add_parser("bulk-tag", help="Tag selected contacts")
    btag.add_argument("tag_value", metavar="tag", help="Tag to add")
    _add_view_args(btag, target=False)
    btag.add_argument("--id", action="append", help="Toggle this id into the selection")
    btag.add_argument("--all", action="store_true", help="Select the whole filtered view")

    return parser


def main(argv: list[str] | None = None) -> None:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )

    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "list": cmd_list,
        "board": cmd_board,
        "analytics": cmd_analytics,
        "duplicates": cmd_duplicates,
        "export": cmd_export,
        "template": cmd_template,
        "import": cmd_import,
        "bulk-delete": cmd_bulk_delete,
        "bulk-tag": cmd_bulk_tag,
    }

    try:
        commands[args.command](args)
    except (ValueError, KeyError, FileNotFoundError) as exc:
        console.print(f"\n[red]Error:[/red] {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
