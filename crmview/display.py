"""Rich terminal output for record lists, boards, and batch reports."""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.table import Table

from .bulk import BulkReport
from .csv_io import ImportResult
from .grouping import Analytics
from .models import Contact, CrmItem, Priority, Record, Task

console = Console()

_PRIORITY_COLORS = {
    Priority.HIGH: "red",
    Priority.MEDIUM: "yellow",
    Priority.LOW: "green",
}


def _priority_cell(record: Record) -> str:
    if not record.priority:
        return "[dim]-[/dim]"
    color = _PRIORITY_COLORS[record.priority]
    return f"[{color}]{record.priority.value}[/{color}]"


def _detail_cell(record: Record) -> str:
    if isinstance(record, CrmItem):
        return record.next_action or ""
    if isinstance(record, Contact):
        return record.email
    if isinstance(record, Task):
        return record.category
    return ""


def _date_cell(record: Record, overdue_before: str | None) -> str:
    action_date = record.action_date
    if not action_date:
        return ""
    if overdue_before and action_date < overdue_before:
        return f"[red]{action_date}[/red]"
    return action_date


def display_records(
    records: Sequence[Record],
    *,
    title: str = "Records",
    today: str | None = None,
    original_count: int | None = None,
) -> None:
    """Print one row per record; overdue dates are highlighted."""
    console.print()
    heading = f"{title} ({len(records)}"
    if original_count is not None and original_count != len(records):
        heading += f" of {original_count}"
    console.rule(f"[bold]{heading})[/bold]")

    if not records:
        console.print("[dim]  Nothing matches the current filters.[/dim]")
        return

    table = Table(show_lines=False)
    table.add_column("Name", style="bold")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Date")
    table.add_column("Detail", style="dim")
    table.add_column("Tags", style="cyan")
    table.add_column("ID", style="dim")

    for record in records:
        table.add_row(
            record.label,
            record.status,
            _priority_cell(record),
            _date_cell(record, today),
            _detail_cell(record),
            ", ".join(record.tags),
            record.id,
        )
    console.print(table)


def display_board(groups: dict[str, list[Record]]) -> None:
    """Print kanban columns side by side."""
    table = Table(title="Board")
    for status, items in groups.items():
        table.add_column(f"{status} ({len(items)})")
    depth = max((len(items) for items in groups.values()), default=0)
    for row in range(depth):
        table.add_row(*[
            items[row].label if row < len(items) else ""
            for items in groups.values()
        ])
    console.print(table)


def display_analytics(analytics: Analytics) -> None:
    stats = Table(show_header=False, box=None, padding=(0, 2))
    stats.add_column(style="bold")
    stats.add_column(justify="right")
    stats.add_row("Total:", str(analytics.total))
    stats.add_row("High priority:", f"[red]{analytics.high_priority_count}[/red]")
    stats.add_row("Overdue:", f"[yellow]{analytics.overdue_count}[/yellow]")
    stats.add_row("Total value:", f"${analytics.total_value:,.0f}")
    stats.add_row("With contacts:", str(analytics.with_contacts_count))
    stats.add_row("Avg contacts:", f"{analytics.avg_contacts_per_record:.1f}")
    console.print()
    console.rule("[bold]Analytics[/bold]")
    console.print(stats)


def display_duplicate_groups(groups: list[list[Record]]) -> None:
    console.print()
    console.rule(f"[bold]Possible duplicates ({len(groups)} groups)[/bold]")
    if not groups:
        console.print("[green]  No duplicates found.[/green]")
        return
    for number, group in enumerate(groups, 1):
        console.print(f"\n[bold]Group {number}[/bold]")
        for record in group:
            extra = f" <{record.email}>" if isinstance(record, Contact) and record.email else ""
            console.print(f"  - {record.label}{extra} [dim]({record.id})[/dim]")


def display_bulk_report(report: BulkReport, action: str) -> None:
    color = "green" if not report.failed else "yellow"
    line = f"[{color}]{action}: {report.success} succeeded, {report.failed} failed"
    if report.skipped:
        line += f", {report.skipped} skipped"
    console.print(line + f"[/{color}]")
    if report.cancelled:
        console.print("[yellow]  Batch was cancelled before completion.[/yellow]")
    for err in report.errors:
        console.print(f"  [red]{err.label or err.record_id}: {err.error}[/red]")


def display_import_result(result: ImportResult) -> None:
    color = "green" if not result.failed and not result.errors else "yellow"
    console.print(
        f"[{color}]Imported {result.success} rows, {result.failed} failed.[/{color}]"
    )
    for err in result.errors:
        console.print(f"  [red]Row {err.row}: {err.error}[/red]")
