"""
Console rendering for musesync, built on Rich.

All human-facing tables and summaries go through the shared themed console;
progress messages go through ``logging`` with a RichHandler on the same
console so both interleave cleanly.
"""

from __future__ import annotations

import logging
import typing as t

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from .models import AssignmentPlan, Reconciliation, SyncRecord, VolumeCapacity, VolumeReport, format_bytes, volume_name
from .planner import distribution

_THEME = Theme(
    {
        "ui.info": "cyan",
        "ui.success": "green bold",
        "ui.warn": "yellow bold",
        "ui.error": "red bold",
        "ui.header": "bold blue",
        "ui.dim": "dim",
        "ui.add": "green",
        "ui.remove": "red",
    }
)

console = Console(theme=_THEME, highlight=False)

ADD_LISTING_LIMIT = 15


def setup_logging(verbose: bool = False) -> None:
    """Route the package's loggers to the shared console."""
    handler = RichHandler(console=console, show_path=False, show_time=False, markup=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def show_distribution(plan: AssignmentPlan, prefix: str) -> None:
    table = Table(title="Drive allocation", title_style="ui.header")
    table.add_column("Drive", style="cyan")
    table.add_column("Artists", justify="right")
    table.add_column("Used", justify="right")
    for row in distribution(plan, prefix):
        table.add_row(row.volume_name, str(row.item_count), format_bytes(row.used_bytes))
    console.print(table)
    console.print(
        f"[ui.dim]{plan.item_count} artists, {plan.volume_count} drives, "
        f"{format_bytes(plan.usable_capacity_bytes)} usable per drive[/]"
    )


def show_diff(
    name: str,
    ordinal: int,
    volume_count: int,
    cap: VolumeCapacity,
    diff: Reconciliation,
) -> None:
    body = (
        f"Free: {format_bytes(cap.available_bytes)} of {format_bytes(cap.total_bytes)} total\n"
        f"Keep   {len(diff.keep)} artists\n"
        f"Add    {len(diff.add)} artists\n"
        f"Remove {len(diff.remove)} artists"
    )
    console.print(Panel(body, title=f"{escape(name)}  (drive #{ordinal} of {volume_count})", expand=False))

    if diff.remove:
        console.print("To remove:")
        for n in diff.remove:
            console.print(f"  [ui.remove]- {escape(n)}[/]")
    if diff.add:
        console.print("To add:")
        for entry in diff.add[:ADD_LISTING_LIMIT]:
            console.print(f"  [ui.add]+ {escape(entry.name)}[/]  [ui.dim]{format_bytes(entry.size_bytes)}[/]")
        if len(diff.add) > ADD_LISTING_LIMIT:
            console.print(f"  ... and {len(diff.add) - ADD_LISTING_LIMIT} more")


def show_report(report: VolumeReport) -> None:
    if report.already_in_sync:
        console.print(f"[ui.success]{escape(report.volume_name)}: already in sync, nothing to do.[/]")
        return
    console.print(
        f"[ui.success]Done: {escape(report.volume_name)}[/]  "
        f"removed {report.removed}, copied {report.copied}, "
        f"skipped {report.skipped}, failed {report.failed}"
    )
    if report.problems:
        table = Table(title=f"{escape(report.volume_name)}: needs attention", title_style="ui.warn")
        table.add_column("Artist")
        table.add_column("Problem", style="yellow")
        table.add_column("Detail", style="dim")
        for o in report.problems:
            table.add_row(escape(o.name), o.status.value, escape(o.detail))
        console.print(table)


def show_sync_status(records: t.Mapping[int, SyncRecord], volume_count: int, prefix: str) -> None:
    table = Table(title="Sync status", title_style="ui.header")
    table.add_column("Drive", style="cyan")
    table.add_column("Status")
    table.add_column("Last synced")
    table.add_column("Artists", justify="right")
    last = max([volume_count, *records.keys()], default=0)
    for o in range(1, last + 1):
        rec = records.get(o)
        if rec:
            table.add_row(volume_name(prefix, o), "[ui.success]synced[/]", f"{rec.synced_at:%Y-%m-%d %H:%M:%S}", str(rec.item_count))
        else:
            table.add_row(volume_name(prefix, o), "[ui.dim]not yet synced[/]", "", "")
    console.print(table)


def show_resume(hint: str) -> None:
    console.print("[ui.info]To resume:[/]")
    console.print(f"  {hint}", markup=False)


def success(message: str) -> None:
    console.print(message, style="ui.success", markup=False)


def warn(message: str) -> None:
    console.print(message, style="ui.warn", markup=False)


def error(message: str) -> None:
    console.print(message, style="ui.error", markup=False)
