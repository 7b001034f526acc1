"""
Summary report command.
"""

from typing import Optional

import typer
from rich.table import Table

from auditchain.core.errors import AuditError
from auditchain.query.engine import AuditQuery, QueryEngine
from auditchain.report import build_summary

from ._common import (
    JSON_OPTION,
    STORE_PATH_OPTION,
    STORE_TYPE_OPTION,
    console,
    fail,
    load_settings,
    open_store,
    print_json,
)


def report_command(
    since: Optional[str] = typer.Option(None, "--since", help="Start time (ISO-8601, inclusive)"),
    until: Optional[str] = typer.Option(None, "--until", help="End time (ISO-8601, inclusive)"),
    top: int = typer.Option(10, "--top", help="Number of principals to list"),
    store_type: Optional[str] = STORE_TYPE_OPTION,
    store_path: Optional[str] = STORE_PATH_OPTION,
    json_output: bool = JSON_OPTION,
):
    """
    Summarize audit activity: event types, categories, principals, days.

    Examples:
        auditchain report --since 2024-01-01T00:00:00Z --until 2024-01-31T23:59:59Z
    """
    settings = load_settings(store_type, store_path)
    try:
        engine = QueryEngine(open_store(settings), max_limit=settings.max_limit)
        entries = engine.iter_all(AuditQuery(start_time=since, end_time=until))
        summary = build_summary(entries, start=since, end=until, top_n=top)
    except AuditError as e:
        fail(str(e), json_output)

    if json_output:
        print_json(summary.to_dict())
        return

    console.print(f"[bold]Total events:[/bold] {summary.total_events}")
    console.print(f"[bold]Unique principals:[/bold] {summary.unique_principals}")

    types = Table(title="Events by Type")
    types.add_column("Event", style="green")
    types.add_column("Count", justify="right")
    types.add_column("Share", justify="right")
    for stat in summary.events_by_type:
        types.add_row(stat.label, str(stat.count), f"{stat.percentage}%")
    console.print(types)

    principals = Table(title="Top Principals")
    principals.add_column("Principal", style="yellow")
    principals.add_column("Email")
    principals.add_column("Count", justify="right")
    for stat in summary.top_principals:
        principals.add_row(stat.principal_id, stat.principal_email or "-", str(stat.count))
    console.print(principals)

    days = Table(title="Daily Activity")
    days.add_column("Day", style="cyan")
    days.add_column("Count", justify="right")
    for stat in summary.daily_activity:
        days.add_row(stat.day, str(stat.count))
    console.print(days)
