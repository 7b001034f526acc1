#!/usr/bin/env python3
"""
Audit trail CLI

Main entrypoint for the auditchain command-line tool.
"""

import sys

import typer
from rich.console import Console
from rich.table import Table

from auditchain.config import Settings
from auditchain.core.event_types import TAXONOMY_VERSION, EventType
from auditchain.logging_config import setup_logging
from auditchain.metrics import start_metrics_server

from .commands import log
from .commands.report import report_command
from .commands.verify import verify_command

app = typer.Typer(
    name="auditchain",
    help="Tamper-evident audit trail CLI",
    add_completion=False,
)

console = Console()

# Add command groups
app.add_typer(log.app, name="log", help="Audit log operations")

# Add standalone commands
app.command(name="verify")(verify_command)
app.command(name="report")(report_command)


@app.callback()
def _configure():
    settings = Settings.from_env()
    # Logs go to stderr so --json output stays parseable
    setup_logging(level=settings.log_level, fmt=settings.log_format, stream=sys.stderr)
    start_metrics_server(settings.metrics_enabled, settings.metrics_port)


@app.command(name="event-types")
def event_types():
    """List the event taxonomy."""
    table = Table(title=f"Event Types (taxonomy v{TAXONOMY_VERSION})")
    table.add_column("Event Type", style="green")
    table.add_column("Category", style="yellow")
    table.add_column("Label")
    for t in EventType:
        table.add_row(t.value, t.category.value, t.label)
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from auditchain import __version__

    table = Table(show_header=False, box=None)
    table.add_row("[bold]auditchain[/bold]", f"v{__version__}")
    table.add_row("Event taxonomy", f"v{TAXONOMY_VERSION}")
    console.print(table)


def main():
    """Main entrypoint."""
    app()


if __name__ == "__main__":
    main()
