"""
Shared CLI helpers: store selection and entry rendering.
"""

import json
from dataclasses import replace
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from auditchain.config import Settings, build_store
from auditchain.core.entry import AuditLogEntry
from auditchain.log.store import AuditStore

console = Console()

STORE_TYPE_OPTION = typer.Option(None, "--store", help="Store type: memory, file, dynamodb")
STORE_PATH_OPTION = typer.Option(None, "--log", "-l", help="Path to JSONL audit log (file store)")
JSON_OPTION = typer.Option(False, "--json", help="Output as JSON")


def load_settings(store_type: Optional[str], store_path: Optional[str]) -> Settings:
    settings = Settings.from_env()
    if store_type:
        settings = replace(settings, store_type=store_type.lower())
    if store_path:
        settings = replace(settings, store_path=store_path)
    return settings


def open_store(settings: Settings) -> AuditStore:
    return build_store(settings)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def fail(message: str, json_output: bool, code: int = 2) -> None:
    if json_output:
        print(json.dumps({"error": message}))
    else:
        console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code)


def entries_table(entries: List[AuditLogEntry], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Timestamp", style="cyan")
    table.add_column("Principal", style="yellow")
    table.add_column("Event Type", style="green")
    table.add_column("Action")
    table.add_column("Resource")
    table.add_column("Hash (prefix)", style="dim")
    for e in entries:
        resource = f"{e.resource_type or '-'}:{e.resource_id or '-'}"
        table.add_row(e.timestamp, e.principal_id, e.event_type, e.action, resource, e.hash[:16])
    return table


def entry_dicts(entries: List[AuditLogEntry]) -> List[Dict[str, Any]]:
    return [e.to_dict() for e in entries]
