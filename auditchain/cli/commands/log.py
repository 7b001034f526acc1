"""
Audit log commands: append, query
"""

import json
from typing import Optional

import typer

from auditchain.config import build_service
from auditchain.core.entry import ClientContext
from auditchain.core.errors import AuditError
from auditchain.query.engine import AuditQuery, QueryEngine

from ._common import (
    JSON_OPTION,
    STORE_PATH_OPTION,
    STORE_TYPE_OPTION,
    console,
    entries_table,
    entry_dicts,
    fail,
    load_settings,
    open_store,
    print_json,
)

app = typer.Typer()


@app.command()
def append(
    event_type: str = typer.Option(..., "--event-type", "-t", help="Event type (see event-types)"),
    action: str = typer.Option(..., "--action", "-a", help="Action verb"),
    principal: str = typer.Option("system", "--principal", "-p", help="Acting principal id"),
    email: Optional[str] = typer.Option(None, "--email", help="Principal email"),
    resource_type: Optional[str] = typer.Option(None, "--resource-type", help="Affected resource type"),
    resource_id: Optional[str] = typer.Option(None, "--resource-id", help="Affected resource id"),
    metadata: Optional[str] = typer.Option(None, "--metadata", "-m", help="Metadata as a JSON object"),
    ip_address: Optional[str] = typer.Option(None, "--ip", help="Client IP address"),
    store_type: Optional[str] = STORE_TYPE_OPTION,
    store_path: Optional[str] = STORE_PATH_OPTION,
    json_output: bool = JSON_OPTION,
):
    """
    Append one audit entry (synchronously).

    Examples:
        auditchain log append -t DOCUMENT_CREATE -a create -p user-1 --resource-id doc-9
        auditchain log append -t ADMIN_ACCESS -a read -m '{"section": "users"}' --json
    """
    meta = None
    if metadata:
        try:
            meta = json.loads(metadata)
        except ValueError:
            fail("--metadata is not valid JSON", json_output)

    settings = load_settings(store_type, store_path)
    try:
        service = build_service(settings, open_store(settings))
        entry = service.append(
            principal_id=principal,
            principal_email=email,
            event_type=event_type,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            metadata=meta,
            client_context=ClientContext(ip_address=ip_address) if ip_address else None,
        )
    except AuditError as e:
        fail(str(e), json_output)

    if json_output:
        print_json(entry.to_dict())
    else:
        console.print(f"[green]Appended[/green] {entry.event_type} for [yellow]{entry.principal_id}[/yellow]")
        console.print(f"  Id: {entry.id}")
        console.print(f"  Timestamp: {entry.timestamp}")
        console.print(f"  Hash: {entry.hash}")
        console.print(f"  Prev Hash: {entry.previous_hash}")


@app.command()
def query(
    principal: Optional[str] = typer.Option(None, "--principal", "-p", help="Filter by principal id"),
    event_type: Optional[str] = typer.Option(None, "--event-type", "-t", help="Filter by event type"),
    resource_id: Optional[str] = typer.Option(None, "--resource-id", "-r", help="Filter by resource id"),
    since: Optional[str] = typer.Option(None, "--since", help="Start time (ISO-8601, inclusive)"),
    until: Optional[str] = typer.Option(None, "--until", help="End time (ISO-8601, inclusive)"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Page size"),
    cursor: Optional[str] = typer.Option(None, "--cursor", help="Cursor from a previous page"),
    ascending: bool = typer.Option(False, "--asc", help="Oldest first"),
    store_type: Optional[str] = STORE_TYPE_OPTION,
    store_path: Optional[str] = STORE_PATH_OPTION,
    json_output: bool = JSON_OPTION,
):
    """
    Query audit entries (newest first by default).

    Examples:
        auditchain log query --principal user-1
        auditchain log query -t DOCUMENT_CREATE --since 2024-01-01T00:00:00Z --json
    """
    settings = load_settings(store_type, store_path)
    try:
        engine = QueryEngine(
            open_store(settings),
            default_limit=settings.default_limit,
            max_limit=settings.max_limit,
        )
        page = engine.query(
            AuditQuery(
                principal_id=principal,
                event_type=event_type,
                resource_id=resource_id,
                start_time=since,
                end_time=until,
            ),
            sort="asc" if ascending else "desc",
            limit=limit,
            cursor=cursor,
        )
    except AuditError as e:
        fail(str(e), json_output)

    if json_output:
        print_json({"items": entry_dicts(page.items), "count": len(page.items), "nextCursor": page.next_cursor})
        return

    if not page.items:
        console.print("[yellow]No entries match the filters[/yellow]")
        return
    console.print(entries_table(page.items, "Audit Log"))
    console.print(f"\n[bold]Entries:[/bold] {len(page.items)}")
    if page.next_cursor:
        console.print(f"[dim]Next page:[/dim] --cursor {page.next_cursor}")
