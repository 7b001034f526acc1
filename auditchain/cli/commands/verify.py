"""
Chain verification command.
"""

from typing import List, Optional

import typer
from rich.table import Table

from auditchain.core.errors import AuditError
from auditchain.query.engine import QueryEngine
from auditchain.verify.chain import Broken, ChainVerifier, Ok, Tampered

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


def verify_command(
    principals: List[str] = typer.Argument(..., help="Principal ids whose chains to verify"),
    store_type: Optional[str] = STORE_TYPE_OPTION,
    store_path: Optional[str] = STORE_PATH_OPTION,
    json_output: bool = JSON_OPTION,
):
    """
    Verify per-principal hash chains.

    Exit code 0 when every chain is intact, 1 on tampering or a broken link,
    2 on error.

    Examples:
        auditchain verify user-1 user-2
        auditchain verify system --json
    """
    settings = load_settings(store_type, store_path)
    try:
        engine = QueryEngine(open_store(settings), max_limit=settings.max_limit)
        results = ChainVerifier(engine).verify_many(principals)
    except AuditError as e:
        fail(str(e), json_output)

    all_valid = all(r.valid for r in results.values())

    if json_output:
        print_json({"valid": all_valid, "results": [r.to_dict() for r in results.values()]})
    else:
        table = Table(title="Chain Verification")
        table.add_column("Principal", style="yellow")
        table.add_column("Result")
        table.add_column("Detail")
        for pid, result in results.items():
            if isinstance(result, Ok):
                table.add_row(pid, "[green]OK[/green]", f"{result.count} entries")
            elif isinstance(result, Tampered):
                table.add_row(
                    pid,
                    "[red]TAMPERED[/red]",
                    f"entry {result.at_entry_id}: stored {result.actual_hash[:16]}, "
                    f"recomputed {result.expected_hash[:16]}",
                )
            elif isinstance(result, Broken):
                table.add_row(
                    pid,
                    "[red]BROKEN[/red]",
                    f"entry {result.at_entry_id}: links to {result.actual_previous_hash[:16]}, "
                    f"expected {result.expected_previous_hash[:16]}",
                )
        console.print(table)

    raise typer.Exit(0 if all_valid else 1)
