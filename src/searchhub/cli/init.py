"""searchhub init: create the database and apply the schema."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from searchhub.cli.common import database_for, load_cli_config
from searchhub.db.schema import CURRENT_VERSION, initialize

console = Console()


def init_cmd(
    db: Annotated[
        Path | None,
        typer.Option("--db", help="Path to the database (default: .searchhub.db)."),
    ] = None,
) -> None:
    """Create the searchhub database (idempotent)."""
    cfg = load_cli_config(db)
    database = database_for(cfg, must_exist=False)
    existed = database.db_path.exists()
    with database as conn:
        initialize(conn)
    verb = "Up to date" if existed else "Created"
    console.print(f"  [green]✓[/] {verb}: {database.db_path} (schema v{CURRENT_VERSION})")
    console.print("\nNext: searchhub documents add --tenant <tenant> --id <doc> --file <path>")
