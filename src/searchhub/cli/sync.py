"""searchhub sync: enqueue documents that are missing from the index or stale."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from searchhub.cli.common import load_cli_config, open_db
from searchhub.cli.errors import err_queue_unavailable
from searchhub.db.repository import Repository
from searchhub.errors import QueueUnavailable
from searchhub.indexing.producer import sync_stale_documents
from searchhub.queue import JobQueue

console = Console()


def sync_cmd(
    limit: Annotated[int, typer.Option("--limit", min=1, help="Maximum documents to queue.")] = 100,
    db: Annotated[Path | None, typer.Option("--db", help="Path to the database.")] = None,
) -> None:
    """Queue reindex jobs for stale documents."""
    cfg = load_cli_config(db)
    conn = open_db(cfg)
    try:
        queued, errors = sync_stale_documents(Repository(conn), JobQueue(conn), limit=limit)
    except QueueUnavailable as exc:
        console.print(err_queue_unavailable(str(exc)))
        raise typer.Exit(1)
    finally:
        conn.close()

    if queued == 0 and errors == 0:
        console.print("  [dim]Index is up to date.[/]")
        return
    console.print(f"  [green]✓[/] Queued {queued} document(s)")
    if errors:
        console.print(f"  [yellow]⚠[/]  {errors} document(s) could not be queued")
        raise typer.Exit(1)
