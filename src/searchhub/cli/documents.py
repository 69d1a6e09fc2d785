"""searchhub documents commands.

Commands:
  searchhub documents add      store a document and enqueue an index job
  searchhub documents reindex  enqueue a forced re-embed
  searchhub documents delete   remove a document, its index state and pending jobs
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from searchhub.cli.common import load_cli_config, open_db
from searchhub.cli.errors import err_document_not_found, err_queue_unavailable
from searchhub.db.repository import Repository
from searchhub.errors import DocumentNotFound, QueueUnavailable
from searchhub.indexing.producer import delete_document, request_reindex, submit_document
from searchhub.queue import JobQueue

console = Console()

documents_app = typer.Typer(
    name="documents",
    help="Add, reindex or delete tenant documents.",
    add_completion=False,
)

_Tenant = Annotated[str, typer.Option("--tenant", "-t", help="Tenant id.")]
_DocId = Annotated[str, typer.Option("--id", help="Document id within the tenant.")]
_Db = Annotated[Path | None, typer.Option("--db", help="Path to the database.")]


@documents_app.command("add")
def documents_add_cmd(
    tenant: _Tenant,
    document_id: _DocId,
    file: Annotated[
        Path | None,
        typer.Option("--file", "-f", exists=True, dir_okay=False, help="Read content from a file."),
    ] = None,
    text: Annotated[str | None, typer.Option("--text", help="Inline document content.")] = None,
    db: _Db = None,
) -> None:
    """Store a document and enqueue it for indexing."""
    if (file is None) == (text is None):
        console.print("[red]Error:[/] Pass exactly one of --file or --text.")
        raise typer.Exit(1)
    content = file.read_text(encoding="utf-8") if file is not None else text or ""

    cfg = load_cli_config(db)
    conn = open_db(cfg)
    try:
        queue = JobQueue(conn, lease_seconds=cfg.worker.lease_seconds)
        job_id = submit_document(Repository(conn), queue, tenant, document_id, content)
    except QueueUnavailable as exc:
        console.print(err_queue_unavailable(str(exc)))
        raise typer.Exit(1)
    finally:
        conn.close()
    console.print(f"  [green]✓[/] {tenant}/{document_id} queued (job {job_id})")


@documents_app.command("reindex")
def documents_reindex_cmd(tenant: _Tenant, document_id: _DocId, db: _Db = None) -> None:
    """Re-embed a document even if its content is unchanged."""
    cfg = load_cli_config(db)
    conn = open_db(cfg)
    try:
        job_id = request_reindex(Repository(conn), JobQueue(conn), tenant, document_id)
    except DocumentNotFound:
        console.print(err_document_not_found(tenant, document_id))
        raise typer.Exit(1)
    except QueueUnavailable as exc:
        console.print(err_queue_unavailable(str(exc)))
        raise typer.Exit(1)
    finally:
        conn.close()
    console.print(f"  [green]✓[/] {tenant}/{document_id} reindex queued (job {job_id})")


@documents_app.command("delete")
def documents_delete_cmd(tenant: _Tenant, document_id: _DocId, db: _Db = None) -> None:
    """Delete a document with its index state and pending jobs."""
    cfg = load_cli_config(db)
    conn = open_db(cfg)
    try:
        deleted = delete_document(Repository(conn), tenant, document_id)
    finally:
        conn.close()
    if not deleted:
        console.print(err_document_not_found(tenant, document_id))
        raise typer.Exit(1)
    console.print(f"  [green]✓[/] Deleted {tenant}/{document_id}")
