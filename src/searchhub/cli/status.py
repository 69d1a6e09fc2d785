"""searchhub status: indexing health for one tenant."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from searchhub.cli.common import load_cli_config, open_db
from searchhub.db.repository import Repository
from searchhub.status import IndexingStatusReporter, IndexingStatusSnapshot

console = Console()


def status_cmd(
    tenant: Annotated[str, typer.Option("--tenant", "-t", help="Tenant id.")],
    include_recent: Annotated[
        bool,
        typer.Option("--include-recent", help="List recently indexed documents."),
    ] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print the snapshot as JSON.")] = False,
    db: Annotated[Path | None, typer.Option("--db", help="Path to the database.")] = None,
) -> None:
    """Show queue depth, in-flight and failed jobs for a tenant."""
    cfg = load_cli_config(db)
    conn = open_db(cfg)
    try:
        snapshot = IndexingStatusReporter(Repository(conn), cfg.retention).snapshot(
            tenant, include_recent=include_recent
        )
    finally:
        conn.close()

    if as_json:
        typer.echo(json.dumps(snapshot.to_dict(), indent=2))
        return
    _show_overview(snapshot)
    _show_jobs("Failed jobs", snapshot.failed_jobs, "red")
    _show_jobs("Stuck jobs", snapshot.stuck_jobs, "yellow")
    if snapshot.recently_indexed is not None:
        _show_recent(snapshot)


# ---------------------------------------------------------------------------
# Panel renderers
# ---------------------------------------------------------------------------


def _show_overview(snapshot: IndexingStatusSnapshot) -> None:
    coverage = (
        f"{snapshot.indexed_documents}/{snapshot.total_documents}"
        if snapshot.total_documents
        else "0"
    )
    failed_style = "red" if snapshot.failed_count else "green"
    lines = [
        f"  Queue depth:   {snapshot.queue_depth}",
        f"  In flight:     {snapshot.in_flight}",
        f"  Failed:        [{failed_style}]{snapshot.failed_count}[/]",
        f"  Indexed docs:  {coverage}",
    ]
    console.print(
        Panel("\n".join(lines), title=f"[bold]Indexing — {snapshot.tenant_id}[/]", expand=False)
    )


def _show_jobs(title: str, jobs: list, colour: str) -> None:
    if not jobs:
        return
    table = Table(title=title, show_header=True, header_style=f"bold {colour}")
    table.add_column("Job")
    table.add_column("Document", style="bold")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Last error", overflow="fold")
    for job in jobs:
        table.add_row(job.id[:12], job.document_id, job.status.value, str(job.attempts), job.last_error or "")
    console.print(table)


def _show_recent(snapshot: IndexingStatusSnapshot) -> None:
    table = Table(title="Recently indexed", show_header=True, header_style="bold")
    table.add_column("Document", style="bold")
    table.add_column("Indexed at")
    table.add_column("Job")
    for state in snapshot.recently_indexed or []:
        table.add_row(state.document_id, state.indexed_at, state.source_job_id[:12])
    console.print(table)
