"""searchhub sweep: delete indexed job rows past the retention window."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from searchhub.cli.common import load_cli_config, open_db
from searchhub.db.repository import Repository
from searchhub.indexing.sweeper import RetentionSweeper

console = Console()


def sweep_cmd(
    loop: Annotated[
        bool,
        typer.Option("--loop", help="Keep running, sweeping every retention.interval_hours."),
    ] = False,
    db: Annotated[Path | None, typer.Option("--db", help="Path to the database.")] = None,
) -> None:
    """Run the retention sweeper once (or on its interval with --loop)."""
    cfg = load_cli_config(db)
    conn = open_db(cfg)
    try:
        sweeper = RetentionSweeper(Repository(conn), cfg.retention)
        if loop:
            stop = threading.Event()
            console.print(f"[bold]Sweeping every {cfg.retention.interval_hours:g}h[/]  [dim](Ctrl-C to stop)[/]")
            try:
                sweeper.run(stop)
            except KeyboardInterrupt:
                stop.set()
            return
        try:
            deleted = sweeper.sweep()
        except sqlite3.Error as exc:
            console.print(f"[red]Error:[/] Sweep failed: {exc}\n  It will be retried on the next run.")
            raise typer.Exit(1)
    finally:
        conn.close()
    console.print(f"  [green]✓[/] Deleted {deleted} indexed job(s) older than {cfg.retention.indexed_job_days:g} day(s)")
