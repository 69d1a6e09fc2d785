"""searchhub worker: consume index jobs until interrupted."""

from __future__ import annotations

import threading
from collections import Counter
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from searchhub import metrics
from searchhub.cli.common import database_for, load_cli_config, open_db, require_api_keys
from searchhub.cli.errors import err_queue_unavailable
from searchhub.db.repository import Repository
from searchhub.documents import SqliteDocumentStore
from searchhub.errors import QueueUnavailable
from searchhub.indexing.worker import IndexingWorker, run_worker_pool
from searchhub.providers.embedding import EmbeddingClient
from searchhub.queue import JobQueue

console = Console()


def worker_cmd(
    concurrency: Annotated[
        int | None,
        typer.Option("--concurrency", "-c", min=1, help="Worker threads (default: worker.concurrency)."),
    ] = None,
    once: Annotated[
        bool,
        typer.Option("--once", help="Process every visible job, then exit."),
    ] = False,
    metrics_port: Annotated[
        int | None,
        typer.Option("--metrics-port", min=1, max=65535, help="Serve Prometheus metrics on this port."),
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Path to the database.")] = None,
) -> None:
    """Run indexing workers. Ctrl-C stops them after the current jobs."""
    cfg = load_cli_config(db)
    require_api_keys(cfg.embedding.model)
    embedder = EmbeddingClient(cfg.embedding)
    if metrics_port is not None:
        metrics.serve(metrics_port)
        console.print(f"  [dim]Metrics on http://127.0.0.1:{metrics_port}/metrics[/]")

    if once:
        conn = open_db(cfg)
        queue = JobQueue(conn, lease_seconds=cfg.worker.lease_seconds)
        try:
            repo = Repository(conn)
            worker = IndexingWorker(
                repo,
                queue,
                SqliteDocumentStore(repo),
                embedder,
                cfg.worker,
                snippet_chars=cfg.rerank.snippet_chars,
            )
            outcomes = worker.drain()
        except QueueUnavailable as exc:
            console.print(err_queue_unavailable(str(exc)))
            raise typer.Exit(1)
        finally:
            queue.close()
        tally = Counter(o.result for o in outcomes)
        summary = ", ".join(f"{n} {result}" for result, n in sorted(tally.items())) or "nothing to do"
        console.print(f"  [green]✓[/] Processed {len(outcomes)} job(s): {summary}")
        return

    database = database_for(cfg)
    count = concurrency or cfg.worker.concurrency
    stop = threading.Event()
    console.print(f"[bold]Starting {count} worker(s)[/] on {database.db_path}  [dim](Ctrl-C to stop)[/]")
    pool = threading.Thread(
        target=run_worker_pool,
        args=(database, cfg, stop),
        kwargs={"embedder": embedder, "concurrency": count},
        name="searchhub-pool",
    )
    pool.start()
    try:
        while pool.is_alive():
            pool.join(timeout=0.5)
    except KeyboardInterrupt:
        console.print("\n[dim]Stopping workers…[/]")
        stop.set()
        pool.join()
    console.print("  [green]✓[/] Workers stopped")
