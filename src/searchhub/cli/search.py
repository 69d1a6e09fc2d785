"""searchhub search: ranked semantic search within one tenant."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from searchhub.cli.common import load_cli_config, open_db, require_api_keys
from searchhub.cli.errors import err_search_failed, err_search_unavailable
from searchhub.db.repository import Repository
from searchhub.errors import SearchFailed, SearchUnavailable
from searchhub.providers.embedding import EmbeddingClient
from searchhub.providers.rerank import RerankClient
from searchhub.search.breaker import CircuitBreaker
from searchhub.search.engine import SearchEngine, SemanticQuery

console = Console()


def search_cmd(
    query: Annotated[str, typer.Argument(help="Query text.")],
    tenant: Annotated[str, typer.Option("--tenant", "-t", help="Tenant id.")],
    k: Annotated[int | None, typer.Option("-k", min=1, help="Results to return.")] = None,
    recall_k: Annotated[
        int | None,
        typer.Option("--recall-k", min=1, help="Candidates recalled before reranking."),
    ] = None,
    db: Annotated[Path | None, typer.Option("--db", help="Path to the database.")] = None,
) -> None:
    """Embed QUERY, recall nearest documents, rerank, print the top results."""
    cfg = load_cli_config(db)
    require_api_keys(cfg.embedding.model, cfg.rerank.model)

    semantic = SemanticQuery(
        tenant_id=tenant,
        q=query,
        k=k if k is not None else cfg.search.k,
        recall_k=recall_k if recall_k is not None else cfg.search.recall_k,
    )
    if semantic.recall_k < semantic.k:
        console.print(f"[dim]k capped at recall_k={semantic.recall_k}[/]")

    conn = open_db(cfg)
    try:
        engine = SearchEngine(
            Repository(conn),
            EmbeddingClient(cfg.embedding),
            RerankClient(cfg.rerank),
            CircuitBreaker.from_config(cfg.search),
        )
        hits = engine.search(semantic)
    except SearchUnavailable:
        console.print(err_search_unavailable())
        raise typer.Exit(1)
    except SearchFailed as exc:
        console.print(err_search_failed(str(exc.__cause__ or exc)))
        raise typer.Exit(1)
    except ValueError as exc:
        console.print(f"[red]Error:[/] {exc}")
        raise typer.Exit(1)
    finally:
        conn.close()

    if not hits:
        console.print(f"[yellow]No results[/] for tenant '{tenant}'.")
        return

    table = Table(title=f"Results for “{query}”", show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Document", style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Cosine", justify="right")
    table.add_column("Snippet", overflow="ellipsis", max_width=60, no_wrap=True)
    for rank, hit in enumerate(hits, 1):
        table.add_row(
            str(rank),
            hit.document_id,
            f"{hit.score:.4f}",
            f"{hit.similarity:.4f}",
            hit.snippet.replace("\n", " "),
        )
    console.print(table)
