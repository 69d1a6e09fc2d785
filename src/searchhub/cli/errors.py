"""SearchHub rich error messages: what went wrong and the exact fix.

Usage:
    from searchhub.cli.errors import err_no_db
    console.print(err_no_db(".searchhub.db"))
    raise typer.Exit(1)
"""

from __future__ import annotations


def err_no_db(db_path: str = ".searchhub.db") -> str:
    return (
        f"[red]Error:[/] No database found at '{db_path}'.\n"
        "  Run:  searchhub init"
    )


def err_config(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid configuration: {message}\n"
        "  Fix searchhub.yaml or ~/.searchhub/config.yaml and retry."
    )


def err_no_api_key(message: str) -> str:
    """Missing provider key; *message* names the env var to set."""
    return f"[red]Error:[/] {message}"


def err_document_not_found(tenant_id: str, document_id: str) -> str:
    return (
        f"[red]Error:[/] Document '{document_id}' not found for tenant '{tenant_id}'.\n"
        f"  Add it first:  searchhub documents add --tenant {tenant_id} --id {document_id} --file <path>"
    )


def err_queue_unavailable(detail: str) -> str:
    return (
        f"[red]Error:[/] Job queue unavailable: {detail}\n"
        "  Check that the database is not locked by another process and retry."
    )


def err_search_unavailable() -> str:
    return (
        "[red]Error:[/] Semantic search is temporarily unavailable (provider circuit open).\n"
        "  Retry in a few seconds."
    )


def err_search_failed(detail: str) -> str:
    return (
        f"[red]Error:[/] Search failed: {detail}\n"
        "  Check provider status and your API key, then retry."
    )
