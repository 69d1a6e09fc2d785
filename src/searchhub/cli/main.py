"""SearchHub CLI entry point."""

from __future__ import annotations

import importlib.metadata
from typing import Annotated

import typer

from searchhub.cli.documents import documents_app
from searchhub.cli.init import init_cmd
from searchhub.cli.search import search_cmd
from searchhub.cli.status import status_cmd
from searchhub.cli.sweep import sweep_cmd
from searchhub.cli.sync import sync_cmd
from searchhub.cli.worker import worker_cmd


def _installed_version() -> str:
    try:
        return importlib.metadata.version("searchhub")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"searchhub {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="searchhub",
    help=(
        "SearchHub — document indexing and semantic search.\n\n"
        "  searchhub worker  Embed queued documents into the index.\n"
        "  searchhub search  Recall + rerank within one tenant."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """SearchHub — document indexing and semantic search."""


app.command("init")(init_cmd)
app.command("sync")(sync_cmd)
app.command("worker")(worker_cmd)
app.command("search")(search_cmd)
app.command("status")(status_cmd)
app.command("sweep")(sweep_cmd)
app.add_typer(documents_app, name="documents")


@app.command("version")
def version_cmd() -> None:
    """Show the installed SearchHub version."""
    typer.echo(f"searchhub {_installed_version()}")


if __name__ == "__main__":
    app()
