"""Helpers shared by the CLI commands: config loading and database opening."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import typer
from rich.console import Console

from searchhub.cli.errors import err_config, err_no_api_key, err_no_db
from searchhub.config import ConfigError, SearchHubConfig, load_config
from searchhub.db.connection import Database
from searchhub.db.schema import initialize
from searchhub.log import configure_logging
from searchhub.providers.llm_client import validate_api_key

console = Console()


def load_cli_config(db: Path | None = None) -> SearchHubConfig:
    """Load config, apply the ``--db`` flag and install the log handler."""
    try:
        cfg = load_config()
    except ConfigError as exc:
        console.print(err_config(str(exc)))
        raise typer.Exit(1)
    if db is not None:
        cfg.database.path = str(db)
    configure_logging(cfg.logging.level)
    return cfg


def database_for(cfg: SearchHubConfig, must_exist: bool = True) -> Database:
    path = Path(cfg.database.path)
    if must_exist and not path.exists():
        console.print(err_no_db(str(path)))
        raise typer.Exit(1)
    return Database(path)


def open_db(cfg: SearchHubConfig) -> sqlite3.Connection:
    conn = database_for(cfg).connect()
    initialize(conn)
    return conn


def require_api_keys(*models: str) -> None:
    for model in models:
        try:
            validate_api_key(model)
        except EnvironmentError as exc:
            console.print(err_no_api_key(str(exc)))
            raise typer.Exit(1)
