"""Fixtures for CLI tests: isolated cwd, global config and environment."""

from __future__ import annotations

import pytest

from searchhub.db.connection import Database
from searchhub.db.schema import initialize


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Run commands in tmp_path with no global config and a fake provider key."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("searchhub.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in ("SEARCHHUB_DB", "SEARCHHUB_EMBEDDING_MODEL", "SEARCHHUB_RERANK_MODEL", "SEARCHHUB_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("VOYAGE_API_KEY", "pa-test")
    return tmp_path


@pytest.fixture
def cli_db(cli_env):
    """Initialised database at the default path inside cli_env."""
    path = cli_env / ".searchhub.db"
    conn = Database(path).connect()
    initialize(conn)
    conn.close()
    return path
