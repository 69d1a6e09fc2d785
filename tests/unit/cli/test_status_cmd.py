"""Tests for searchhub status and sweep."""

from __future__ import annotations

import json

from typer.testing import CliRunner

from searchhub.cli.main import app

runner = CliRunner()


def test_status_no_db(cli_env):
    result = runner.invoke(app, ["status", "--tenant", "tenant_1"])
    assert result.exit_code == 1
    assert "searchhub init" in result.output


def test_status_panel(cli_db):
    runner.invoke(app, ["documents", "add", "--tenant", "tenant_1", "--id", "d", "--text", "x"])
    result = runner.invoke(app, ["status", "--tenant", "tenant_1"])
    assert result.exit_code == 0, result.output
    assert "Queue depth" in result.output


def test_status_json(cli_db):
    runner.invoke(app, ["documents", "add", "--tenant", "tenant_1", "--id", "d", "--text", "x"])
    result = runner.invoke(app, ["status", "--tenant", "tenant_1", "--json", "--include-recent"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["queueDepth"] == 1
    assert data["inFlight"] == 0
    assert data["recentlyIndexed"] == []


def test_sweep_once(cli_db):
    result = runner.invoke(app, ["sweep"])
    assert result.exit_code == 0, result.output
    assert "Deleted 0" in result.output
