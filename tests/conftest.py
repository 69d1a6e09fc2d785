"""Shared pytest fixtures."""

from __future__ import annotations

import logging

import pytest

from searchhub.db.connection import Database
from searchhub.db.schema import initialize


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / ".searchhub.db"


@pytest.fixture
def tmp_db(db_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    db = Database(db_path)
    conn = db.connect()
    initialize(conn)
    yield conn
    conn.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_searchhub_logger():
    """Undo configure_logging() from CLI tests so caplog sees package records."""
    yield
    logger = logging.getLogger("searchhub")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
