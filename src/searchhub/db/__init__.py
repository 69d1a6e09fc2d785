"""searchhub database layer."""

from searchhub.db.connection import Database
from searchhub.db.migrations import MIGRATIONS, run_migrations
from searchhub.db.repository import Repository
from searchhub.db.schema import initialize

__all__ = [
    "Database",
    "Repository",
    "initialize",
    "run_migrations",
    "MIGRATIONS",
]
