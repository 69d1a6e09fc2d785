"""Retention sweeper: deletes old ``indexed`` job rows on a fixed interval.

``failed`` jobs and DocumentIndexState rows are never touched. A failed
sweep is logged and left for the next scheduled run.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from collections.abc import Callable

from searchhub.config import RetentionCfg
from searchhub.db.models import to_iso
from searchhub.db.repository import Repository
from searchhub.log import kv

logger = logging.getLogger(__name__)

_DAY = 86_400.0


class RetentionSweeper:
    def __init__(
        self,
        repo: Repository,
        config: RetentionCfg | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._repo = repo
        self._config = config or RetentionCfg()
        self._clock = clock

    @property
    def interval_seconds(self) -> float:
        return self._config.interval_hours * 3600.0

    def cutoff(self) -> str:
        """ISO timestamp before which completed jobs are deleted."""
        return to_iso(self._clock() - self._config.indexed_job_days * _DAY)

    def sweep(self) -> int:
        """Run one retention pass. Returns the number of job rows deleted."""
        cutoff = self.cutoff()
        try:
            deleted = self._repo.delete_indexed_jobs_before(cutoff)
        except sqlite3.Error as exc:
            logger.error("cleanup.failed %s", kv(cutoff=cutoff, error=exc))
            raise
        logger.info("cleanup.completed %s", kv(deleted=deleted, cutoff=cutoff))
        return deleted

    def run(self, stop: threading.Event) -> None:
        """Sweep now, then every ``interval_hours`` until *stop* is set."""
        while not stop.is_set():
            try:
                self.sweep()
            except sqlite3.Error:
                pass  # logged in sweep(); next run retries
            stop.wait(self.interval_seconds)
