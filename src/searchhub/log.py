"""Logging setup for the searchhub process surface.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed once by the CLI through configure_logging().
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_ROOT_LOGGER = "searchhub"


def configure_logging(level: str | int = "INFO", console: Console | None = None) -> logging.Logger:
    """Attach a RichHandler to the ``searchhub`` logger (idempotent).

    Args:
        level: Logging level name or number.
        console: Console to write to (defaults to stderr).

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(name)s %(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    return logger


def kv(**fields: object) -> str:
    """Render context fields as ``key=value`` pairs for log messages."""
    return " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)
