"""Logging configuration for git-pivotal."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(f"git_pivotal.{name}")


def setup_logging(level: str = "WARNING") -> None:
    """Configure logging for git-pivotal.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logger = logging.getLogger("git_pivotal")
    logger.setLevel(getattr(logging, level.upper()))

    # Re-running setup must not stack handlers
    logger.handlers.clear()

    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=False,
        show_path=False,
    )
    handler.setLevel(getattr(logging, level.upper()))
    logger.addHandler(handler)

    logger.propagate = False
