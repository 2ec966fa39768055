"""
Structured logging configuration for apkforge.

Uses structlog for key-value logging: a colored console renderer when stderr
is a terminal, JSON lines otherwise (CI logs). Pipeline stages bind their
name, the package and the profile so every event of a build can be traced back
to the stage that emitted it.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from .config import Config


def setup_logging(config: Config | None = None, verbose: bool = False) -> None:
    """Configure structured logging for the application.

    Args:
        config: Optional configuration. If None, uses INFO level.
        verbose: Force DEBUG level regardless of the configured one.
    """
    log_level = "DEBUG" if verbose else (config.log_level if config else "INFO")
    level = getattr(logging, log_level, logging.INFO)

    # Tool output that goes through the standard library (rare) ends up on
    # the same stderr console as structlog events.
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=log_level == "DEBUG",
    )
    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=[handler])

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="%H:%M:%S" if sys.stderr.isatty() else "iso"),
    ]

    if sys.stderr.isatty():
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured bound logger
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log entries in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


@contextmanager
def stage_context(stage: str) -> Iterator[None]:
    """Tag log entries emitted inside the block with the pipeline stage."""
    tokens = structlog.contextvars.bind_contextvars(stage=stage)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)
