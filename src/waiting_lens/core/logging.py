"""Structured logging configuration.

Provides structlog setup with:
- JSON output for machine consumption, or a coloured console renderer
- Optional log file output
- Per-refresh context variables so every line of one refresh is correlated
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

DEFAULT_LOG_LEVEL = "INFO"


def configure_logging(
    json_format: bool = True,
    log_level: str = DEFAULT_LOG_LEVEL,
    log_file: Path | None = None,
) -> None:
    """Configure structlog for the application.

    Args:
        json_format: Whether to output logs as JSON.
        log_level: The logging level to use.
        log_file: Optional file to append log lines to instead of stdout.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_format:
        processors: list[structlog.types.Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=log_file is None),
        ]

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger_factory: Any = structlog.WriteLoggerFactory(
            file=log_file.open("a", encoding="utf-8")
        )
    else:
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def bind_refresh_context(**values: Any) -> None:
    """Bind values to every log event emitted during the current refresh.

    Args:
        **values: Context to bind (e.g. refresh_id, user_id).
    """
    structlog.contextvars.bind_contextvars(**values)


def clear_refresh_context() -> None:
    """Drop all context bound with bind_refresh_context."""
    structlog.contextvars.clear_contextvars()
