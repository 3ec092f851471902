"""Structured logging configuration using structlog.

Provides JSON logs in production and colored console output in development.
Standard-library loggers (``logging.getLogger(__name__)``) are routed through
the same structlog processors, so run context bound via
``structlog.contextvars`` shows up on every line.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from strata_sleuth.config import ObservabilityConfig


def setup_logging(config: ObservabilityConfig) -> None:
    """Configure structured logging for the process."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    json_logs = config.json_logs if config.json_logs is not None else not sys.stderr.isatty()
    if json_logs:
        # Production: JSON lines
        renderer = structlog.processors.JSONRenderer()
    else:
        # Dev mode: colored console
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("strata_sleuth").setLevel(level)
    # LiteLLM is chatty at INFO
    logging.getLogger("LiteLLM").setLevel(max(level, logging.WARNING))
