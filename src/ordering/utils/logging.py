"""Logging configuration for the Ordering service and the storefront client."""

import logging
import os

import structlog


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Configure structlog once for the process.

    ``LOG_LEVEL`` and ``LOG_FORMAT=json`` are read from the environment when the
    arguments are not given.
    """
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "console") == "json"

    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name, logging.INFO))

    # Suppress noisy library loggers
    logging.getLogger("protean").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        cache_logger_on_first_use=True,
    )
