"""Structured logging configuration for the resolver."""

from __future__ import annotations

import logging

import structlog

from market_resolver.config import get_settings


def _get_shared_processors() -> list[structlog.types.Processor]:
    """Common structlog processors."""

    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def configure_logging(level: str | None = None) -> None:
    """Configure structlog and standard logging.

    ``level`` overrides ``LOG_LEVEL`` from settings when given.
    """

    if level is None:
        level = get_settings().logging.level

    structlog.configure(
        processors=[
            *_get_shared_processors(),
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return configured logger."""

    return structlog.get_logger(name)
