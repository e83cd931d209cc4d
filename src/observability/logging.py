"""
Structured logging configuration using structlog.

Component modules log through structlog with key/value fields
(``poller=``, ``category=``, ``dedup_reference=``). Repositories, sinks
and the HTTP client use stdlib ``logging``; both end up on the same
handler and renderer so the output is uniform: JSON in production,
coloured console output in development.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from src.config.settings import get_settings

# Libraries that log every request or connection at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "asyncpg", "uvicorn.access")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """
    Configure structlog and route stdlib logging through it.

    Args:
        level: Log level name; defaults to ``settings.log_level``.
        json_output: Force JSON rendering; defaults to production only.

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Poll completed", poller="incident", inserted=2)
    """
    settings = get_settings()
    level = level or settings.log_level
    if json_output is None:
        json_output = settings.is_production

    shared = _shared_processors()

    renderer: Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
        shared.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, level))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """
    Bind context variables to all subsequent log messages.

    Used for the API's per-request ids.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
