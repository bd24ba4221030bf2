"""Structured logging for the ordering service.

Events are logged with structlog on top of the stdlib root logger. Level and
rendering come from ``Settings`` (``STOREFRONT_LOG_LEVEL``,
``STOREFRONT_LOG_JSON``); request-scoped fields are carried in contextvars.
"""

import logging
import sys
from typing import Any

import structlog

from ordering.config import Settings, get_settings

QUIET_LOGGERS = ("protean", "httpx", "stripe", "asyncio")


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    level = settings.log_level.upper()

    handler = logging.StreamHandler(sys.stdout)
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = structlog.processors.JSONRenderer() if settings.log_json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_context(**kwargs: Any) -> None:
    """Bind fields onto every event logged until ``clear_context``."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
