"""structlog setup shared by every module: ``logger = get_logger(__name__)``."""
import logging
import sys

import structlog

from .config import get_settings

_configured = False


def configure_logging() -> None:
    global _configured
    settings = get_settings()
    level = getattr(logging, settings.log_level, logging.INFO)

    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
    _configured = True


def get_logger(name: str):
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)
