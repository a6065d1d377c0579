"""
Structured logging for the inventory.

Events are snake_case names with key/value context. The inventory service
binds ``batch_id`` and ``operation`` into structlog's contextvars for the
duration of each call, so store-level events inherit them.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from openmts.config.settings import Settings, get_settings

# Third-party loggers that are too chatty at INFO/DEBUG
QUIET_LOGGERS = ("aiosqlite",)


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp every event with the application name, version and environment."""
    settings = get_settings()
    event_dict.setdefault("app", settings.app_name)
    event_dict.setdefault("version", settings.app_version)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def _renderer(settings: Settings) -> list[Processor]:
    if settings.environment == "development":
        return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def configure_logging(settings: Settings | None = None) -> None:
    """Route structlog through stdlib logging at ``settings.log_level``."""
    settings = settings or get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        *_renderer(settings),
    ]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, usually with ``__name__``."""
    return structlog.get_logger(name)
