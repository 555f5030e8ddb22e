"""
Structured logging configuration using structlog.

JSON lines in production, colored console output elsewhere. Request handlers
bind a request id; background jobs bind the job name and attempt so an
award or notification failure can be traced back to the check-in behind it.
"""

import logging
import sys
import uuid
from enum import Enum

import structlog
from app.core.config import get_settings

_HANDLER_NAME = "structlog"
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "httpx")


def _plain_values(logger, method_name, event_dict):
    """Booking/event ids and state enums go out as plain strings."""
    for key, value in event_dict.items():
        if isinstance(value, uuid.UUID):
            event_dict[key] = str(value)
        elif isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def _processors(production: bool) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _plain_values,
        structlog.processors.StackInfoRenderer(),
    ]
    if production:
        processors.append(structlog.processors.format_exc_info)
    return processors


def setup_logging() -> None:
    settings = get_settings()
    production = settings.ENVIRONMENT == "production"

    structlog.configure(
        processors=[*_processors(production), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer() if production else structlog.dev.ConsoleRenderer(colors=True)
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer]
        )
    )

    root = logging.getLogger()
    # one handler per process, even when the lifespan runs more than once
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
