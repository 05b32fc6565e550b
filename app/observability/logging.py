"""
Structured Logging - structlog over the standard logging module.

Every entry carries the service name, version and any context bound with
log_context (the HTTP middleware binds request_id). Free text from users and
from the model never reaches the log unabridged: long string values are cut
and secret-looking keys are masked.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from app.config import settings

MAX_VALUE_CHARS = 200

SECRET_KEYS = frozenset(
    {"api_key", "anthropic_api_key", "admin_api_key", "x_admin_key", "authorization"}
)

# Chatty at INFO; raised to WARNING unless LOG_LEVEL=DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "sqlalchemy.engine", "uvicorn.access")


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", settings.service_name)
    event_dict.setdefault("version", settings.api_version)
    return event_dict


def mask_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def truncate_long_values(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Cut brand descriptions, instructions and model replies to MAX_VALUE_CHARS."""
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_VALUE_CHARS:
            event_dict[key] = f"{value[:MAX_VALUE_CHARS]}... ({len(value)} chars)"
    return event_dict


def setup_logging() -> None:
    """
    Configure structlog and the root logger from settings.

    JSON output looks like:
    {
        "event": "credits_deducted",
        "level": "info",
        "timestamp": "2026-10-19T12:00:00.123456Z",
        "logger": "app.services.credits",
        "service": "design-system-forge",
        "version": "0.1.0",
        "request_id": "5f0c...",
        "user_id": "user-123",
        "cost": 3
    }
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_context,
        mask_secrets,
        truncate_long_values,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)  # type: ignore[no-any-return]


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """
    Bind ``values`` to every entry logged inside the block.

    Usage:
        with log_context(request_id=request_id):
            logger.info("request_started")
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield
