"""
Structured logging configuration using structlog.

Ledger events carry Decimal money fields; they are rendered as exact
strings so JSON output never passes through a float.
"""

import logging
import sys
from decimal import Decimal
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from stockledger.config.settings import get_settings

QUIET_LOGGERS = ("aiosqlite", "httpx", "uvicorn.access")


def add_app_context(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    settings = get_settings()
    event_dict.setdefault("app", settings.app_name)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def render_decimals(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Replace Decimal values (top level and in lists) with their exact string."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
        elif isinstance(value, list):
            event_dict[key] = [str(v) if isinstance(v, Decimal) else v for v in value]
    return event_dict


def build_processors(json_logs: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_app_context,
        render_decimals,
    ]
    if json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(json_logs: bool | None = None) -> None:
    """
    Configure structlog over stdlib logging.

    Args:
        json_logs: Force JSON output; defaults to JSON outside development.
    """
    settings = get_settings()
    if json_logs is None:
        json_logs = settings.json_logs

    structlog.configure(
        processors=build_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_request(request_id: str, **fields: Any) -> None:
    """Attach request fields to every event logged until `clear_request()`."""
    structlog.contextvars.bind_contextvars(request_id=request_id, **fields)


def clear_request() -> None:
    structlog.contextvars.clear_contextvars()
