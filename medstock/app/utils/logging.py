"""Logging configuration for the medicine inventory service."""

import logging
import sys
from typing import Any

import structlog

from medstock.app.config import Settings, get_settings

# default level per ENV when LOG_LEVEL is not set
LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

JSON_ENVS = {"production", "staging"}

QUIET_LOGGERS = ("urllib3", "sqlalchemy.engine", "uvicorn.access")


def resolve_level(settings: Settings) -> str:
    return (settings.log_level or LEVELS.get(settings.env, "INFO")).upper()


def configure_logging(settings: Settings | None = None) -> None:
    """
    Route stdlib logging to stdout and render structlog events on top of it:
    JSON lines in production/staging, plain console lines elsewhere.
    """
    settings = settings or get_settings()
    level = resolve_level(settings)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.env in JSON_ENVS
        else structlog.dev.ConsoleRenderer(colors=False)
    )
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
    """Bind request-scoped fields onto every event logged until `clear_context`."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
