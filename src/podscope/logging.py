"""
structlog setup for the podscope CLI and library.

Library modules only call ``structlog.get_logger()``; the entry point
decides how events are rendered.
"""

import logging
from typing import Any

import structlog

# Chatty third-party loggers: httpx logs every request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "redis")


def configure_logging(level: int | str = logging.INFO, *, json_output: bool = True) -> None:
    """Bridge structlog onto stdlib logging with UTC ISO timestamps."""

    renderer: Any = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")
    if logging.getLogger().getEffectiveLevel() > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def bind_command_context(**kwargs: Any) -> None:
    """Attach fields (command, config path) to every event logged until the next call."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**{k: v for k, v in kwargs.items() if v is not None})
