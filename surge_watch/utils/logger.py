"""
SURGE WATCH — Structured Logging Utility
structlog for application events; stdlib logging for uvicorn, aiohttp
and the httpx client underneath python-telegram-bot.
"""
import structlog
import logging
import sys
import uuid
from contextlib import contextmanager
from typing import Iterator

from surge_watch.config.settings import get_settings

# third-party loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "telegram.ext")


def setup_logging() -> None:
    """Configure structured logging for the entire application."""
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str = None) -> structlog.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name or "surge_watch")


@contextmanager
def poll_context() -> Iterator[str]:
    """Tag every log line emitted inside one poll cycle with a short poll id."""
    poll_id = uuid.uuid4().hex[:8]
    with structlog.contextvars.bound_contextvars(poll_id=poll_id):
        yield poll_id
