"""Logging configuration shared by the API, the worker and scripts"""
import logging
import sys
from typing import Optional

from slotbook.config.settings import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that drown out booking logs at INFO
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "alembic.runtime.migration",
    "httpx",
    "httpcore",
    "twilio.http_client",
    "celery.worker.strategy",
    "uvicorn.access",
)


def resolve_level(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(verbose=True, level: Optional[str] = None):
    """
    Configure root logging to stdout.

    verbose=False (scripts) keeps only warnings from the app and errors from
    the quiet third-party loggers.
    """
    settings = get_settings()
    root_level = resolve_level(level or settings.LOG_LEVEL) if verbose else logging.WARNING

    logging.basicConfig(
        level=root_level,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    quiet_level = logging.WARNING if verbose else logging.ERROR
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
