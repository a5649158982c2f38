"""Logging for the sync engine, API and scheduler: one stdout format, quiet third-party loggers."""
import logging
import sys
from typing import Any

from config import settings

# Chatty at INFO: every job run, every HTTP connection, every server heartbeat.
NOISY_LOGGERS = ("apscheduler", "urllib3", "pymongo")


def setup_logging(level: str | None = None) -> None:
    level = level or settings.LOG_LEVEL
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_extra(logger: logging.Logger, msg: str, level: int = logging.INFO, **kwargs: Any) -> None:
    """Log msg followed by key=value pairs, e.g. a batch summary."""
    if kwargs:
        fields = " ".join(f"{k}={v}" for k, v in kwargs.items())
        logger.log(level, "%s %s", msg, fields)
    else:
        logger.log(level, "%s", msg)
