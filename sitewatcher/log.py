# Logging setup shared across sitewatcher.
# setup_logging() configures the root logger once: a console handler plus an
# optional file handler rotated at midnight when LOG_TO_FILE=true.

from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler

from . import config

_DEFAULT_FMT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

_INITIALIZED = False


def setup_logging(level: str | None = None) -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return

    lvl = getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(lvl)

    for h in list(root.handlers):
        root.removeHandler(h)

    formatter = logging.Formatter(_DEFAULT_FMT, datefmt=_DEFAULT_DATEFMT)

    ch = logging.StreamHandler()
    ch.setLevel(lvl)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    if config.LOG_TO_FILE:
        config.LOG_DIR.mkdir(parents=True, exist_ok=True)
        fh = TimedRotatingFileHandler(
            config.LOG_DIR / "sitewatcher.log",
            when="midnight",
            backupCount=config.LOG_BACKUPS,
            encoding="utf-8",
        )
        fh.setLevel(lvl)
        fh.setFormatter(formatter)
        root.addHandler(fh)

    _INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger.

    Usage:
        from .log import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)
