"""
Logging setup shared by both front‑ends.

``setup_logging`` attaches a console handler, and a file handler when
``LOG_FILE`` is set, to the root logger.  uvicorn is started without
its own logging config and grpc's Python logger propagates by default,
so both end up in the same handlers.  Their library loggers are tuned
separately by ``tune_server_loggers``: per‑request access lines are
only shown at ``DEBUG``.
"""

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Library loggers that follow the configured level.
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "grpc", "grpc._cython")
ACCESS_LOGGER = "uvicorn.access"


def level_from_name(level: str) -> int:
    """Map a level name to its number, ``INFO`` for unknown names."""
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(numeric_level, int):
        return logging.INFO
    return numeric_level


def tune_server_loggers(level: int) -> None:
    for name in SERVER_LOGGERS:
        logging.getLogger(name).setLevel(level)
    logging.getLogger(ACCESS_LOGGER).setLevel(level if level <= logging.DEBUG else logging.WARNING)


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Configure the root logger and the server libraries' loggers.

    Handlers are only attached when the root logger has none, so a
    test runner's capture handlers are left alone.  Library logger
    levels are always applied.

    Parameters
    ----------
    level : str
        Logging level name, case insensitive.
    logfile : Optional[str]
        Extra destination for the same records, resolved against the
        working directory.
    """
    numeric_level = level_from_name(level)
    tune_server_loggers(numeric_level)

    root = logging.getLogger()
    if root.handlers:
        return
    root.setLevel(numeric_level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(Path(logfile).resolve(), encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
