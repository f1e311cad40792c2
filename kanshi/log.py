"""The "kanshi" logger.

Every module logs through the one instance defined here:

    from kanshi.log import logger

Records go to kanshi.log in the state directory (~/.kanshi, or $KANSHI_HOME),
rotated at 5 MB with three old files kept. Nothing reaches stderr or the root
logger, since the monitor usually runs inside someone else's program.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path

_LOG_FILE = "kanshi.log"
_MAX_BYTES = 5 * 1024 * 1024
_BACKUPS = 3

_setup_lock = threading.Lock()


def get_home_dir() -> Path:
    """State directory for logs and the user config file. Created on first use."""
    override = os.environ.get("KANSHI_HOME")
    home = Path(override) if override else Path.home() / ".kanshi"
    home.mkdir(parents=True, exist_ok=True)
    return home


def _file_handler() -> logging.Handler:
    handler = RotatingFileHandler(
        str(get_home_dir() / _LOG_FILE),
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s.%(funcName)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    return handler


def _setup_logger() -> logging.Logger:
    log = logging.getLogger("kanshi")

    with _setup_lock:
        if log.handlers:
            return log

        log.setLevel(logging.DEBUG)
        log.propagate = False
        try:
            log.addHandler(_file_handler())
        except OSError:
            # No writable state directory: drop records instead of failing imports
            log.addHandler(logging.NullHandler())
            try:
                sys.stderr.write(f"kanshi: cannot write {_LOG_FILE}, logging disabled\n")
            except OSError:
                pass

    return log


logger = _setup_logger()
