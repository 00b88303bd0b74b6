"""
Shared service logger.

Every module does ``from logger import logger`` and logs with %-style
arguments and a bracketed step tag, e.g.::

    logger.info("[FIND] %s.%s returned %d docs", db, coll, n)
"""

import logging
import os
import sys

LOGGER_NAME = "mongo_service"
LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"


def _build_logger() -> logging.Logger:
    log = logging.getLogger(LOGGER_NAME)
    if not log.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
    log.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    log.propagate = False
    return log


logger = _build_logger()
