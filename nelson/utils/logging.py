"""
Logging setup for the Nelson service.

Modules log through ``logging.getLogger(__name__)``; everything below the
``nelson`` namespace shares the handlers installed here.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAME = "nelson"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Outbound clients log every request at INFO, including store URLs with
# record ids.
QUIET_LOGGERS = ("httpx", "httpcore", "openai")


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the ``nelson`` logger.

    Calling it again replaces the previous handlers, so the lifespan can run
    more than once in a process (tests) without duplicating output.

    Args:
        level: Level name; falls back to LOG_LEVEL, then INFO
        log_file: Optional file to mirror console output into

    Returns:
        The configured ``nelson`` logger
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    level_num = logging.getLevelName(level_name)
    if not isinstance(level_num, int):
        level_num = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level_num)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level_num)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level_num, logging.WARNING))

    return logger
