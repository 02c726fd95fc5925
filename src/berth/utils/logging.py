"""Logging utilities."""

import logging
import sys
from typing import Optional, TextIO


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty below WARNING
NOISY_LOGGERS = ("asyncio", "httpx", "httpcore", "watchfiles")


def setup_logging(level: str = "INFO", stream: Optional[TextIO] = None):
    """Setup logging configuration.

    The agent logs to stdout; the CLI passes stderr so that records do not
    interleave with its tables.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(stream or sys.stdout)],
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
