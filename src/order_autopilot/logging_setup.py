"""Console logging for the CLI and embedding hosts."""

import logging
import os
import sys
import threading
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%H:%M:%S"

_lock = threading.Lock()
_is_configured = False


def setup_logging(level: Optional[str] = None, force: bool = False) -> None:
    """Send package logs to stdout. Safe to call more than once.

    `level` falls back to the LOG_LEVEL environment variable, then INFO.
    """
    global _is_configured

    with _lock:
        if _is_configured and not force:
            return

        level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
        log_level = getattr(logging, level_name, logging.INFO)

        logger = logging.getLogger("order_autopilot")
        logger.setLevel(log_level)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console)
        logger.propagate = False

        _is_configured = True
