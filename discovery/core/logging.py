# discovery/core/logging.py
import logging
import sys
from typing import Iterable

import colorlog

LOG_FORMAT = "%(log_color)s%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s:%(lineno)d%(reset)s %(message)s"
LOG_COLORS = {
    "DEBUG": "white",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

# Driver chatter (server selection, heartbeats) stays out of the request log
QUIET_LOGGERS = ("pymongo", "motor", "redis")


def configure_logging(level=logging.INFO, *, quiet: Iterable[str] = QUIET_LOGGERS) -> None:
    """Single colour handler on stdout, installed on the root logger."""
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(colorlog.ColoredFormatter(LOG_FORMAT, datefmt="%H:%M:%S", log_colors=LOG_COLORS))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    for name in quiet:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
