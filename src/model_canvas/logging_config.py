"""logging setup for the model_canvas namespace.

the CLI writes documents to stdout, so log records go to stderr unless a
stream is given.
"""

import logging
import sys
from typing import Optional, TextIO

LOGGER_NAME = "model_canvas"
LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """route the package logger to stream (stderr by default) and optionally log_file.

    calling again replaces the handlers from the previous call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S")
    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if log_file:
        # server restarts append to the same file
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.debug("logging at %s", logging.getLevelName(level))
    return logger
