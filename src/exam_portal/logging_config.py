"""Common logging configuration for the exam portal"""

import logging
import sys

from exam_portal.config import config

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("sqlalchemy.engine", "urllib3", "httpx")


class InfoFilter(logging.Filter):
    """Filter to only allow INFO and DEBUG logs (exclude WARNING and above)"""

    def filter(self, record):
        return record.levelno < logging.WARNING


def setup_logging():
    """
    Configure logging to send INFO/DEBUG to stdout and WARNING/ERROR to stderr.
    Reads log level from application config.
    """
    log_level = config.get("log_level", "INFO")
    level = getattr(logging, log_level.upper(), logging.INFO)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s:%(name)s:%(message)s", "%Y-%m-%dT%H:%M:%S"
    )

    # Handler for INFO and DEBUG -> stdout
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(InfoFilter())
    stdout_handler.setFormatter(formatter)

    # Handler for WARNING and ERROR -> stderr
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers to avoid duplicates
    root_logger.handlers.clear()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(stderr_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the given module name.

    Args:
        name: Usually __name__ from the calling module

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
