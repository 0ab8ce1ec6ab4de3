# core/log_manager.py
import logging
import sys

from src.config import LOG_LEVEL

LOGGER_NAME = "flash"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _build_logger() -> logging.Logger:
    """
    Creates the application logger once. Every module imports `logger` from here
    instead of calling logging.getLogger on its own.
    """
    app_logger = logging.getLogger(LOGGER_NAME)
    if not app_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        app_logger.addHandler(handler)
    app_logger.setLevel(LOG_LEVEL.upper())
    app_logger.propagate = False
    return app_logger


logger = _build_logger()
