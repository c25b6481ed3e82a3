# app_logger.py
"""
A small wrapper around the standard library `logging` module.
Every module asks `get_logger(__name__)` for a child of one namespace, so
log configuration lives in a single place.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
ROOT_NAME = "electrical_calculator"

logger = logging.getLogger(ROOT_NAME)


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stream handler to the namespace logger (once) and set its level."""
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger


def get_logger(name: str) -> logging.Logger:
    # backend.lib.offline_cache -> electrical_calculator.offline_cache
    short = name.rsplit(".", 1)[-1]
    return logger.getChild(short)
