"""Logging configuration helpers."""

import logging

LOGGER_NAME = "eclass_manager"


def configure_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Configure the e-class logger with a single stream handler.

    Calling it again only updates the level.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if logger.handlers:
        return logger
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s: %(name)s: %(message)s")
    )
    logger.addHandler(handler)
    logger.propagate = False
    return logger
