"""
Logging setup.

Everything logs through the ``uvicorn.error`` logger so application messages
share uvicorn's handlers and format.
"""

import logging

from visitor_ledger.core.config import Settings

LOGGER_NAME = "uvicorn.error"


def configure_logging(config: Settings) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    level = logging.DEBUG if config.DEBUG else logging.getLevelName(config.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    # Running outside uvicorn (CLI, tests): make sure records go somewhere
    if not logger.handlers and not logging.getLogger().handlers:
        logging.basicConfig(format="%(levelname)s:     %(message)s")

    return logger
