"""Logging setup

Every module logs through `logging.getLogger(__name__)`; this module only
attaches a formatted handler to the "threadkit" logger and to the package
loggers (server, store, widgets, agent).
"""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ROOT_LOGGER_NAME = "threadkit"
PACKAGE_LOGGERS = ("server", "store", "widgets", "agent")


def configure_logging(level: str | int = "WARNING") -> logging.Logger:
    """Attach a stream handler to the threadkit loggers.

    Safe to call more than once; handlers are only added the first time.

    Returns:
        The "threadkit" logger
    """
    if isinstance(level, str):
        level = level.upper()

    formatter = logging.Formatter(LOG_FORMAT)
    for name in (ROOT_LOGGER_NAME, *PACKAGE_LOGGERS):
        package_logger = logging.getLogger(name)
        package_logger.setLevel(level)
        if not any(getattr(h, "_threadkit", False) for h in package_logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(formatter)
            handler._threadkit = True
            package_logger.addHandler(handler)

    return logging.getLogger(ROOT_LOGGER_NAME)
