"""Logging utilities for relay-mailer.

This module provides a centralized logger lookup. Handlers, level and format
are configured once by the entry point (see :mod:`relay_mailer.cli`) with
``logging.basicConfig()``; library modules only ask for a named logger.

Example:
    Typical usage in a module::

        from relay_mailer.logger import get_logger

        logger = get_logger("Session")
        logger.debug("Connected to %s", host)
"""

import logging

ROOT_LOGGER_NAME = "relay_mailer"


def get_logger(name: str = "") -> logging.Logger:
    """Retrieve a logger under the ``relay_mailer`` namespace.

    Args:
        name: Child logger name. An empty name returns the package logger.

    Returns:
        A ``logging.Logger`` instance; no handlers are attached here.

    Example:
        >>> get_logger("Composer").name
        'relay_mailer.Composer'
    """
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
