"""Logging configuration for the Connected App server.

All loggers live under the ``salesforce_connected_app`` namespace so the
level can be tuned with a single ``LOG_LEVEL`` environment variable.
"""

from __future__ import annotations

import logging
import os
import sys

LOGGER_NAMESPACE = "salesforce_connected_app"

DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> None:
    """Configure the package logger.

    Safe to call more than once; only the first call installs a handler.

    Args:
        level: Log level name. Defaults to the LOG_LEVEL environment
            variable, or INFO.
    """
    global _configured

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger(LOGGER_NAMESPACE)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a component logger, e.g. ``get_logger("salesforce.client")``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
