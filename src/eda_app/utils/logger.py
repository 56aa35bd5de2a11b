"""
Logging for the provisioning side of the project (stack creators and CLI).

Every module logs through a child of the ``eda_app`` package logger, which
owns the single stdout handler. The Lambda handlers do not use this module;
they log through the runtime's root logger.
"""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

from ..config import config

PACKAGE_LOGGER = "eda_app"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_formatter(environment: str) -> logging.Formatter:
    """JSON records in prod, readable lines everywhere else."""
    if environment == "prod":
        return jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt=DATE_FORMAT,
            rename_fields={"levelname": "level", "name": "logger"},
            static_fields={"project": config.project_name},
        )
    return logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt=DATE_FORMAT,
    )


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach the stdout handler to the package logger.

    Calling it again only changes the level.

    Args:
        level: Level name; defaults to ``config.log_level``.

    Returns:
        The package logger.
    """
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    log_level = getattr(logging, (level or config.log_level).upper(), logging.INFO)
    package_logger.setLevel(log_level)

    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(build_formatter(config.environment))
        package_logger.addHandler(handler)
        package_logger.propagate = False

    return package_logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger under the ``eda_app`` hierarchy.

    Args:
        name: Module name, usually ``__name__``. Names outside the package
            are nested under it.

    Returns:
        Logger that propagates to the configured package logger.
    """
    if not logging.getLogger(PACKAGE_LOGGER).handlers:
        configure_logging()
    if not name or name == PACKAGE_LOGGER:
        return logging.getLogger(PACKAGE_LOGGER)
    if not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
