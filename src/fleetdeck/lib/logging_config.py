"""Logging setup shared by FleetDeck CLI commands."""

from __future__ import annotations

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
ROOT_LOGGER_NAME = "fleetdeck"

# Third-party loggers that are noisy at DEBUG level
_NOISY_LOGGERS = ("docker", "urllib3", "httpx", "httpcore")


def get_logger(name: str) -> logging.Logger:
    """Return a module logger under the fleetdeck namespace.

    Args:
        name: Usually ``__name__`` of the calling module

    Returns:
        Logger instance
    """
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure the fleetdeck logger hierarchy.

    Verbose enables DEBUG, quiet limits output to errors. The
    ``FLEETDECK_LOG_LEVEL`` environment variable overrides both.

    Args:
        verbose: Enable debug logging
        quiet: Only show errors
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    env_level = os.environ.get("FLEETDECK_LOG_LEVEL")
    if env_level:
        level = logging.getLevelName(env_level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)

    # Replace handlers so repeated calls do not duplicate output
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
