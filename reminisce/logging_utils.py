"""Lightweight logging helpers for the bedside runtime and admin tools."""

from __future__ import annotations

import logging
import os
from typing import Final


DEFAULT_FORMAT: Final[str] = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS: Final[tuple[str, ...]] = (
    "boto3",
    "botocore",
    "urllib3",
    "s3transfer",
    "awscrt",
    "httpx",
    "openai",
)


def level_from_verbosity(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    return logging.WARNING


def configure_logging(verbosity: int = 0) -> int:
    """Configure root logging based on ``verbosity`` and return the level used.

    ``verbosity`` comes from the ``-v`` / ``-vv`` CLI flags. The ``LOG_LEVEL``
    environment variable wins when set, so a service unit can pin the level
    without touching the command line.
    """

    env_level = os.environ.get("LOG_LEVEL")
    if env_level:
        level = getattr(logging, env_level.upper(), logging.WARNING)
    else:
        level = level_from_verbosity(max(verbosity, 0))

    logging.basicConfig(
        level=level,
        format=DEFAULT_FORMAT,
        datefmt=DEFAULT_DATEFMT,
        force=True,
    )

    # SDK chatter stays at INFO or quieter even at -vv.
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(logging.INFO, level))
    return level


__all__ = ["configure_logging", "level_from_verbosity"]
