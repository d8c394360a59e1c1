"""Logging utilities for seqgen."""

from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _configure_root() -> logging.Logger:
    root = logging.getLogger("seqgen")
    if not root.handlers:
        handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
        formatter: logging.Formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)
        handler.setFormatter(formatter)
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return root


def get_logger(name: str) -> logging.Logger:
    """Get a configured logger.

    Child loggers inherit their level from the root 'seqgen' logger,
    which defaults to INFO. Use set_verbosity() to change globally.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    _configure_root()
    return logging.getLogger(name)


def set_verbosity(level: int | str) -> None:
    """Set global verbosity level for all seqgen loggers.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR) or int
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    _configure_root().setLevel(level)


def get_generation_logger() -> logging.Logger:
    """Get logger for decoding operations."""
    return get_logger("seqgen.generation")


def get_data_logger() -> logging.Logger:
    """Get logger for model and tokenizer loading."""
    return get_logger("seqgen.data")
