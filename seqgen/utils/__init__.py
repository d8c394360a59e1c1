"""Utility functions."""

from __future__ import annotations

from .device import resolve_device, infer_model_device
from .logging import get_logger, set_verbosity, get_data_logger, get_generation_logger

__all__ = [
    # Device
    'resolve_device',
    'infer_model_device',
    # Logging
    'get_logger',
    'set_verbosity',
    'get_data_logger',
    'get_generation_logger',
]
