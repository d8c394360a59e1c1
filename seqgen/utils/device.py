"""Device helpers for placing decoding tensors."""

from __future__ import annotations

from typing import Any

import torch


def resolve_device(preferred: str | None = None) -> torch.device:
    """Pick the device a model is loaded onto.

    An available `preferred` device wins; otherwise CUDA, then MPS, then CPU.
    """
    if preferred is not None:
        name = preferred.lower()
        if name.startswith("cuda") and torch.cuda.is_available():
            return torch.device(name)
        if name == "mps" and torch.backends.mps.is_available():
            return torch.device("mps")
        if name == "cpu":
            return torch.device("cpu")

    if torch.cuda.is_available():
        return torch.device("cuda")
    if torch.backends.mps.is_available():
        return torch.device("mps")
    return torch.device("cpu")


def infer_model_device(model: Any) -> torch.device:
    """Device of a model collaborator.

    Looks for a `device` attribute, then at the first parameter of
    `parameters()`; anything else decodes on CPU.
    """
    device = getattr(model, "device", None)
    if isinstance(device, (str, torch.device)):
        return torch.device(device)

    parameters = getattr(model, "parameters", None)
    if callable(parameters):
        for parameter in parameters():
            return parameter.device
    return torch.device("cpu")
