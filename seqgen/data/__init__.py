"""Model and tokenizer loading."""

from .loader import (
    HFLanguageModel,
    HFTokenizer,
    ModelLoadingError,
    load_generator,
    load_model,
    load_tokenizer,
    resolve_model_name,
)
from .registry import MODEL_REGISTRY

__all__ = [
    'HFLanguageModel',
    'HFTokenizer',
    'ModelLoadingError',
    'load_generator',
    'load_model',
    'load_tokenizer',
    'resolve_model_name',
    'MODEL_REGISTRY',
]
