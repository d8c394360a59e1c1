"""seqgen - autoregressive sequence generation engine."""

from .generation import (
    BeamHypotheses,
    BeamSearchDecoder,
    GenerationConfig,
    GenerationError,
    SamplingDecoder,
    TextGenerator,
)
from .protocols import LanguageModel, StepInputPreparer, Tokenizer
from .utils import resolve_device, set_verbosity

__all__ = [
    # Generation
    'GenerationConfig',
    'GenerationError',
    'TextGenerator',
    'SamplingDecoder',
    'BeamSearchDecoder',
    'BeamHypotheses',
    # Protocols
    'LanguageModel',
    'StepInputPreparer',
    'Tokenizer',
    # Utils
    'resolve_device',
    'set_verbosity',
]
