"""Decoding engine components."""

from .generation_config import GenerationConfig
from .errors import GenerationError
from .beam_hypotheses import BeamHypotheses, Hypothesis
from .filters import (
    apply_temperature,
    ban_tokens,
    enforce_repetition_penalty,
    get_banned_tokens,
    mask_tokens,
    top_k_top_p_filtering,
)
from .prompt_encoder import build_attention_mask, encode_prompts, truncate_longest_first
from .state import DecodingState, run_model_step
from .sampling_decoder import SamplingDecoder
from .beam_search import BeamSearchDecoder
from .generator import TextGenerator

__all__ = [
    # Config
    'GenerationConfig',
    'GenerationError',
    # Beam hypotheses
    'BeamHypotheses',
    'Hypothesis',
    # Filters
    'apply_temperature',
    'ban_tokens',
    'enforce_repetition_penalty',
    'get_banned_tokens',
    'mask_tokens',
    'top_k_top_p_filtering',
    # Prompt encoding
    'build_attention_mask',
    'encode_prompts',
    'truncate_longest_first',
    # Decoding
    'DecodingState',
    'run_model_step',
    'SamplingDecoder',
    'BeamSearchDecoder',
    'TextGenerator',
]
