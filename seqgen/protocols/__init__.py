"""Collaborator protocols."""

from .model import (
    LanguageModel,
    StepInputPreparer,
    full_sequence_step_input,
    last_token_step_input,
    prepare_step_input,
)
from .tokenizer import Tokenizer

__all__ = [
    'LanguageModel',
    'StepInputPreparer',
    'Tokenizer',
    'full_sequence_step_input',
    'last_token_step_input',
    'prepare_step_input',
]
