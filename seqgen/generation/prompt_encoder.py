"""Turn raw text prompts into a left-padded batch of token ids."""

from __future__ import annotations

from collections.abc import Sequence

import torch

from .errors import GenerationError
from ..protocols import Tokenizer
from ..utils.logging import get_generation_logger

logger = get_generation_logger()


def truncate_longest_first(token_ids: list[int], max_length: int) -> list[int]:
    """Drop tokens from the end of a sequence until it fits in max_length."""
    num_truncated: int = max(len(token_ids) - max_length, 0)
    if num_truncated:
        return token_ids[:len(token_ids) - num_truncated]
    return token_ids


def encode_prompts(
    tokenizer: Tokenizer,
    prompts: Sequence[str],
    max_length: int,
    pad_token_id: int | None = None,
    device: torch.device | str = "cpu",
) -> torch.Tensor:
    """Tokenize, truncate and left-pad a batch of prompts.

    Args:
        tokenizer: Tokenizer used to encode each prompt
        prompts: Prompt texts
        max_length: Maximum number of tokens kept per prompt
        pad_token_id: Padding id. Falls back to the tokenizer's unknown id.
        device: Device of the returned tensor

    Returns:
        (num_prompts, longest_prompt) int64 tensor of token ids
    """
    if not prompts:
        raise ValueError("At least one prompt is required")

    token_ids: list[list[int]] = [
        truncate_longest_first(list(tokenizer.encode(prompt)), max_length)
        for prompt in prompts
    ]
    longest: int = max(len(ids) for ids in token_ids)

    pad_value = pad_token_id if pad_token_id is not None else tokenizer.unk_token_id
    if pad_value is None and any(len(ids) < longest for ids in token_ids):
        raise GenerationError(
            "Prompts of different lengths need a padding or unknown token id"
        )

    padded: list[list[int]] = [[pad_value] * (longest - len(ids)) + ids for ids in token_ids]
    logger.debug(f"Encoded {len(prompts)} prompt(s), padded length {longest}")
    return torch.tensor(padded, dtype=torch.long, device=device)


def build_attention_mask(input_ids: torch.Tensor, pad_token_id: int | None) -> torch.Tensor:
    """1 for real tokens, 0 for padding; all ones without a padding id."""
    if pad_token_id is None:
        return torch.ones_like(input_ids)
    return (input_ids != pad_token_id).long()
