"""Owned decoding state: token history, attention mask and model cache."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

import torch

from ..protocols import LanguageModel, prepare_step_input


@dataclass(frozen=True)
class DecodingState:
    """Token ids, attention mask and cache of an active decoding call.

    The three are only ever changed together. `advance` appends one column,
    `with_cache` adopts the cache a model call returned and `select_rows`
    gathers all three along the same row indices. Each returns a new state.
    """

    input_ids: torch.Tensor  # (rows, seq_len)
    attention_mask: torch.Tensor  # (rows, seq_len)
    cache: Any | None = None

    @property
    def current_length(self) -> int:
        return self.input_ids.size(1)

    @property
    def num_rows(self) -> int:
        return self.input_ids.size(0)

    def step_input(self, model: LanguageModel) -> tuple[torch.Tensor, Any | None]:
        """What the model sees this step (full history unless it slices)."""
        return prepare_step_input(model, self.input_ids, self.cache, self.attention_mask)

    def advance(self, tokens: torch.Tensor) -> DecodingState:
        """Append one token per row and extend the mask with ones."""
        ones = torch.ones(
            (self.num_rows, 1),
            dtype=self.attention_mask.dtype,
            device=self.attention_mask.device,
        )
        return DecodingState(
            input_ids=torch.cat([self.input_ids, tokens.unsqueeze(-1)], dim=-1),
            attention_mask=torch.cat([self.attention_mask, ones], dim=-1),
            cache=self.cache,
        )

    def with_cache(self, cache: Any | None) -> DecodingState:
        return replace(self, cache=cache)

    def select_rows(self, indices: torch.Tensor, model: LanguageModel) -> DecodingState:
        """Re-gather ids, mask and cache along `indices`.

        Row i of the new state is row indices[i] of this one; the cache is
        permuted by the model so it stays aligned with the token history.
        """
        indices = indices.to(self.input_ids.device)
        cache = self.cache
        if cache is not None:
            cache = model.reorder_cache(cache, indices)
        return DecodingState(
            input_ids=self.input_ids.index_select(0, indices),
            attention_mask=self.attention_mask.index_select(0, indices),
            cache=cache,
        )


def run_model_step(model: LanguageModel, state: DecodingState) -> tuple[torch.Tensor, DecodingState]:
    """Call the model once and return last-position scores (rows, vocab_size).

    The returned state carries the model's updated cache.
    """
    step_ids, cache = state.step_input(model)
    scores, cache = model(step_ids, cache=cache, attention_mask=state.attention_mask)
    if scores.dim() == 3:
        scores = scores[:, -1, :]
    return scores, state.with_cache(cache)
