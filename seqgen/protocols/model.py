"""Model-related protocol definitions."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import torch


@runtime_checkable
class LanguageModel(Protocol):
    """Protocol defining what a model needs to support decoding.

    Any model implementing this protocol can be driven by the sampling
    and beam-search decoders. The model is a black box: it turns token ids
    (and an optional incremental cache) into next-token scores.

    Example:
        class MyModel:
            def __call__(self, input_ids, cache=None, attention_mask=None):
                logits = ...                       # (B, vocab) or (B, L, vocab)
                return logits, new_cache

            def reorder_cache(self, cache, beam_indices):
                return [layer.index_select(0, beam_indices) for layer in cache]
    """

    def __call__(
        self,
        input_ids: torch.Tensor,
        cache: Any | None = None,
        attention_mask: torch.Tensor | None = None,
    ) -> tuple[torch.Tensor, Any | None]:
        """Forward pass returning next-token scores and the updated cache.

        Args:
            input_ids: Token IDs (B, L). Only the newest token per row when
                the model slices its step input that way.
            cache: Cache returned by the previous call, or None.
            attention_mask: 0/1 mask over the full history (B, L_total).

        Returns:
            Tuple of scores, either (B, vocab_size) for the final position or
            (B, L, vocab_size), and the updated cache (None if uncached).
        """
        ...

    def reorder_cache(self, cache: Any, beam_indices: torch.Tensor) -> Any:
        """Permute the cache along the row dimension.

        Row i of the returned cache must be row beam_indices[i] of the
        input cache. Beam search relies on this to keep cache and token
        history in sync.
        """
        ...


@runtime_checkable
class StepInputPreparer(Protocol):
    """Optional capability: choose what a model sees at each decoding step.

    Models without it receive the full token history every step
    (see full_sequence_step_input).
    """

    def prepare_step_input(
        self,
        input_ids: torch.Tensor,
        cache: Any | None,
        attention_mask: torch.Tensor,
    ) -> tuple[torch.Tensor, Any | None]:
        ...


def full_sequence_step_input(
    input_ids: torch.Tensor,
    cache: Any | None,
    attention_mask: torch.Tensor,
) -> tuple[torch.Tensor, Any | None]:
    """Default step input: the whole history and the cache unchanged."""
    return input_ids, cache


def last_token_step_input(
    input_ids: torch.Tensor,
    cache: Any | None,
    attention_mask: torch.Tensor,
) -> tuple[torch.Tensor, Any | None]:
    """Step input for cached models: only the newest token once a cache exists."""
    if cache is not None:
        return input_ids[:, -1:], cache
    return input_ids, cache


def prepare_step_input(
    model: Any,
    input_ids: torch.Tensor,
    cache: Any | None,
    attention_mask: torch.Tensor,
) -> tuple[torch.Tensor, Any | None]:
    """Dispatch to the model's StepInputPreparer capability, if it has one."""
    if isinstance(model, StepInputPreparer):
        return model.prepare_step_input(input_ids, cache, attention_mask)
    return full_sequence_step_input(input_ids, cache, attention_mask)
