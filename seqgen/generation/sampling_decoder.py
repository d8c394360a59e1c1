"""Greedy and sampling decoding with one hypothesis per row."""

from __future__ import annotations

from collections.abc import Sequence

import torch
import torch.nn.functional as F

from .errors import GenerationError
from .filters import (
    apply_temperature,
    ban_tokens,
    enforce_repetition_penalty,
    get_banned_tokens,
    mask_tokens,
    top_k_top_p_filtering,
)
from .generation_config import GenerationConfig
from .state import DecodingState, run_model_step
from ..protocols import LanguageModel
from ..utils.logging import get_generation_logger

logger = get_generation_logger()


class SamplingDecoder:
    """Extends every row by one token per model call until it is finished.

    A row is finished once it emits an end-of-sequence token; from then on it
    only receives padding. Decoding stops at `max_length` or when every row
    is finished.

    Usage:
        decoder = SamplingDecoder(model, GenerationConfig.greedy(max_length=30),
                                  pad_token_id=0, eos_token_ids=[2])
        output_ids = decoder.decode(input_ids, attention_mask)
    """

    def __init__(
        self,
        model: LanguageModel,
        config: GenerationConfig,
        pad_token_id: int | None = None,
        eos_token_ids: Sequence[int] | None = None,
    ) -> None:
        """
        Args:
            model: Any model implementing the LanguageModel protocol
            config: Validated generation configuration
            pad_token_id: Token given to finished rows
            eos_token_ids: End-of-sequence ids; empty disables early finishing
        """
        self.model: LanguageModel = model
        self.config: GenerationConfig = config
        self.pad_token_id: int | None = pad_token_id
        self.eos_token_ids: list[int] = list(eos_token_ids or [])

    def next_token_logits(self, logits: torch.Tensor, input_ids: torch.Tensor) -> torch.Tensor:
        """Apply repetition penalty, n-gram bans and the min-length eos mask."""
        config = self.config
        current_length: int = input_ids.size(1)

        logits = enforce_repetition_penalty(logits, input_ids, config.repetition_penalty)
        logits = ban_tokens(
            logits, get_banned_tokens(input_ids, config.no_repeat_ngram_size, current_length)
        )
        if current_length < config.min_length:
            logits = mask_tokens(logits, self.eos_token_ids)
        return logits

    def select_tokens(self, logits: torch.Tensor) -> torch.Tensor:
        """Draw (or argmax) one token per row. Returns (B,)."""
        if not self.config.do_sample:
            return logits.argmax(dim=-1)

        logits = apply_temperature(logits, self.config.temperature)
        logits = top_k_top_p_filtering(
            logits, top_k=self.config.top_k, top_p=self.config.top_p, min_tokens_to_keep=1
        )
        # A row with every token masked falls back to a uniform draw
        exhausted: torch.Tensor = torch.isneginf(logits).all(dim=-1, keepdim=True)
        if exhausted.any():
            logits = logits.masked_fill(exhausted, 0.0)
        probs: torch.Tensor = F.softmax(logits, dim=-1)
        return torch.multinomial(probs, num_samples=1).squeeze(1)

    @torch.no_grad()
    def decode(self, input_ids: torch.Tensor, attention_mask: torch.Tensor) -> torch.Tensor:
        """Run the decoding loop.

        Args:
            input_ids: Prompt token IDs (B, L)
            attention_mask: 0/1 mask for the prompt (B, L)

        Returns:
            torch.Tensor: Token IDs including the prompt (B, <= max_length).
                Rows that finished early are right-padded.
        """
        max_length: int = self.config.max_length
        batch_size: int = input_ids.size(0)
        device: torch.device = input_ids.device
        has_eos: bool = len(self.eos_token_ids) > 0

        unfinished: torch.Tensor = torch.ones(batch_size, dtype=torch.long, device=device)
        sentence_lengths: torch.Tensor = torch.full(
            (batch_size,), max_length, dtype=torch.long, device=device
        )
        state = DecodingState(input_ids=input_ids, attention_mask=attention_mask)

        while state.current_length < max_length:
            current_length: int = state.current_length
            logits, state = run_model_step(self.model, state)
            logits = self.next_token_logits(logits, state.input_ids)
            next_tokens: torch.Tensor = self.select_tokens(logits)

            # Finished rows only receive padding
            if has_eos and not unfinished.all():
                if self.pad_token_id is None:
                    raise GenerationError(
                        "A padding token id is required once a row has finished and others continue"
                    )
                next_tokens = next_tokens * unfinished + self.pad_token_id * (1 - unfinished)

            state = state.advance(next_tokens)

            if has_eos:
                is_eos = torch.isin(next_tokens, torch.tensor(self.eos_token_ids, device=device))
                newly_finished = is_eos.long() * unfinished
                sentence_lengths = sentence_lengths.masked_fill(
                    newly_finished.bool(), current_length + 1
                )
                unfinished = unfinished * (1 - newly_finished)
                if unfinished.max() == 0:
                    logger.debug(f"All {batch_size} row(s) finished at length {current_length + 1}")
                    break

        output_ids: torch.Tensor = state.input_ids
        if sentence_lengths.min() != sentence_lengths.max():
            output_ids = self._pad_to_lengths(output_ids, sentence_lengths)
        return output_ids

    def _pad_to_lengths(self, input_ids: torch.Tensor, sentence_lengths: torch.Tensor) -> torch.Tensor:
        """Copy each row's valid prefix into a pad-filled rectangle."""
        longest = int(sentence_lengths.max())
        decoded: torch.Tensor = torch.full(
            (input_ids.size(0), longest), self.pad_token_id,
            dtype=input_ids.dtype, device=input_ids.device,
        )
        for row, length in enumerate(sentence_lengths.tolist()):
            length = min(length, input_ids.size(1))
            decoded[row, :length] = input_ids[row, :length]
        return decoded
