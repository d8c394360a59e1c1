"""Beam search decoding.

Each input item keeps `num_beams` running hypotheses, stored as contiguous
rows of the decoding state. Every step scores `num_beams * vocab_size`
continuations per item, keeps the best `num_beams` that do not end the
sequence and files finished ones into the item's BeamHypotheses.
"""

from __future__ import annotations

from collections.abc import Sequence

import torch
import torch.nn.functional as F

from .beam_hypotheses import BeamHypotheses
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

# (cumulative score, token id, source row)
BeamEntry = tuple[float, int, int]


class BeamSearchDecoder:
    """Multi-hypothesis decoding with length-normalized ranking.

    Args:
        model: Any model implementing the LanguageModel protocol.
        config: Validated generation configuration (num_beams > 1).
        pad_token_id: Token used for placeholder beams and output padding.
        eos_token_ids: End-of-sequence ids.

    Example:
        >>> decoder = BeamSearchDecoder(model, GenerationConfig.beam_search(num_beams=4),
        ...                             pad_token_id=0, eos_token_ids=[2])
        >>> expanded = input_ids.repeat_interleave(4, dim=0)
        >>> output_ids = decoder.decode(expanded, torch.ones_like(expanded), batch_size=1)
    """

    def __init__(
        self,
        model: LanguageModel,
        config: GenerationConfig,
        pad_token_id: int | None = None,
        eos_token_ids: Sequence[int] | None = None,
    ):
        self.model = model
        self.config = config
        self.pad_token_id = pad_token_id
        self.eos_token_ids: list[int] = list(eos_token_ids or [])

    def step_scores(self, logits: torch.Tensor, input_ids: torch.Tensor) -> torch.Tensor:
        """Log-probabilities of the next token after penalties and bans."""
        config = self.config
        current_length: int = input_ids.size(1)

        logits = enforce_repetition_penalty(logits, input_ids, config.repetition_penalty)
        if config.do_sample:
            logits = apply_temperature(logits, config.temperature)

        scores = F.log_softmax(logits, dim=-1)
        if current_length < config.min_length:
            scores = mask_tokens(scores, self.eos_token_ids)
        return ban_tokens(
            scores, get_banned_tokens(input_ids, config.no_repeat_ngram_size, current_length)
        )

    def select_candidates(
        self,
        scores: torch.Tensor,
        beam_scores: torch.Tensor,
        batch_size: int,
    ) -> tuple[torch.Tensor, torch.Tensor]:
        """Pick 2 * num_beams candidates per item, best first.

        Args:
            scores: (batch_size * num_beams, vocab_size) step log-probabilities
            beam_scores: (batch_size * num_beams,) running beam scores

        Returns:
            Tuple of candidate scores and flat candidate indices into
            num_beams * vocab_size, both (batch_size, 2 * num_beams)
        """
        num_beams: int = self.config.num_beams
        vocab_size: int = scores.size(-1)
        num_candidates: int = 2 * num_beams
        candidate_scores = scores + beam_scores.unsqueeze(-1)

        if self.config.do_sample:
            candidate_scores = top_k_top_p_filtering(
                candidate_scores,
                top_k=self.config.top_k,
                top_p=self.config.top_p,
                min_tokens_to_keep=2,
            )
            candidate_scores = candidate_scores.contiguous().view(batch_size, num_beams * vocab_size)
            probs = F.softmax(candidate_scores, dim=-1)
            next_tokens = torch.multinomial(probs, num_samples=num_candidates, replacement=False)
            next_scores = candidate_scores.gather(-1, next_tokens)
            next_scores, order = torch.sort(next_scores, descending=True, dim=1)
            next_tokens = next_tokens.gather(-1, order)
            return next_scores, next_tokens

        candidate_scores = candidate_scores.contiguous().view(batch_size, num_beams * vocab_size)
        return torch.topk(candidate_scores, num_candidates, dim=1, largest=True, sorted=True)

    def _placeholder_beams(self, item: int) -> list[BeamEntry]:
        if self.pad_token_id is None or not self.eos_token_ids:
            raise GenerationError(
                "End-of-sequence and padding token ids are required to keep "
                "finished items in the beam batch"
            )
        first_row = item * self.config.num_beams
        return [(0.0, self.pad_token_id, first_row)] * self.config.num_beams

    def _next_item_beams(
        self,
        item: int,
        hypotheses: BeamHypotheses,
        next_scores: list[float],
        next_tokens: list[int],
        input_ids: torch.Tensor,
        vocab_size: int,
    ) -> list[BeamEntry]:
        """Walk one item's ranked candidates into continuing beams and finished hypotheses."""
        num_beams: int = self.config.num_beams
        next_beams: list[BeamEntry] = []

        for rank, (score, candidate) in enumerate(zip(next_scores, next_tokens)):
            beam_id, token_id = divmod(candidate, vocab_size)
            source_row = item * num_beams + beam_id

            if token_id in self.eos_token_ids:
                # Only end-of-sequence candidates ranked among the top num_beams are kept
                if rank >= num_beams:
                    continue
                hypotheses.add(input_ids[source_row].clone(), score)
            else:
                next_beams.append((score, token_id, source_row))

            if len(next_beams) == num_beams:
                break

        if len(next_beams) < num_beams:
            # Too many candidates ended the sequence; keep the batch rectangular
            filler = self.pad_token_id if self.pad_token_id is not None else self.eos_token_ids[0]
            logger.debug(f"Item {item}: {len(next_beams)} continuing beam(s), padding the rest")
            next_beams.extend(
                [(float("-inf"), filler, item * num_beams)] * (num_beams - len(next_beams))
            )
        return next_beams

    @torch.no_grad()
    def decode(
        self,
        input_ids: torch.Tensor,
        attention_mask: torch.Tensor,
        batch_size: int,
    ) -> torch.Tensor:
        """Run beam search.

        Args:
            input_ids: (batch_size * num_beams, L) prompts, each item repeated
                on num_beams contiguous rows
            attention_mask: (batch_size * num_beams, L) 0/1 mask
            batch_size: Number of input items

        Returns:
            torch.Tensor: (batch_size * num_return_sequences, <= max_length)
                token IDs, or (batch_size, <= max_length) when sampling
        """
        config = self.config
        num_beams: int = config.num_beams
        device: torch.device = input_ids.device

        hypotheses: list[BeamHypotheses] = [
            BeamHypotheses(num_beams, config.max_length, config.length_penalty, config.early_stopping)
            for _ in range(batch_size)
        ]
        done: list[bool] = [False] * batch_size

        beam_scores: torch.Tensor = torch.zeros((batch_size, num_beams), dtype=torch.float, device=device)
        if not config.do_sample:
            # Identical beams would otherwise produce duplicate candidates
            beam_scores[:, 1:] = float("-inf")
        beam_scores = beam_scores.view(-1)

        state = DecodingState(input_ids=input_ids, attention_mask=attention_mask)

        while state.current_length < config.max_length:
            current_length: int = state.current_length
            logits, state = run_model_step(self.model, state)
            scores = self.step_scores(logits, state.input_ids)
            vocab_size: int = scores.size(-1)

            next_scores, next_tokens = self.select_candidates(scores, beam_scores, batch_size)

            next_batch_beam: list[BeamEntry] = []
            for item in range(batch_size):
                if done[item]:
                    next_batch_beam.extend(self._placeholder_beams(item))
                    continue

                item_scores: list[float] = next_scores[item].tolist()
                next_batch_beam.extend(
                    self._next_item_beams(
                        item, hypotheses[item], item_scores,
                        next_tokens[item].tolist(), state.input_ids, vocab_size,
                    )
                )
                done[item] = hypotheses[item].is_done(max(item_scores), current_length)

            if all(done):
                logger.debug(f"All {batch_size} item(s) done at length {current_length}")
                break

            beam_scores = torch.tensor([score for score, _, _ in next_batch_beam], dtype=torch.float, device=device)
            beam_tokens = torch.tensor([token for _, token, _ in next_batch_beam], dtype=torch.long, device=device)
            beam_rows = torch.tensor([row for _, _, row in next_batch_beam], dtype=torch.long, device=device)

            state = state.select_rows(beam_rows, self.model).advance(beam_tokens)

        # Items cut off by max_length keep their live beams
        for item in range(batch_size):
            if done[item]:
                continue
            for beam_id in range(num_beams):
                row = item * num_beams + beam_id
                hypotheses[item].add(state.input_ids[row], beam_scores[row].item())

        per_item: int = 1 if config.do_sample else config.num_return_sequences
        best: list[torch.Tensor] = [
            hyp.tokens for item_hypotheses in hypotheses for hyp in item_hypotheses.best(per_item)
        ]
        return self._pad_hypotheses(best, device)

    def _pad_hypotheses(self, best: list[torch.Tensor], device: torch.device) -> torch.Tensor:
        """Stack selected sequences, padding and closing shorter ones with an eos token."""
        lengths: list[int] = [tokens.size(0) for tokens in best]
        if min(lengths) == max(lengths):
            return torch.stack(best).to(dtype=torch.long, device=device)

        if self.pad_token_id is None:
            raise GenerationError("A padding token id is required to return sequences of different lengths")

        max_length: int = self.config.max_length
        width: int = min(max(lengths) + 1, max_length)
        decoded: torch.Tensor = torch.full(
            (len(best), width), self.pad_token_id, dtype=torch.long, device=device
        )
        for index, tokens in enumerate(best):
            length = tokens.size(0)
            decoded[index, :length] = tokens
            if length < max_length and self.eos_token_ids:
                decoded[index, length] = self.eos_token_ids[0]
        return decoded
