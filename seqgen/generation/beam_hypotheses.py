"""Bounded set of finished beam-search hypotheses."""

from __future__ import annotations

from dataclasses import dataclass

import torch


@dataclass(frozen=True)
class Hypothesis:
    """A finished candidate sequence."""

    score: float  # Length-normalized log probability
    tokens: torch.Tensor  # Token IDs (seq_len,)


class BeamHypotheses:
    """Keeps the `num_beams` best finished sequences for one input item.

    Sequences are ranked by their length-normalized score
    `sum_logprobs / len(tokens) ** length_penalty`.

    Args:
        num_beams: Capacity of the set.
        max_length: Configured maximum sequence length.
        length_penalty: Exponent applied to the sequence length.
        early_stopping: Report done as soon as the set is full.
    """

    def __init__(
        self,
        num_beams: int,
        max_length: int,
        length_penalty: float = 1.0,
        early_stopping: bool = False,
    ):
        self.num_beams: int = num_beams
        # Last position a hypothesis may end on
        self.max_length: int = max_length - 1
        self.length_penalty: float = length_penalty
        self.early_stopping: bool = early_stopping
        self.beams: list[Hypothesis] = []
        self.worst_score: float = float("inf")

    def __len__(self) -> int:
        return len(self.beams)

    def add(self, tokens: torch.Tensor, sum_logprobs: float) -> None:
        """Add a finished sequence, evicting the worst one when over capacity."""
        score = sum_logprobs / (tokens.size(-1) ** self.length_penalty)
        if len(self) < self.num_beams or score > self.worst_score:
            self.beams.append(Hypothesis(score=score, tokens=tokens))
            if len(self) > self.num_beams:
                # min() returns the first minimum, so ties evict the oldest entry
                worst_index = min(range(len(self.beams)), key=lambda i: self.beams[i].score)
                del self.beams[worst_index]
            self.worst_score = min(hyp.score for hyp in self.beams)

    def is_done(self, best_sum_logprobs: float, current_length: int) -> bool:
        """Whether no running beam can still improve this set.

        Args:
            best_sum_logprobs: Best cumulative score among the running beams.
            current_length: Current sequence length.
        """
        if len(self) < self.num_beams:
            return False
        if self.early_stopping:
            return True
        return self.worst_score >= best_sum_logprobs / (current_length ** self.length_penalty)

    def best(self, n: int) -> list[Hypothesis]:
        """Return the `n` highest-scoring hypotheses, best first."""
        ranked = sorted(self.beams, key=lambda hyp: hyp.score)
        return [ranked.pop() for _ in range(min(n, len(ranked)))]
