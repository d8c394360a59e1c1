"""Score filters shared by the decoders.

Every filter takes a (rows, vocab_size) score tensor for the current step
and returns a new tensor; inputs are never modified in place. Row i of the
result only depends on row i of the inputs.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

import torch
import torch.nn.functional as F


def enforce_repetition_penalty(
    logits: torch.Tensor,
    prev_tokens: torch.Tensor,
    penalty: float,
) -> torch.Tensor:
    """Penalize tokens already present in each row's history.

    Negative logits are multiplied by the penalty, non-negative ones divided
    by it, so a penalty > 1 always lowers the score. The rescale is applied
    once per occurrence: a token seen k times is scaled by penalty ** k.

    Args:
        logits: (B, vocab_size) next-token logits
        prev_tokens: (B, seq_len) token history per row
        penalty: Penalty factor (1.0 = no penalty)

    Returns:
        Penalized logits (B, vocab_size)
    """
    if penalty == 1.0:
        return logits

    counts: torch.Tensor = torch.zeros_like(logits).scatter_add(
        1, prev_tokens, torch.ones_like(prev_tokens, dtype=logits.dtype)
    )
    factor: torch.Tensor = torch.pow(penalty, counts)
    return torch.where(logits < 0, logits * factor, logits / factor)


def get_banned_tokens(
    input_ids: torch.Tensor,
    no_repeat_ngram_size: int,
    current_length: int,
) -> list[list[int]]:
    """Tokens that would complete an n-gram already present in the history.

    For each row, every n-gram of the history is indexed by its first n-1
    tokens; the followers of the row's last n-1 tokens are banned.

    Args:
        input_ids: (B, seq_len) token history
        no_repeat_ngram_size: n-gram size (0 disables banning)
        current_length: Current sequence length

    Returns:
        One list of banned token ids per row
    """
    num_rows: int = input_ids.size(0)
    if no_repeat_ngram_size == 0 or current_length + 1 < no_repeat_ngram_size:
        return [[] for _ in range(num_rows)]

    n = no_repeat_ngram_size
    banned_tokens: list[list[int]] = []
    for row in input_ids.tolist():
        history = row[:current_length]
        generated_ngrams: dict[tuple[int, ...], list[int]] = defaultdict(list)
        for start in range(len(history) - n + 1):
            ngram = history[start:start + n]
            generated_ngrams[tuple(ngram[:-1])].append(ngram[-1])

        prefix = tuple(history[current_length + 1 - n:])
        banned_tokens.append(list(dict.fromkeys(generated_ngrams.get(prefix, []))))
    return banned_tokens


def ban_tokens(scores: torch.Tensor, banned_tokens: Sequence[Sequence[int]]) -> torch.Tensor:
    """Set each row's banned tokens to -inf."""
    if not any(banned_tokens):
        return scores

    mask = torch.zeros_like(scores, dtype=torch.bool)
    for row, tokens in enumerate(banned_tokens):
        if tokens:
            mask[row, list(tokens)] = True
    return scores.masked_fill(mask, float("-inf"))


def mask_tokens(scores: torch.Tensor, token_ids: Sequence[int]) -> torch.Tensor:
    """Set the given token columns to -inf in every row."""
    if not token_ids:
        return scores

    mask = torch.zeros(scores.size(-1), dtype=torch.bool, device=scores.device)
    mask[list(token_ids)] = True
    return scores.masked_fill(mask, float("-inf"))


def apply_temperature(logits: torch.Tensor, temperature: float) -> torch.Tensor:
    """Flatten the distribution for temperatures above 1.

    Temperatures at or below 1 leave the logits untouched.
    """
    if temperature > 1.0:
        return logits / temperature
    return logits


def top_k_top_p_filtering(
    logits: torch.Tensor,
    top_k: int = 0,
    top_p: float = 1.0,
    min_tokens_to_keep: int = 1,
    filter_value: float = float("-inf"),
) -> torch.Tensor:
    """Filter logits with top-k and/or nucleus (top-p) truncation.

    Args:
        logits: (B, vocab_size) logits
        top_k: Keep only the k highest logits per row (0 disables).
        top_p: Keep the smallest prefix of tokens, by descending
            probability, whose cumulative probability reaches top_p
            (1.0 disables).
        min_tokens_to_keep: Lower bound on the number of kept tokens per row.
        filter_value: Value assigned to removed positions.

    Returns:
        Filtered logits (B, vocab_size)

    Example:
        >>> logits = torch.tensor([[1.0, 5.0, 3.0, 0.5]])
        >>> top_k_top_p_filtering(logits, top_k=2)
        tensor([[-inf, 5., 3., -inf]])
    """
    vocab_size: int = logits.size(-1)

    if top_k > 0:
        top_k = min(max(top_k, min_tokens_to_keep), vocab_size)
        if top_k < vocab_size:
            _, keep_indices = torch.topk(logits, top_k, dim=-1)
            remove = torch.ones_like(logits, dtype=torch.bool).scatter(-1, keep_indices, False)
            logits = logits.masked_fill(remove, filter_value)

    if top_p < 1.0:
        sorted_logits: torch.Tensor
        sorted_indices: torch.Tensor
        sorted_logits, sorted_indices = torch.sort(logits, descending=True, dim=-1)
        cumulative_probs: torch.Tensor = torch.cumsum(F.softmax(sorted_logits, dim=-1), dim=-1)

        # Remove tokens whose cumulative probability exceeds the threshold
        sorted_mask: torch.Tensor = cumulative_probs > top_p
        # Shift right so the token crossing the threshold is kept
        sorted_mask[..., 1:] = sorted_mask[..., :-1].clone()
        sorted_mask[..., :max(min_tokens_to_keep, 1)] = False

        # Scatter mask back to original indices
        mask: torch.Tensor = sorted_mask.scatter(-1, sorted_indices, sorted_mask)
        logits = logits.masked_fill(mask, filter_value)

    return logits
