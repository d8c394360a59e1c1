"""Tokenizer protocol definition."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable


@runtime_checkable
class Tokenizer(Protocol):
    """What the generation facade needs from a tokenizer.

    `pad_token_id` is optional; TextGenerator falls back to it when no
    explicit padding id is given.
    """

    bos_token_id: int | None
    eos_token_ids: list[int]
    unk_token_id: int | None

    def encode(self, text: str) -> list[int]:
        """Tokenize text and convert the tokens to ids."""
        ...

    def decode(
        self,
        token_ids: Sequence[int],
        skip_special_tokens: bool = True,
        clean_up_tokenization_spaces: bool = True,
    ) -> str:
        """Convert ids back to text."""
        ...
