"""Generation configuration for sequence decoding."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GenerationConfig:
    """Decoding parameters, validated once at construction.

    Lengths are counted in tokens and include the prompt.

    Usage:
        config = GenerationConfig(max_length=30, do_sample=True, top_k=50)
        generator = TextGenerator(model, tokenizer, config)

        # Or use a preset
        generator = TextGenerator(model, tokenizer, GenerationConfig.greedy(max_length=30))
    """

    # Length
    min_length: int = 0
    max_length: int = 20

    # Strategy
    do_sample: bool = True
    early_stopping: bool = False
    num_beams: int = 5

    # Sampling
    temperature: float = 1.0
    top_k: int = 0
    top_p: float = 0.9

    # Penalties
    repetition_penalty: float = 1.0
    length_penalty: float = 1.0
    no_repeat_ngram_size: int = 3

    num_return_sequences: int = 1

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.min_length < 0:
            raise ValueError(f"min_length must be >= 0, got {self.min_length}")

        if self.max_length < 1:
            raise ValueError(f"max_length must be >= 1, got {self.max_length}")

        if self.temperature <= 0:
            raise ValueError(f"temperature must be > 0, got {self.temperature}")

        if self.top_k < 0:
            raise ValueError(f"top_k must be >= 0, got {self.top_k}")

        if not (0 <= self.top_p <= 1):
            raise ValueError(f"top_p must be in [0, 1], got {self.top_p}")

        if self.repetition_penalty < 1.0:
            raise ValueError(f"repetition_penalty must be >= 1.0, got {self.repetition_penalty}")

        if self.length_penalty <= 0:
            raise ValueError(f"length_penalty must be > 0, got {self.length_penalty}")

        if self.no_repeat_ngram_size < 0:
            raise ValueError(f"no_repeat_ngram_size must be >= 0, got {self.no_repeat_ngram_size}")

        if self.num_beams < 1:
            raise ValueError(f"num_beams must be >= 1, got {self.num_beams}")

        if self.num_return_sequences < 1:
            raise ValueError(f"num_return_sequences must be >= 1, got {self.num_return_sequences}")

        if not self.do_sample:
            if self.num_beams == 1 and self.num_return_sequences != 1:
                raise ValueError(
                    "num_return_sequences must be 1 for greedy decoding, "
                    f"got {self.num_return_sequences}"
                )
            if self.num_beams > 1 and self.num_return_sequences > self.num_beams:
                raise ValueError(
                    f"num_return_sequences ({self.num_return_sequences}) must not exceed "
                    f"num_beams ({self.num_beams})"
                )

    @classmethod
    def greedy(cls, max_length: int = 20, min_length: int = 0) -> GenerationConfig:
        """Create a greedy decoding config (deterministic, no n-gram ban)."""
        return cls(
            min_length=min_length,
            max_length=max_length,
            do_sample=False,
            num_beams=1,
            no_repeat_ngram_size=0,
        )

    @classmethod
    def sampling(
        cls,
        max_length: int = 20,
        temperature: float = 1.0,
        top_k: int = 0,
        top_p: float = 0.9,
        num_return_sequences: int = 1,
    ) -> GenerationConfig:
        """Create a typical nucleus sampling config."""
        return cls(
            max_length=max_length,
            do_sample=True,
            num_beams=1,
            temperature=temperature,
            top_k=top_k,
            top_p=top_p,
            num_return_sequences=num_return_sequences,
        )

    @classmethod
    def beam_search(
        cls,
        num_beams: int = 5,
        max_length: int = 20,
        num_return_sequences: int = 1,
        length_penalty: float = 1.0,
        early_stopping: bool = False,
    ) -> GenerationConfig:
        """Create a deterministic beam search config."""
        return cls(
            max_length=max_length,
            do_sample=False,
            num_beams=num_beams,
            num_return_sequences=num_return_sequences,
            length_penalty=length_penalty,
            early_stopping=early_stopping,
        )
