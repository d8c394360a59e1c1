"""Text generation facade - prompts in, decoded texts out."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import torch

from .beam_search import BeamSearchDecoder
from .errors import GenerationError
from .generation_config import GenerationConfig
from .prompt_encoder import build_attention_mask, encode_prompts
from .sampling_decoder import SamplingDecoder
from ..protocols import LanguageModel, Tokenizer
from ..utils.device import infer_model_device
from ..utils.logging import get_generation_logger

logger = get_generation_logger()


class TextGenerator:
    """Generates text with any model implementing LanguageModel.

    Validates the configuration once, prepares the batched prompt, picks
    the decoder (beam search when num_beams > 1, greedy/sampling otherwise)
    and decodes the resulting token ids back to text.

    Example:
        generator = TextGenerator(model, tokenizer, GenerationConfig(max_length=30, num_beams=3))
        texts = generator.generate(["The dog", "The cat was"])

        # Configuration overrides as keyword arguments
        generator = TextGenerator(model, tokenizer, do_sample=False, num_beams=1)
    """

    def __init__(
        self,
        model: LanguageModel,
        tokenizer: Tokenizer,
        config: GenerationConfig | None = None,
        pad_token_id: int | None = None,
        device: torch.device | str | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the generator.

        Args:
            model: Any model implementing the LanguageModel protocol
            tokenizer: Any tokenizer implementing the Tokenizer protocol
            config: Generation configuration. Built from kwargs when omitted.
            pad_token_id: Padding id. Defaults to the tokenizer's pad id.
            device: Device for input tensors. Defaults to the model's device.
            **kwargs: GenerationConfig fields, used when config is None

        Raises:
            ValueError: If the configuration is invalid
        """
        if config is None:
            config = GenerationConfig(**kwargs)
        elif kwargs:
            raise TypeError("Pass either a GenerationConfig or keyword overrides, not both")

        self.model: LanguageModel = model
        self.tokenizer: Tokenizer = tokenizer
        self.config: GenerationConfig = config
        self.device: torch.device = torch.device(device) if device is not None else infer_model_device(model)

        self.bos_token_id: int | None = tokenizer.bos_token_id
        self.eos_token_ids: list[int] = list(tokenizer.eos_token_ids or [])
        if pad_token_id is None:
            pad_token_id = getattr(tokenizer, "pad_token_id", None)
        self.pad_token_id: int | None = pad_token_id

    @property
    def effective_pad_token_id(self) -> int | None:
        """Configured pad id, else the first end-of-sequence id, else None."""
        if self.pad_token_id is not None:
            return self.pad_token_id
        if self.eos_token_ids:
            return self.eos_token_ids[0]
        return None

    def prepare_inputs(
        self,
        prompts: Sequence[str] | None,
        attention_mask: torch.Tensor | None = None,
    ) -> tuple[torch.Tensor, torch.Tensor]:
        """Build the (unexpanded) prompt batch and its attention mask."""
        if prompts is not None:
            input_ids = encode_prompts(
                self.tokenizer,
                prompts,
                max_length=self.config.max_length,
                pad_token_id=self.effective_pad_token_id,
                device=self.device,
            )
        elif self.bos_token_id is not None:
            input_ids = torch.full((1, 1), self.bos_token_id, dtype=torch.long, device=self.device)
        else:
            raise GenerationError(
                "A tokenizer with a beginning-of-sequence token is required to generate without a prompt"
            )

        if attention_mask is None:
            attention_mask = build_attention_mask(input_ids, self.pad_token_id)
        return input_ids, attention_mask.to(self.device)

    def expand_inputs(
        self,
        input_ids: torch.Tensor,
        attention_mask: torch.Tensor,
    ) -> tuple[torch.Tensor, torch.Tensor, int]:
        """Repeat each prompt for its return sequences and beams.

        Returns:
            Expanded ids, expanded mask and the effective batch size
            (number of independent items handed to the decoder)
        """
        config = self.config
        batch_size, prompt_len = input_ids.shape
        multiplier: int = config.num_return_sequences if config.do_sample else 1
        effective_batch_size: int = batch_size * multiplier

        if config.num_return_sequences > 1 or config.num_beams > 1:
            rows_per_prompt: int = multiplier * config.num_beams
            input_ids = (
                input_ids.unsqueeze(1)
                .expand(batch_size, rows_per_prompt, prompt_len)
                .reshape(-1, prompt_len)
            )
            attention_mask = (
                attention_mask.unsqueeze(1)
                .expand(batch_size, rows_per_prompt, prompt_len)
                .reshape(-1, prompt_len)
            )
        return input_ids, attention_mask, effective_batch_size

    @torch.no_grad()
    def generate_ids(
        self,
        prompts: Sequence[str] | None = None,
        attention_mask: torch.Tensor | None = None,
    ) -> torch.Tensor:
        """Generate token ids, prompt included.

        Args:
            prompts: Prompt texts. None starts every sequence from the bos token.
            attention_mask: Optional mask for the encoded prompts (B, L)

        Returns:
            torch.Tensor: (num_prompts * num_return_sequences, <= max_length)
        """
        input_ids, attention_mask = self.prepare_inputs(prompts, attention_mask)
        input_ids, attention_mask, effective_batch_size = self.expand_inputs(input_ids, attention_mask)
        config = self.config

        if config.num_beams > 1:
            logger.debug(
                f"Beam search: items={effective_batch_size}, num_beams={config.num_beams}, "
                f"do_sample={config.do_sample}, max_length={config.max_length}"
            )
            decoder = BeamSearchDecoder(
                self.model, config, self.effective_pad_token_id, self.eos_token_ids
            )
            return decoder.decode(input_ids, attention_mask, batch_size=effective_batch_size)

        logger.debug(
            f"{'Sampling' if config.do_sample else 'Greedy'} decoding: rows={effective_batch_size}, "
            f"max_length={config.max_length}"
        )
        decoder = SamplingDecoder(self.model, config, self.effective_pad_token_id, self.eos_token_ids)
        return decoder.decode(input_ids, attention_mask)

    def generate(
        self,
        prompts: Sequence[str] | None = None,
        attention_mask: torch.Tensor | None = None,
    ) -> list[str]:
        """Generate texts for a batch of prompts.

        Args:
            prompts: Prompt texts. None starts from the bos token.
            attention_mask: Optional mask for the encoded prompts (B, L)

        Returns:
            list[str]: num_prompts * num_return_sequences texts, grouped by prompt
        """
        output_ids = self.generate_ids(prompts, attention_mask)
        texts: list[str] = [
            self.tokenizer.decode(
                row.tolist(), skip_special_tokens=True, clean_up_tokenization_spaces=True
            )
            for row in output_ids
        ]
        logger.info(f"Generated {len(texts)} sequence(s) of up to {output_ids.size(1)} tokens")
        return texts
