"""Hugging Face adapters for the model and tokenizer collaborators."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

import torch
from transformers import AutoModelForCausalLM, AutoTokenizer

from ..generation import GenerationConfig, TextGenerator
from ..protocols import last_token_step_input
from ..utils.device import resolve_device
from ..utils.logging import get_data_logger
from .registry import MODEL_REGISTRY

logger = get_data_logger()


class ModelLoadingError(Exception):
    """Raised when a model alias or path cannot be resolved."""
    pass


def resolve_model_name(model_name_or_path: str) -> tuple[str, bool]:
    """Map a registry alias or local path to a from_pretrained name.

    Returns:
        Tuple of (name or path, trust_remote_code)
    """
    if Path(model_name_or_path).exists():
        return model_name_or_path, False

    info = MODEL_REGISTRY.get(model_name_or_path.lower())
    if info is not None:
        return str(info["hf_name"]), bool(info["trust_remote_code"])

    # Treat anything else as a Hugging Face hub name
    return model_name_or_path, False


class HFLanguageModel:
    """LanguageModel adapter around a transformers causal LM.

    Feeds only the newest token once a cache exists and returns the
    last-position logits with the model's past_key_values. Position ids
    are counted over attended tokens only, so left-padded prompts start
    at position 0.
    """

    def __init__(self, model: Any) -> None:
        self.model = model

    @property
    def device(self) -> torch.device:
        return next(self.model.parameters()).device

    @torch.no_grad()
    def __call__(
        self,
        input_ids: torch.Tensor,
        cache: Any | None = None,
        attention_mask: torch.Tensor | None = None,
    ) -> tuple[torch.Tensor, Any | None]:
        position_ids: torch.Tensor | None = None
        if attention_mask is not None:
            position_ids = attention_mask.long().cumsum(-1) - 1
            position_ids = position_ids.masked_fill(attention_mask == 0, 1)
            # Only the positions of the tokens fed this step
            position_ids = position_ids[:, -input_ids.size(1):]

        outputs = self.model(
            input_ids=input_ids,
            past_key_values=cache,
            attention_mask=attention_mask,
            position_ids=position_ids,
            use_cache=True,
        )
        return outputs.logits[:, -1, :], outputs.past_key_values

    def prepare_step_input(
        self,
        input_ids: torch.Tensor,
        cache: Any | None,
        attention_mask: torch.Tensor,
    ) -> tuple[torch.Tensor, Any | None]:
        return last_token_step_input(input_ids, cache, attention_mask)

    def reorder_cache(self, cache: Any, beam_indices: torch.Tensor) -> Any:
        """Permute past_key_values along the batch dimension."""
        if hasattr(cache, "reorder_cache"):
            # transformers Cache objects reorder themselves
            cache.reorder_cache(beam_indices)
            return cache
        return tuple(
            tuple(tensor.index_select(0, beam_indices.to(tensor.device)) for tensor in layer)
            for layer in cache
        )


class HFTokenizer:
    """Tokenizer adapter around a transformers tokenizer."""

    def __init__(self, tokenizer: Any) -> None:
        self.tokenizer = tokenizer
        self.bos_token_id: int | None = tokenizer.bos_token_id
        self.eos_token_ids: list[int] = (
            [tokenizer.eos_token_id] if tokenizer.eos_token_id is not None else []
        )
        self.unk_token_id: int | None = tokenizer.unk_token_id
        self.pad_token_id: int | None = tokenizer.pad_token_id

    def encode(self, text: str) -> list[int]:
        return self.tokenizer.encode(text, add_special_tokens=False)

    def decode(
        self,
        token_ids: Sequence[int],
        skip_special_tokens: bool = True,
        clean_up_tokenization_spaces: bool = True,
    ) -> str:
        return self.tokenizer.decode(
            list(token_ids),
            skip_special_tokens=skip_special_tokens,
            clean_up_tokenization_spaces=clean_up_tokenization_spaces,
        )


def load_tokenizer(model_name_or_path: str) -> HFTokenizer:
    """Load a tokenizer, preferring the local Hugging Face cache."""
    name, trust_remote_code = resolve_model_name(model_name_or_path)
    try:
        tokenizer = AutoTokenizer.from_pretrained(
            name, trust_remote_code=trust_remote_code, local_files_only=True
        )
    except OSError:
        logger.info(f"Tokenizer for {name} not cached, downloading...")
        tokenizer = AutoTokenizer.from_pretrained(
            name, trust_remote_code=trust_remote_code, local_files_only=False
        )
    return HFTokenizer(tokenizer)


def load_model(
    model_name_or_path: str,
    device: str | torch.device | None = None,
    dtype: torch.dtype = torch.float32,
) -> HFLanguageModel:
    """Load a causal LM in eval mode, preferring the local Hugging Face cache."""
    name, trust_remote_code = resolve_model_name(model_name_or_path)
    device = resolve_device(str(device)) if device is not None else resolve_device()
    logger.info(f"Loading model: {name}")

    try:
        model = AutoModelForCausalLM.from_pretrained(
            name, dtype=dtype, trust_remote_code=trust_remote_code, local_files_only=True
        )
    except OSError:
        logger.info(f"{name} not cached, downloading...")
        try:
            model = AutoModelForCausalLM.from_pretrained(
                name, dtype=dtype, trust_remote_code=trust_remote_code, local_files_only=False
            )
        except OSError as e:
            raise ModelLoadingError(f"Could not load model '{model_name_or_path}': {e}") from e

    logger.info(f"Moving model to {device}...")
    model = model.to(device).eval()
    total_params = sum(p.numel() for p in model.parameters())
    logger.info(f"Model ready ({total_params:,} params)")
    return HFLanguageModel(model)


def load_generator(
    model_name_or_path: str,
    config: GenerationConfig | None = None,
    device: str | torch.device | None = None,
) -> TextGenerator:
    """Load model and tokenizer and wrap them in a TextGenerator."""
    tokenizer = load_tokenizer(model_name_or_path)
    model = load_model(model_name_or_path, device=device)
    return TextGenerator(model, tokenizer, config=config or GenerationConfig())
