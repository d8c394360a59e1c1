"""Aliases for causal language models known to work with the decoders."""

from __future__ import annotations

MODEL_REGISTRY: dict[str, dict[str, str | bool]] = {
    "gpt2": {
        "hf_name": "openai-community/gpt2",
        "trust_remote_code": False,
        "description": "GPT-2 small, the classic left-to-right baseline",
        "params": "124M",
    },
    "gpt2-medium": {
        "hf_name": "openai-community/gpt2-medium",
        "trust_remote_code": False,
        "description": "GPT-2 medium",
        "params": "355M",
    },
    "distilgpt2": {
        "hf_name": "distilbert/distilgpt2",
        "trust_remote_code": False,
        "description": "Distilled GPT-2, fastest option for smoke tests",
        "params": "82M",
    },
    "openai-gpt": {
        "hf_name": "openai-community/openai-gpt",
        "trust_remote_code": False,
        "description": "Original GPT (no beginning-of-sequence token)",
        "params": "117M",
    },
    "tinyllama": {
        "hf_name": "TinyLlama/TinyLlama-1.1B-Chat-v1.0",
        "trust_remote_code": False,
        "description": "TinyLlama 1.1B Chat, small instruction-tuned LLaMA",
        "params": "1.1B",
    },
}
