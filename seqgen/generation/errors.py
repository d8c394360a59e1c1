"""Generation errors."""


class GenerationError(Exception):
    """Raised when decoding needs a special token the tokenizer does not provide."""
    pass
