import pytest
import torch

from seqgen.protocols import last_token_step_input

PAD, BOS, EOS, UNK = 0, 1, 2, 3
WORDS = ["The", "dog", "cat", "was", "runs", "fast", "and", "a", "big", "small", "house", "tree"]


class WordTokenizer:
    """Whitespace tokenizer over a fixed vocabulary with four special tokens."""

    def __init__(self, pad_token_id=PAD, bos_token_id=BOS, eos_token_ids=(EOS,), unk_token_id=UNK):
        self.vocab = ["<pad>", "<bos>", "<eos>", "<unk>"] + WORDS
        self.ids = {word: i for i, word in enumerate(self.vocab)}
        self.pad_token_id = pad_token_id
        self.bos_token_id = bos_token_id
        self.eos_token_ids = list(eos_token_ids)
        self.unk_token_id = unk_token_id

    @property
    def vocab_size(self):
        return len(self.vocab)

    def encode(self, text):
        return [self.ids.get(word, UNK) for word in text.split()]

    def decode(self, token_ids, skip_special_tokens=True, clean_up_tokenization_spaces=True):
        words = [
            self.vocab[i] for i in token_ids
            if not (skip_special_tokens and i in (PAD, BOS, EOS, UNK))
        ]
        return " ".join(words)


class TableModel:
    """Deterministic model: scores depend on each row's last two tokens.

    The cache is the full token history seen so far, so a cache that is not
    permuted together with the token rows changes the scores.
    """

    def __init__(self, vocab_size=16, seed=0, use_cache=True, blocked=(PAD, BOS, UNK)):
        generator = torch.Generator().manual_seed(seed)
        self.last = torch.randn(vocab_size, vocab_size, generator=generator) * 3
        self.previous = torch.randn(vocab_size, vocab_size, generator=generator)
        self.use_cache = use_cache
        self.blocked = list(blocked)
        self.calls = []

    def logits_for(self, history):
        logits = self.last[history[:, -1]].clone()
        if history.size(1) > 1:
            logits += self.previous[history[:, -2]]
        logits[:, self.blocked] = float("-inf")
        return logits

    def __call__(self, input_ids, cache=None, attention_mask=None):
        self.calls.append(input_ids.clone())
        history = input_ids if cache is None else torch.cat([cache, input_ids], dim=1)
        if attention_mask is not None:
            assert attention_mask.shape == history.shape
        return self.logits_for(history), (history if self.use_cache else None)

    def prepare_step_input(self, input_ids, cache, attention_mask):
        return last_token_step_input(input_ids, cache, attention_mask)

    def reorder_cache(self, cache, beam_indices):
        return cache.index_select(0, beam_indices)


class ScriptedModel:
    """Uncached model that strongly prefers `next_token(row_history)`."""

    def __init__(self, next_token, vocab_size=16):
        self.next_token = next_token
        self.vocab_size = vocab_size

    def __call__(self, input_ids, cache=None, attention_mask=None):
        logits = torch.zeros(input_ids.size(0), self.vocab_size)
        logits[:, [PAD, BOS, UNK]] = float("-inf")
        for row, history in enumerate(input_ids.tolist()):
            logits[row, self.next_token(history)] = 10.0
        return logits, None

    def reorder_cache(self, cache, beam_indices):
        return cache


@pytest.fixture
def tokenizer():
    return WordTokenizer()


@pytest.fixture
def table_model():
    return TableModel()


def tokens_after_first_eos(row, eos=EOS):
    """Tokens following the first eos in a row (empty if there is none)."""
    row = list(row)
    if eos not in row:
        return []
    return row[row.index(eos) + 1:]
