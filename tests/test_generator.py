import pytest
import torch

from conftest import BOS, EOS, PAD, TableModel, WordTokenizer
from seqgen.generation.errors import GenerationError
from seqgen.generation.generation_config import GenerationConfig
from seqgen.generation.generator import TextGenerator


def expected_greedy_text(model, tokenizer, prompt, max_length):
    history = torch.tensor([tokenizer.encode(prompt)])
    while history.size(1) < max_length:
        next_token = model.logits_for(history).argmax(dim=-1)
        history = torch.cat([history, next_token.unsqueeze(-1)], dim=-1)
        if next_token.item() == EOS:
            break
    return tokenizer.decode(history[0].tolist())


class TestGenerate:
    def test_greedy_follows_argmax_path(self, table_model, tokenizer):
        generator = TextGenerator(table_model, tokenizer, GenerationConfig.greedy(max_length=10))
        texts = generator.generate(["The dog"])
        assert texts == [expected_greedy_text(TableModel(), tokenizer, "The dog", 10)]
        assert texts[0].startswith("The dog")

    def test_greedy_one_text_per_prompt(self, table_model, tokenizer):
        generator = TextGenerator(table_model, tokenizer, GenerationConfig.greedy(max_length=8))
        assert len(generator.generate(["The dog", "The cat was"])) == 2

    def test_sampling_returns_num_return_sequences_per_prompt(self, table_model, tokenizer):
        torch.manual_seed(0)
        config = GenerationConfig.sampling(max_length=8, num_return_sequences=3)
        texts = TextGenerator(table_model, tokenizer, config).generate(["The dog", "The cat was"])
        assert len(texts) == 6
        assert all(text.startswith("The dog") for text in texts[:3])
        assert all(text.startswith("The cat was") for text in texts[3:])

    def test_beam_search_returns_num_return_sequences_per_prompt(self, table_model, tokenizer):
        config = GenerationConfig.beam_search(num_beams=3, max_length=8, num_return_sequences=2)
        texts = TextGenerator(table_model, tokenizer, config).generate(["The dog", "The cat was"])
        assert len(texts) == 4

    def test_sampled_beam_search_returns_num_return_sequences_per_prompt(self, table_model, tokenizer):
        torch.manual_seed(0)
        config = GenerationConfig(num_beams=3, max_length=8, do_sample=True, num_return_sequences=2)
        texts = TextGenerator(table_model, tokenizer, config).generate(["The dog"])
        assert len(texts) == 2

    def test_without_prompt_starts_from_bos(self, table_model, tokenizer):
        generator = TextGenerator(table_model, tokenizer, GenerationConfig.greedy(max_length=6))
        output_ids = generator.generate_ids()
        assert output_ids.size(0) == 1
        assert output_ids[0, 0].item() == BOS

    def test_without_prompt_or_bos_raises(self, table_model):
        tokenizer = WordTokenizer(bos_token_id=None)
        generator = TextGenerator(table_model, tokenizer, GenerationConfig.greedy())
        with pytest.raises(GenerationError):
            generator.generate()

    def test_output_never_exceeds_max_length(self, table_model, tokenizer):
        config = GenerationConfig(max_length=7, num_beams=2, do_sample=False, no_repeat_ngram_size=0)
        output_ids = TextGenerator(table_model, tokenizer, config).generate_ids(["The dog", "a"])
        assert output_ids.size(1) <= 7


class TestConfiguration:
    def test_keyword_overrides_build_config(self, table_model, tokenizer):
        generator = TextGenerator(table_model, tokenizer, do_sample=False, num_beams=1, max_length=5)
        assert generator.config.do_sample is False
        assert generator.config.max_length == 5

    def test_config_and_keywords_are_exclusive(self, table_model, tokenizer):
        with pytest.raises(TypeError):
            TextGenerator(table_model, tokenizer, GenerationConfig(), num_beams=2)

    def test_invalid_config_rejected_before_decoding(self, table_model, tokenizer):
        with pytest.raises(ValueError):
            TextGenerator(table_model, tokenizer, temperature=0.0)
        assert table_model.calls == []

    def test_pad_defaults_to_tokenizer(self, table_model, tokenizer):
        generator = TextGenerator(table_model, tokenizer)
        assert generator.pad_token_id == PAD
        assert generator.effective_pad_token_id == PAD

    def test_effective_pad_falls_back_to_eos(self, table_model):
        generator = TextGenerator(table_model, WordTokenizer(pad_token_id=None))
        assert generator.pad_token_id is None
        assert generator.effective_pad_token_id == EOS

    def test_no_effective_pad_without_eos(self, table_model):
        generator = TextGenerator(table_model, WordTokenizer(pad_token_id=None, eos_token_ids=()))
        assert generator.effective_pad_token_id is None

    def test_explicit_pad_wins(self, table_model, tokenizer):
        generator = TextGenerator(table_model, tokenizer, pad_token_id=9)
        assert generator.effective_pad_token_id == 9

    def test_device_defaults_to_cpu(self, table_model, tokenizer):
        assert TextGenerator(table_model, tokenizer).device == torch.device("cpu")


class TestInputs:
    def test_prepare_inputs_left_pads_and_masks(self, table_model, tokenizer):
        generator = TextGenerator(table_model, tokenizer, GenerationConfig.greedy())
        input_ids, attention_mask = generator.prepare_inputs(["The dog", "cat"])
        assert input_ids.tolist() == [[tokenizer.ids["The"], tokenizer.ids["dog"]], [PAD, tokenizer.ids["cat"]]]
        assert attention_mask.tolist() == [[1, 1], [0, 1]]

    def test_explicit_attention_mask_is_kept(self, table_model, tokenizer):
        generator = TextGenerator(table_model, tokenizer, GenerationConfig.greedy())
        mask = torch.tensor([[0, 1]])
        _, attention_mask = generator.prepare_inputs(["The dog"], mask)
        assert attention_mask.tolist() == [[0, 1]]

    def test_expand_for_sampled_beam_search(self, table_model, tokenizer):
        config = GenerationConfig(num_beams=3, do_sample=True, num_return_sequences=2)
        generator = TextGenerator(table_model, tokenizer, config)
        input_ids, attention_mask = generator.prepare_inputs(["The dog", "cat"])
        expanded_ids, expanded_mask, effective_batch_size = generator.expand_inputs(input_ids, attention_mask)
        assert expanded_ids.shape == (12, 2)
        assert expanded_mask.shape == (12, 2)
        assert effective_batch_size == 4
        assert torch.equal(expanded_ids[:6], input_ids[0].expand(6, 2))

    def test_expand_for_beam_search(self, table_model, tokenizer):
        config = GenerationConfig.beam_search(num_beams=3, num_return_sequences=2)
        generator = TextGenerator(table_model, tokenizer, config)
        input_ids, attention_mask = generator.prepare_inputs(["The dog", "cat"])
        expanded_ids, _, effective_batch_size = generator.expand_inputs(input_ids, attention_mask)
        assert expanded_ids.shape == (6, 2)
        assert effective_batch_size == 2

    def test_no_expansion_for_greedy(self, table_model, tokenizer):
        generator = TextGenerator(table_model, tokenizer, GenerationConfig.greedy())
        input_ids, attention_mask = generator.prepare_inputs(["The dog"])
        expanded_ids, _, effective_batch_size = generator.expand_inputs(input_ids, attention_mask)
        assert expanded_ids is input_ids
        assert effective_batch_size == 1
