import pytest
import torch

from seqgen.generation.beam_hypotheses import BeamHypotheses


def seq(length, fill=4):
    return torch.full((length,), fill, dtype=torch.long)


class TestBeamHypotheses:
    def make(self, num_beams=2, length_penalty=1.0, early_stopping=False):
        return BeamHypotheses(num_beams, max_length=20, length_penalty=length_penalty,
                              early_stopping=early_stopping)

    def test_stores_max_length_minus_one(self):
        assert self.make().max_length == 19

    def test_initially_empty(self):
        hyps = self.make()
        assert len(hyps) == 0
        assert hyps.worst_score == float("inf")

    def test_score_is_length_normalized(self):
        hyps = self.make(length_penalty=2.0)
        hyps.add(seq(4), -8.0)
        assert hyps.beams[0].score == pytest.approx(-0.5)

    def test_fills_to_capacity_regardless_of_score(self):
        hyps = self.make(num_beams=2)
        hyps.add(seq(2), -1.0)
        hyps.add(seq(2), -10.0)
        assert len(hyps) == 2
        assert hyps.worst_score == pytest.approx(-5.0)

    def test_worse_hypothesis_rejected_when_full(self):
        hyps = self.make(num_beams=2)
        hyps.add(seq(2), -1.0)
        hyps.add(seq(2), -2.0)
        hyps.add(seq(2), -6.0)
        assert len(hyps) == 2
        assert sorted(h.score for h in hyps.beams) == pytest.approx([-1.0, -0.5])

    def test_better_hypothesis_evicts_worst(self):
        hyps = self.make(num_beams=2)
        hyps.add(seq(2), -1.0)
        hyps.add(seq(2), -6.0)
        hyps.add(seq(2, fill=7), -2.0)
        assert len(hyps) == 2
        assert hyps.worst_score == pytest.approx(-1.0)
        assert sorted(h.score for h in hyps.beams) == pytest.approx([-1.0, -0.5])

    def test_capacity_and_worst_score_invariants(self):
        torch.manual_seed(0)
        hyps = self.make(num_beams=3)
        for _ in range(50):
            length = int(torch.randint(1, 10, ()).item())
            hyps.add(seq(length), -float(torch.rand(()).item()) * 10)
            assert len(hyps) <= 3
            assert hyps.worst_score == min(h.score for h in hyps.beams)

    def test_not_done_until_full(self):
        hyps = self.make(num_beams=2, early_stopping=True)
        hyps.add(seq(2), -1.0)
        assert not hyps.is_done(best_sum_logprobs=-100.0, current_length=5)

    def test_done_with_early_stopping_once_full(self):
        hyps = self.make(num_beams=1, early_stopping=True)
        hyps.add(seq(2), -100.0)
        assert hyps.is_done(best_sum_logprobs=0.0, current_length=3)

    def test_done_when_running_beams_cannot_improve(self):
        hyps = self.make(num_beams=1)
        hyps.add(seq(2), -2.0)  # score -1.0
        # -12 / 4 = -3.0 cannot beat -1.0
        assert hyps.is_done(best_sum_logprobs=-12.0, current_length=4)
        # -2 / 4 = -0.5 still could
        assert not hyps.is_done(best_sum_logprobs=-2.0, current_length=4)

    def test_best_returns_highest_first(self):
        hyps = self.make(num_beams=3)
        hyps.add(seq(1, fill=4), -3.0)
        hyps.add(seq(1, fill=5), -1.0)
        hyps.add(seq(1, fill=6), -2.0)
        best = hyps.best(2)
        assert [h.tokens.item() for h in best] == [5, 6]
        assert len(hyps) == 3
