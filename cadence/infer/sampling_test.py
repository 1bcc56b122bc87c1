"""Tests for next-token samplers."""
from __future__ import annotations

import unittest

import torch

from cadence.infer.sampling import (
    Argmax,
    TopP,
    build_sampler,
    temperature_scaled_softmax,
)


class TemperatureSoftmaxTest(unittest.TestCase):
    def test_rows_sum_to_one(self) -> None:
        probs = temperature_scaled_softmax(torch.randn(3, 10), 0.7)
        torch.testing.assert_close(probs.sum(dim=-1), torch.ones(3))

    def test_low_temperature_sharpens(self) -> None:
        logits = torch.tensor([[1.0, 2.0, 3.0]])
        hot = temperature_scaled_softmax(logits, 2.0)
        cold = temperature_scaled_softmax(logits, 0.1)
        self.assertGreater(float(cold[0, 2]), float(hot[0, 2]))

    def test_rejects_zero(self) -> None:
        with self.assertRaises(ValueError):
            temperature_scaled_softmax(torch.zeros(1, 3), 0.0)


class ArgmaxTest(unittest.TestCase):
    def test_picks_highest(self) -> None:
        scores = torch.tensor([[0.1, 0.7, 0.2], [0.5, 0.1, 0.4]])
        self.assertEqual(Argmax().sample(scores).tolist(), [1, 0])

    def test_tie_goes_to_lowest_id(self) -> None:
        scores = torch.tensor([[0.0, 0.0, 0.0]])
        self.assertEqual(Argmax().sample(scores).tolist(), [0])


class TopPTest(unittest.TestCase):
    def test_samples_only_from_nucleus(self) -> None:
        probs = torch.tensor([[0.05, 0.5, 0.15, 0.3]])
        sampler = TopP(0.7, seed=3)
        drawn = {int(sampler.sample(probs)) for _ in range(200)}
        self.assertTrue(drawn <= {1, 3})
        self.assertEqual(drawn, {1, 3})

    def test_tiny_p_keeps_top_token(self) -> None:
        probs = torch.tensor([[0.2, 0.1, 0.6, 0.1]])
        sampler = TopP(1e-6, seed=1)
        for _ in range(20):
            self.assertEqual(int(sampler.sample(probs)), 2)

    def test_same_seed_same_draws(self) -> None:
        probs = torch.softmax(torch.randn(1, 50), dim=-1)
        a = TopP(0.9, seed=1234)
        b = TopP(0.9, seed=1234)
        self.assertEqual(
            [int(a.sample(probs)) for _ in range(30)],
            [int(b.sample(probs)) for _ in range(30)],
        )

    def test_output_shape(self) -> None:
        probs = torch.softmax(torch.randn(4, 9), dim=-1)
        self.assertEqual(TopP(0.9, seed=7).sample(probs).shape, (4,))

    def test_rejects_invalid_p(self) -> None:
        for p in (0.0, -0.1, 1.5):
            with self.assertRaises(ValueError):
                TopP(p, seed=0)


class BuildSamplerTest(unittest.TestCase):
    def test_zero_temperature_is_greedy(self) -> None:
        self.assertIsInstance(build_sampler(temperature=0.0, top_p=0.9, seed=1), Argmax)

    def test_positive_temperature_is_top_p(self) -> None:
        sampler = build_sampler(temperature=0.8, top_p=0.5, seed=42)
        self.assertIsInstance(sampler, TopP)
        assert isinstance(sampler, TopP)
        self.assertEqual(sampler.seed, 42)
        self.assertEqual(sampler.p, 0.5)

    def test_seed_zero_is_randomized(self) -> None:
        sampler = build_sampler(temperature=0.8, top_p=0.9, seed=0)
        assert isinstance(sampler, TopP)
        self.assertNotEqual(sampler.seed, 0)


if __name__ == "__main__":
    unittest.main()
