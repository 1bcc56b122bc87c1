"""Next-token selection.

Two strategies are provided:
- Argmax: greedy, deterministic, used when temperature is 0
- TopP: nucleus sampling from a seeded generator

The generation driver turns logits into probabilities with
`temperature_scaled_softmax` before handing them to TopP; Argmax works
on either since softmax preserves the ordering.
"""
from __future__ import annotations

import abc
import secrets

import torch
from torch import Tensor
from typing_extensions import override


def temperature_scaled_softmax(logits: Tensor, temperature: float) -> Tensor:
    """softmax(logits / temperature) over the vocabulary axis."""
    if temperature <= 0:
        raise ValueError(f"temperature must be positive, got {temperature}")
    return torch.softmax(logits.float() / float(temperature), dim=-1)


class Sampler(abc.ABC):
    """Picks one token id per batch row from (B, V) scores."""

    @abc.abstractmethod
    def sample(self, scores: Tensor) -> Tensor:
        """Return a (B,) tensor of token ids."""


class Argmax(Sampler):
    """Greedy selection; ties go to the lowest token id."""

    @override
    def sample(self, scores: Tensor) -> Tensor:
        return torch.argmax(scores, dim=-1)


class TopP(Sampler):
    """Nucleus sampling over probabilities.

    Keeps the smallest set of most likely tokens whose mass reaches p,
    renormalizes it, and draws from a generator seeded once at
    construction. The same seed and the same inputs give the same tokens.
    """

    def __init__(self, p: float, seed: int) -> None:
        if not 0.0 < float(p) <= 1.0:
            raise ValueError(f"top_p must be in (0, 1], got {p}")
        self.p = float(p)
        self.seed = int(seed)
        self.generator = torch.Generator(device="cpu")
        self.generator.manual_seed(self.seed)

    @override
    def sample(self, scores: Tensor) -> Tensor:
        probs = scores.detach().float().cpu()
        sorted_probs, sorted_idx = torch.sort(probs, dim=-1, descending=True, stable=True)
        cumulative = torch.cumsum(sorted_probs, dim=-1)
        outside = (cumulative - sorted_probs) >= self.p
        outside[..., 0] = False
        sorted_probs = sorted_probs.masked_fill(outside, 0.0)
        sorted_probs = sorted_probs / sorted_probs.sum(dim=-1, keepdim=True)

        choice = torch.multinomial(sorted_probs, num_samples=1, generator=self.generator)
        return sorted_idx.gather(-1, choice).squeeze(-1).to(scores.device)


def build_sampler(*, temperature: float, top_p: float, seed: int) -> Sampler:
    """TopP when temperature > 0, Argmax otherwise. Seed 0 picks a random seed."""
    if temperature > 0.0:
        return TopP(top_p, seed if seed != 0 else secrets.randbits(63))
    return Argmax()
