"""Rotary positional encoding settings.

Llama 3.1 and later stretch the rotary frequencies so a model trained on
an 8K context can address a longer one. Low frequencies are divided by
the scale factor, high frequencies are kept, and the band in between is
blended smoothly.
"""
from __future__ import annotations

import math

import torch
from pydantic import model_validator

from cadence.config import Config, PositiveFloat, PositiveInt


class RopeFrequencyScaling(Config):
    """Frequency scaling "by parts" as introduced with Llama 3.1."""

    scale_factor: PositiveFloat = 8.0
    low_freq_factor: PositiveFloat = 1.0
    high_freq_factor: PositiveFloat = 4.0
    old_context_len: PositiveInt = 8192

    @model_validator(mode="after")
    def _validate_factors(self) -> "RopeFrequencyScaling":
        if self.high_freq_factor <= self.low_freq_factor:
            raise ValueError(
                f"high_freq_factor ({self.high_freq_factor}) must exceed "
                f"low_freq_factor ({self.low_freq_factor})"
            )
        return self

    def scale(self, freqs: torch.Tensor) -> torch.Tensor:
        """Apply the scaling to a 1-D tensor of inverse frequencies."""
        low_freq_wavelen = self.old_context_len / self.low_freq_factor
        high_freq_wavelen = self.old_context_len / self.high_freq_factor

        wavelen = 2.0 * math.pi / freqs
        smooth = (self.old_context_len / wavelen - self.low_freq_factor) / (
            self.high_freq_factor - self.low_freq_factor
        )
        blended = (1.0 - smooth) * freqs / self.scale_factor + smooth * freqs

        return torch.where(
            wavelen < high_freq_wavelen,
            freqs,
            torch.where(wavelen > low_freq_wavelen, freqs / self.scale_factor, blended),
        )


class RopeConfig(Config):
    """Rotary encoding base and optional frequency scaling."""

    theta: PositiveFloat = 10000.0
    scaled: RopeFrequencyScaling | None = None
