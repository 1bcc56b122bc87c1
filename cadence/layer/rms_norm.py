"""RMSNorm: the normalization used throughout Llama.

RMSNorm rescales activations by their root mean square. Unlike LayerNorm
it neither subtracts the mean nor adds a bias.
"""
from __future__ import annotations

import torch
from torch import Tensor, nn
from typing_extensions import override

from cadence.config.layer import RMSNormLayerConfig


class RMSNormLayer(nn.Module):
    """Root mean square normalization with a learned per-dimension scale."""

    def __init__(self, config: RMSNormLayerConfig) -> None:
        super().__init__()
        self.config = config
        self.d_model = int(config.d_model)
        self.eps = float(config.eps)
        self.weight = nn.Parameter(torch.ones(self.d_model))

    @override
    def forward(self, x: Tensor) -> Tensor:
        """Compute weight * x / sqrt(mean(x^2) + eps) in float32."""
        if int(x.shape[-1]) != self.d_model:
            raise ValueError(f"Expected x last dim {self.d_model}, got {tuple(x.shape)}")

        x_f = x.float()
        inv_rms = torch.rsqrt(x_f.pow(2).mean(dim=-1, keepdim=True) + self.eps)
        return (x_f * inv_rms).to(dtype=x.dtype) * self.weight
