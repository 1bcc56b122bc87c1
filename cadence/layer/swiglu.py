"""SwiGLU: the gated feed-forward block used in Llama.

output = down(silu(gate(x)) * up(x)). The hidden width is set per model
(e.g. 8192 for Llama 3.2 1B, 14336 for the 8B models).
"""
from __future__ import annotations

from torch import Tensor, nn
from typing_extensions import override

from cadence.config.layer import SwiGLULayerConfig


class SwiGLULayer(nn.Module):
    """Feed-forward block with gate, up, and down projections."""

    def __init__(self, config: SwiGLULayerConfig) -> None:
        super().__init__()
        self.config = config
        self.d_model = int(config.d_model)
        self.d_ff = int(config.d_ff)
        self.w_gate = nn.Linear(self.d_model, self.d_ff, bias=config.bias)
        self.w_up = nn.Linear(self.d_model, self.d_ff, bias=config.bias)
        self.w_down = nn.Linear(self.d_ff, self.d_model, bias=config.bias)
        self.silu = nn.SiLU()

    @override
    def forward(self, x: Tensor) -> Tensor:
        """Apply silu(gate(x)) * up(x), then project back to d_model."""
        if x.ndim != 3:
            raise ValueError(f"Expected (B,T,D), got {tuple(x.shape)}")
        return self.w_down(self.silu(self.w_gate(x)) * self.w_up(x))
