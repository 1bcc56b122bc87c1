"""Rotary positional embeddings (RoPE) over a fixed-size table.

RoPE encodes position by rotating pairs of query/key dimensions by an
angle proportional to the token position. The cos/sin table covers a
window of `capacity` positions starting at `start`; long generations
move the window forward with `shift()` instead of growing the table.
"""
from __future__ import annotations

import logging

import torch
from torch import Tensor, nn

from cadence.config.rope import RopeConfig

logger = logging.getLogger(__name__)


class RotaryEmbedding(nn.Module):
    """RoPE with a precomputed, re-anchorable cos/sin table.

    Row r of the table holds the angles for absolute position start + r.
    Rotation uses the half-split layout: dimension i is paired with
    dimension i + rot_dim/2.
    """

    inv_freq: Tensor
    cos: Tensor
    sin: Tensor

    def __init__(
        self,
        rot_dim: int,
        capacity: int,
        config: RopeConfig | None = None,
        *,
        device: torch.device | None = None,
    ) -> None:
        """Precompute the table for positions [0, capacity).

        Args:
            rot_dim: Number of dimensions to rotate (must be even)
            capacity: Number of positions held by the table
            config: Base frequency and optional frequency scaling
        """
        super().__init__()
        if rot_dim % 2 != 0:
            raise ValueError(f"rot_dim must be even, got {rot_dim}")
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        config = config if config is not None else RopeConfig()
        self.rot_dim = int(rot_dim)
        self.capacity = int(capacity)
        self.start = 0

        inv_freq = 1.0 / (
            config.theta
            ** (
                torch.arange(0, self.rot_dim, 2, dtype=torch.float32, device=device)
                / float(self.rot_dim)
            )
        )
        if config.scaled is not None:
            inv_freq = config.scaled.scale(inv_freq)
        self.register_buffer("inv_freq", inv_freq, persistent=False)

        t = torch.arange(self.capacity, dtype=torch.float32, device=device)
        freqs = torch.outer(t, inv_freq)
        self.register_buffer("cos", torch.cos(freqs), persistent=False)
        self.register_buffer("sin", torch.sin(freqs), persistent=False)

    def shift(self, start: int) -> None:
        """Re-anchor the table so that row 0 is absolute position `start`.

        Every row is rotated by the same delta angle, so only one row of
        trig functions is evaluated.
        """
        start = int(start)
        delta = start - self.start
        if delta == 0:
            return
        angle = float(delta) * self.inv_freq.to(torch.float64)
        cos_d = torch.cos(angle).to(self.cos.dtype)
        sin_d = torch.sin(angle).to(self.sin.dtype)
        cos_new = self.cos * cos_d - self.sin * sin_d
        sin_new = self.sin * cos_d + self.cos * sin_d
        self.cos.copy_(cos_new)
        self.sin.copy_(sin_new)
        logger.debug("rotary table re-anchored from %d to %d", self.start, start)
        self.start = start

    def reset(self) -> None:
        """Re-anchor the table at position 0."""
        self.shift(0)

    def rotate_at(self, x: Tensor, index: int) -> Tensor:
        """Rotate x (B, H, T, D) using table rows [index, index + T)."""
        t = int(x.size(-2))
        if index < 0 or index + t > self.capacity:
            raise ValueError(
                f"Rotary rows [{index}, {index + t}) outside table of {self.capacity}"
            )
        cos = self.cos[index : index + t]
        sin = self.sin[index : index + t]
        return _rotate(x, cos, sin, self.rot_dim)

    def rotate(self, x: Tensor, pos_offset: int = 0) -> Tensor:
        """Rotate x (B, H, T, D) for absolute positions starting at pos_offset.

        Computes the angles directly; used for one-shot scoring where the
        decode table may be anchored elsewhere.
        """
        t = torch.arange(
            pos_offset, pos_offset + int(x.size(-2)), device=x.device, dtype=torch.float32
        )
        freqs = torch.outer(t, self.inv_freq.to(device=x.device))
        return _rotate(x, torch.cos(freqs), torch.sin(freqs), self.rot_dim)


def _rotate(x: Tensor, cos: Tensor, sin: Tensor, rot: int) -> Tensor:
    """Half-split rotation of the first `rot` dims of x.

    The first rot dims are rotated; the rest pass through unchanged.
    """
    if rot > int(x.size(-1)):
        raise ValueError(f"rot_dim {rot} > head_dim {int(x.size(-1))}")
    cos = cos.to(dtype=x.dtype).unsqueeze(0).unsqueeze(0)
    sin = sin.to(dtype=x.dtype).unsqueeze(0).unsqueeze(0)

    x_rot = x[..., :rot]
    x_pass = x[..., rot:]

    x1 = x_rot[..., : rot // 2]
    x2 = x_rot[..., rot // 2 : rot]
    y1 = x1 * cos - x2 * sin
    y2 = x1 * sin + x2 * cos

    return torch.cat([y1, y2, x_pass], dim=-1)
