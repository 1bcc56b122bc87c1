"""Absolute decode position tracking for rotary encoding.

Decoding is unbounded but the rotary table is not. The tracker counts the
absolute position of every step and, whenever a step would run past the
end of the table, re-anchors the table at the current position. Rotary
angles therefore always match the true token positions, even after the
KV cache has evicted the history that preceded them.
"""
from __future__ import annotations

import torch
from torch import Tensor

from cadence.config.model import LlamaConfig
from cadence.layer.rope import RotaryEmbedding


class RotaryPositionTracker:
    """Rotary table plus the decode cursor that indexes into it.

    next_position counts every token prepared so far; step_len is the size
    of the current step; start_offset is the absolute position of table
    row 0.
    """

    def __init__(self, rope: RotaryEmbedding) -> None:
        self.rope = rope
        self.next_position = 0
        self.step_len = 0
        self.start_offset = 0

    @classmethod
    def from_config(cls, config: LlamaConfig, *, device: torch.device) -> "RotaryPositionTracker":
        """Build a tracker with a table of max_seq_len * 5 rows."""
        t = config.transformer()
        rope = RotaryEmbedding(t.head_dim, config.rope_capacity, config.rope, device=device)
        return cls(rope)

    @property
    def capacity(self) -> int:
        return self.rope.capacity

    def prepare(self, step_len: int) -> None:
        """Advance the cursor by one step of `step_len` tokens."""
        step_len = int(step_len)
        if step_len <= 0:
            raise ValueError(f"step_len must be positive, got {step_len}")
        if step_len > self.capacity:
            raise ValueError(
                f"Step of {step_len} tokens exceeds rotary table of {self.capacity}"
            )
        self.step_len = step_len
        self.next_position += step_len
        if self.next_position > self.capacity + self.start_offset:
            start = self.position()
            self.rope.shift(start)
            self.start_offset = start

    def position(self) -> int:
        """Absolute position of the first token of the current step."""
        return self.next_position - self.step_len

    def index(self) -> int:
        """Table row of the first token of the current step."""
        index = self.position() - self.start_offset
        if index < 0:
            raise RuntimeError(
                f"Negative rotary index: position {self.position()}, "
                f"start offset {self.start_offset}"
            )
        return index

    def apply(self, x: Tensor) -> Tensor:
        """Rotate x (B, H, T, D) for the positions of the current step."""
        return self.rope.rotate_at(x, self.index())

    def reset(self) -> None:
        """Return to position 0 with the table anchored at 0."""
        self.next_position = 0
        self.step_len = 0
        self.start_offset = 0
        self.rope.reset()
