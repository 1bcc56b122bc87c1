"""KV cache for one attention layer.

Keys and values are cached as (batch, kv_heads, seq, head_dim) so that
attention can read them without another transpose. This class manages a
pair of SequenceBuffers and keeps their lengths in lockstep.
"""
from __future__ import annotations

import torch
from torch import Tensor

from cadence.cache.tensor import SequenceBuffer
from cadence.config.kvcache import CacheStrategy


class KeyValueCache:
    """Stores K and V for one attention layer."""

    key: SequenceBuffer
    value: SequenceBuffer

    def __init__(
        self,
        *,
        batch_size: int,
        kv_heads: int,
        max_seq_len: int,
        head_dim: int,
        device: torch.device,
        dtype: torch.dtype = torch.float32,
        strategy: CacheStrategy = CacheStrategy.SHIFT,
    ) -> None:
        """Allocate K and V storage."""
        self.key = SequenceBuffer(
            batch_size=batch_size,
            heads=kv_heads,
            capacity=max_seq_len,
            dim=head_dim,
            device=device,
            dtype=dtype,
            strategy=strategy,
        )
        self.value = SequenceBuffer(
            batch_size=batch_size,
            heads=kv_heads,
            capacity=max_seq_len,
            dim=head_dim,
            device=device,
            dtype=dtype,
            strategy=strategy,
        )

    @property
    def len(self) -> int:
        """Number of cached positions."""
        return self.key.len

    @property
    def capacity(self) -> int:
        return self.key.capacity

    def forward(self, k: Tensor, v: Tensor) -> tuple[Tensor, Tensor]:
        """Append new K and V and return the full cached history of both."""
        k_all = self.key.append(k)
        v_all = self.value.append(v)
        self._check_sync("append")
        return k_all, v_all

    def evict(self, n: int) -> None:
        """Drop the n oldest positions from both K and V."""
        self.key.evict(n)
        self.value.evict(n)
        self._check_sync("evict")

    def reset(self) -> None:
        self.key.reset()
        self.value.reset()

    def _check_sync(self, op: str) -> None:
        if self.key.len != self.value.len:
            raise RuntimeError(
                f"K/V cache desync after {op}: {self.key.len} != {self.value.len}"
            )
