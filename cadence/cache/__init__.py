"""KV cache construction and management.

During decoding, attention layers need the keys and values of every past
token still inside the window. Recomputing them each step would be
quadratic, so they are cached. This package provides:
- SequenceBuffer: fixed-capacity storage with Shift/Shrink eviction
- KeyValueCache: a synchronized K/V pair for one layer
- LayerCacheSet: all layers plus the shared cursor and causal mask
"""
from __future__ import annotations

import torch

from cadence.cache.layer import KeyValueCache
from cadence.cache.stack import LayerCacheSet, causal_mask
from cadence.cache.tensor import SequenceBuffer
from cadence.config.model import LlamaConfig


class Cache:
    """Factory for model-sized cache sets."""

    @staticmethod
    def build(
        config: LlamaConfig,
        *,
        device: torch.device,
        dtype: torch.dtype = torch.float32,
    ) -> LayerCacheSet:
        """Build one cache per layer sized for the model's KV heads."""
        t = config.transformer()
        return LayerCacheSet(
            n_layers=t.n_layers,
            batch_size=config.max_batch_size,
            kv_heads=t.n_kv_heads,
            max_seq_len=t.max_seq_len,
            head_dim=t.head_dim,
            device=device,
            dtype=dtype,
            strategy=config.cache.strategy,
        )


__all__ = ["Cache", "KeyValueCache", "LayerCacheSet", "SequenceBuffer", "causal_mask"]
