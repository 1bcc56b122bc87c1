"""Per-model cache set: one KeyValueCache per layer and a shared cursor.

The cursor counts positions currently held by every layer. Each decode
step calls `prepare()` before the forward pass; it makes room for the new
step by evicting the oldest history and returns the causal mask the
attention layers apply over [retained history + current step].
"""
from __future__ import annotations

import logging
from collections.abc import Iterator

import torch
from torch import Tensor

from cadence.cache.layer import KeyValueCache
from cadence.config.kvcache import CacheStrategy
from cadence.errors import MaxSequenceLengthExceeded

logger = logging.getLogger(__name__)


class LayerCacheSet:
    """KV caches for every transformer layer.

    Invariant: once a step has been consumed by all layers, every cache
    holds exactly `len` positions.
    """

    def __init__(
        self,
        *,
        n_layers: int,
        batch_size: int,
        kv_heads: int,
        max_seq_len: int,
        head_dim: int,
        device: torch.device,
        dtype: torch.dtype = torch.float32,
        strategy: CacheStrategy = CacheStrategy.SHIFT,
    ) -> None:
        self.max_seq_len = int(max_seq_len)
        self.device = device
        self._len = 0
        self.layers = [
            KeyValueCache(
                batch_size=batch_size,
                kv_heads=kv_heads,
                max_seq_len=max_seq_len,
                head_dim=head_dim,
                device=device,
                dtype=dtype,
                strategy=strategy,
            )
            for _ in range(int(n_layers))
        ]

    @property
    def len(self) -> int:
        """Positions held by each layer once the current step is consumed."""
        return self._len

    def __len__(self) -> int:
        return len(self.layers)

    def __getitem__(self, index: int) -> KeyValueCache:
        return self.layers[index]

    def __iter__(self) -> Iterator[KeyValueCache]:
        return iter(self.layers)

    def prepare(self, step_len: int) -> Tensor | None:
        """Make room for a step of `step_len` tokens and build its mask.

        Returns a boolean (step_len, len) mask where True marks positions a
        query may attend to, or None for single-token steps.
        """
        step_len = int(step_len)
        if step_len > self.max_seq_len:
            raise MaxSequenceLengthExceeded(step_len, self.max_seq_len)
        if step_len <= 0:
            raise ValueError(f"step_len must be positive, got {step_len}")

        self._len += step_len
        if self._len > self.max_seq_len:
            excess = self._len - self.max_seq_len
            for cache in self.layers:
                cache.evict(excess)
            self._len -= excess
            logger.debug("evicted %d positions from %d layers", excess, len(self.layers))

        if step_len <= 1:
            return None
        return causal_mask(t_q=step_len, t_k=self._len, device=self.device)

    def ensure_consistent(self) -> None:
        """Raise if any layer length differs from the shared cursor."""
        for i, cache in enumerate(self.layers):
            if cache.len != self._len:
                raise RuntimeError(
                    f"Layer {i} cache holds {cache.len} positions, expected {self._len}"
                )

    def reset(self) -> None:
        """Forget all cached positions. Buffers are not cleared."""
        self._len = 0
        for cache in self.layers:
            cache.reset()


def causal_mask(*, t_q: int, t_k: int, device: torch.device) -> Tensor:
    """Lower-triangular mask for t_q new queries over t_k keys.

    The queries are the last t_q of the t_k positions, so query i may see
    keys [0, t_k - t_q + i].
    """
    if t_q > t_k:
        raise ValueError(f"t_q ({t_q}) cannot exceed t_k ({t_k})")
    return torch.ones((t_q, t_k), dtype=torch.bool, device=device).tril(diagonal=t_k - t_q)
