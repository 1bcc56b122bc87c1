"""Fixed-capacity sequence buffer.

This is the storage primitive behind every KV cache. It holds a
[batch, heads, capacity, dim] tensor and a logical length along the
sequence axis (dim 2). New entries are written at the tail; when the
caller needs room it evicts the oldest entries, moving the survivors to
the front so that [0, len) is always the valid, ordered history.
"""
from __future__ import annotations

import logging

import torch
from torch import Tensor

from cadence.config.kvcache import CacheStrategy
from cadence.errors import CapacityExceeded

logger = logging.getLogger(__name__)

SEQ_DIM = 2


class SequenceBuffer:
    """A preallocated buffer that grows along the sequence axis.

    Appends never reallocate; overflowing the capacity raises
    CapacityExceeded. Eviction follows the configured strategy:
    - SHIFT: copy survivors to the head of the same buffer, staged
      through a scratch tensor allocated once with the buffer
    - SHRINK: copy survivors into a freshly allocated buffer
    Both leave identical contents in [0, len).
    """

    buf: Tensor
    scratch: Tensor | None
    strategy: CacheStrategy
    _len: int

    def __init__(
        self,
        *,
        batch_size: int,
        heads: int,
        capacity: int,
        dim: int,
        device: torch.device,
        dtype: torch.dtype = torch.float32,
        strategy: CacheStrategy = CacheStrategy.SHIFT,
    ) -> None:
        """Allocate storage for `capacity` positions."""
        if int(capacity) <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.buf = torch.zeros(
            (int(batch_size), int(heads), int(capacity), int(dim)),
            device=device,
            dtype=dtype,
        )
        self.strategy = CacheStrategy(strategy)
        self.scratch = (
            torch.empty_like(self.buf) if self.strategy == CacheStrategy.SHIFT else None
        )
        self._len = 0

    @property
    def len(self) -> int:
        """Number of valid entries along the sequence axis."""
        return self._len

    @property
    def capacity(self) -> int:
        return int(self.buf.size(SEQ_DIM))

    def append(self, x: Tensor) -> Tensor:
        """Write x (B, H, T, D) at the tail and return the valid prefix.

        The returned tensor is a view into the buffer covering [0, len)
        for the first B batch rows.
        """
        if x.ndim != 4:
            raise ValueError(f"Expected (B,H,T,D), got {tuple(x.shape)}")
        b, h, t, d = (int(s) for s in x.shape)
        _, heads, _, dim = self.buf.shape
        if b > int(self.buf.size(0)) or h != int(heads) or d != int(dim):
            raise ValueError(
                f"Shape {tuple(x.shape)} does not fit buffer {tuple(self.buf.shape)}"
            )
        if self._len + t > self.capacity:
            raise CapacityExceeded(length=self._len, incoming=t, capacity=self.capacity)

        end = self._len + t
        self.buf[:b, :, self._len:end].copy_(x)
        self._len = end
        return self.buf[:b, :, :end]

    def get(self) -> Tensor:
        """Return a view of all valid entries."""
        return self.buf[:, :, : self._len]

    def evict(self, n: int) -> None:
        """Drop the n oldest entries, moving the rest to the front."""
        n = int(n)
        if n <= 0:
            return
        if n > self._len:
            raise ValueError(f"Cannot evict {n} entries from buffer of length {self._len}")

        keep = self._len - n
        match self.strategy:
            case CacheStrategy.SHRINK:
                fresh = torch.zeros_like(self.buf)
                fresh[:, :, :keep].copy_(self.buf[:, :, n : self._len])
                self.buf = fresh
            case CacheStrategy.SHIFT:
                self._shift(n, keep)
            case _:
                raise ValueError(f"Unknown cache strategy: {self.strategy!r}")
        self._len = keep
        logger.debug("evicted %d entries (%s), %d remain", n, self.strategy.value, keep)

    def _shift(self, n: int, keep: int) -> None:
        """Move [n, n + keep) to [0, keep) in place.

        Source and destination overlap whenever keep > n, so the survivors
        go through the scratch tensor: two copies per eviction whatever n is.
        """
        if keep == 0:
            return
        if self.scratch is None:
            raise RuntimeError("Shift eviction requires a scratch buffer")
        self.scratch[:, :, :keep].copy_(self.buf[:, :, n : n + keep])
        self.buf[:, :, :keep].copy_(self.scratch[:, :, :keep])

    def reset(self) -> None:
        """Forget all entries. The storage is kept as is."""
        self._len = 0
