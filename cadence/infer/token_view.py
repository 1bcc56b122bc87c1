"""Thread-safe view over the growing token buffer of one generation.

The driver appends the prompt and then one token per step into a buffer
sized up front for the whole generation. Other threads may read the
transcript while it grows, so mutations and reads are serialized.
"""

from __future__ import annotations

from dataclasses import dataclass
import threading

import torch
from torch import Tensor


@dataclass
class TokenView:
    """A pre-sized 1-D token buffer with a logical length."""

    _buf: Tensor
    _length: int
    _lock: threading.Lock

    @staticmethod
    def allocate(*, max_len: int, device: torch.device, dtype: torch.dtype = torch.long) -> "TokenView":
        """Allocate an uninitialized buffer of max_len tokens.

        Only positions below the logical length are valid.
        """
        buf = torch.empty((int(max_len),), device=device, dtype=dtype)
        return TokenView(_buf=buf, _length=0, _lock=threading.Lock())

    @property
    def capacity(self) -> int:
        return int(self._buf.size(0))

    @property
    def length(self) -> int:
        """Current logical length of the sequence."""
        with self._lock:
            return int(self._length)

    def append(self, tokens: Tensor) -> None:
        """Append a 1-D tensor of tokens."""
        if tokens.dim() != 1:
            raise ValueError(f"tokens must be rank-1, got shape {tuple(tokens.shape)}")
        t = int(tokens.size(0))
        if t == 0:
            return
        with self._lock:
            end = self._length + t
            if end > self.capacity:
                raise ValueError(f"buffer overflow: end={end} > max_len={self.capacity}")
            self._buf[self._length:end] = tokens
            self._length = end

    def last(self, n: int = 1) -> Tensor:
        """Return a view of the final n tokens."""
        with self._lock:
            if n > self._length:
                raise ValueError(f"requested {n} tokens, only {self._length} written")
            return self._buf[self._length - n : self._length]

    def as_tensor(self) -> Tensor:
        """Return a view of the buffer up to the current length."""
        with self._lock:
            return self._buf[: self._length]
