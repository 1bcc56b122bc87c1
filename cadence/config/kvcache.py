"""KV-cache configuration.

Caches are preallocated for max_seq_len positions per layer. When a new
step does not fit, the oldest positions are evicted. The strategy decides
how the surviving tail is moved to the front of the buffer.
"""
from __future__ import annotations

import enum

from cadence.config import Config


class CacheStrategy(str, enum.Enum):
    """How a full sequence buffer makes room.

    SHIFT: Copy the tail to the head of the same buffer (no allocation)
    SHRINK: Copy the tail into a freshly allocated buffer
    """

    SHIFT = "shift"
    SHRINK = "shrink"


class KVCacheConfig(Config):
    """Storage settings shared by every layer cache."""

    strategy: CacheStrategy = CacheStrategy.SHIFT
