"""Grouped-query attention with KV caching and rotary positions.

Attention lets each token look at the tokens before it. In grouped-query
attention (GQA) several query heads share one key/value head, which
shrinks the KV cache by n_heads / n_kv_heads. Two entry points are
provided:
- forward_with_cache: incremental decoding against a KeyValueCache
- forward_masked: one-shot scoring of a full sequence, no cache
"""
from __future__ import annotations

import math
from typing import TYPE_CHECKING

import torch
from torch import Tensor, nn
from typing_extensions import override

from cadence.cache.stack import causal_mask
from cadence.config.layer import AttentionLayerConfig

if TYPE_CHECKING:
    from cadence.cache.layer import KeyValueCache
    from cadence.infer.position import RotaryPositionTracker
    from cadence.layer.rope import RotaryEmbedding


def _neg_inf(dtype: torch.dtype) -> float:
    """Return a large negative value safe for the given dtype.

    Float16 has limited range, so we use -65504 instead of -1e9.
    """
    if dtype == torch.float16:
        return -65504.0
    return -1e9


class GroupedQueryAttention(nn.Module):
    """Multi-head attention where query heads share key/value heads.

    Query head h reads key/value head h // group_size. Keys and values are
    never repeated in memory: queries are viewed as (kv_heads, group) and
    the matmul broadcasts each K/V head across its group.
    """

    def __init__(self, config: AttentionLayerConfig) -> None:
        """Create the Q/K/V/O projections (no bias)."""
        super().__init__()
        self.config = config
        self.d_model = int(config.d_model)
        self.n_heads = int(config.n_heads)
        self.n_kv_heads = int(config.kv_heads)
        self.head_dim = int(config.head_dim)

        if self.n_heads % self.n_kv_heads != 0:
            raise ValueError(
                f"n_heads ({self.n_heads}) must be divisible by "
                f"n_kv_heads ({self.n_kv_heads})"
            )
        self.group_size = self.n_heads // self.n_kv_heads

        self.wq = nn.Linear(self.d_model, self.n_heads * self.head_dim, bias=False)
        self.wk = nn.Linear(self.d_model, self.n_kv_heads * self.head_dim, bias=False)
        self.wv = nn.Linear(self.d_model, self.n_kv_heads * self.head_dim, bias=False)
        self.wo = nn.Linear(self.n_heads * self.head_dim, self.d_model, bias=False)
        self._scale = 1.0 / math.sqrt(self.head_dim)

    def _shape(self, x: Tensor, n_heads: int) -> Tensor:
        """Reshape (B, T, H * hd) → (B, H, T, hd)."""
        B, T, _ = x.shape
        return x.view(B, T, n_heads, self.head_dim).transpose(1, 2)

    def _merge(self, x: Tensor) -> Tensor:
        """Reshape (B, H, T, hd) → (B, T, H * hd)."""
        B, H, T, hd = x.shape
        return x.transpose(1, 2).contiguous().view(B, T, H * hd)

    def _project(self, x: Tensor) -> tuple[Tensor, Tensor, Tensor]:
        if x.ndim != 3:
            raise ValueError(f"Expected (B,T,D), got {tuple(x.shape)}")
        if int(x.shape[-1]) != self.d_model:
            raise ValueError(f"Expected last dim {self.d_model}, got {tuple(x.shape)}")
        q = self._shape(self.wq(x), self.n_heads)
        k = self._shape(self.wk(x), self.n_kv_heads)
        v = self._shape(self.wv(x), self.n_kv_heads)
        return q, k, v

    def _attend(self, q: Tensor, k: Tensor, v: Tensor, mask: Tensor | None) -> Tensor:
        """softmax(Q·Kᵀ / sqrt(hd), masked) · V with K/V broadcast per group.

        q: (B, H, Tq, hd), k/v: (B, KV, Tk, hd), mask: (Tq, Tk) with True
        where attention is allowed.
        """
        B, H, Tq, hd = q.shape
        qg = q.reshape(B, self.n_kv_heads, self.group_size, Tq, hd)
        kg = k.unsqueeze(2)
        vg = v.unsqueeze(2)

        scores = torch.matmul(qg, kg.transpose(-2, -1)) * self._scale
        if mask is not None:
            scores = scores.masked_fill(~mask, _neg_inf(scores.dtype))
        probs = torch.softmax(scores.float(), dim=-1).to(dtype=v.dtype)
        out = torch.matmul(probs, vg)
        return out.reshape(B, H, Tq, hd)

    def forward_with_cache(
        self,
        x: Tensor,
        cache: "KeyValueCache",
        pos: "RotaryPositionTracker",
        mask: Tensor | None = None,
    ) -> Tensor:
        """Attend from the current step to the cached history.

        Q and K are rotated at the tracker's current index, K/V are pushed
        into the cache, and the step attends over the full valid history.
        """
        T = int(x.size(1))
        q, k, v = self._project(x)
        q = pos.apply(q)
        k = pos.apply(k)

        k_all, v_all = cache.forward(k, v)
        if mask is None and T > 1:
            mask = causal_mask(t_q=T, t_k=int(k_all.size(2)), device=x.device)

        out = self._attend(q, k_all, v_all, mask)
        return self.wo(self._merge(out))

    def forward_masked(self, x: Tensor, rotary: "RotaryEmbedding") -> Tensor:
        """Attend over x alone with a fresh causal mask, positions from 0."""
        T = int(x.size(1))
        q, k, v = self._project(x)
        q = rotary.rotate(q, 0)
        k = rotary.rotate(k, 0)
        mask = causal_mask(t_q=T, t_k=T, device=x.device) if T > 1 else None
        out = self._attend(q, k, v, mask)
        return self.wo(self._merge(out))

    @override
    def forward(
        self,
        x: Tensor,
        *,
        cache: "KeyValueCache | None" = None,
        pos: "RotaryPositionTracker | None" = None,
        mask: Tensor | None = None,
        rotary: "RotaryEmbedding | None" = None,
    ) -> Tensor:
        """Dispatch to the cached or the one-shot path.

        Args:
            x: Input features (B, T, d_model)
            cache: Layer cache for incremental decoding
            pos: Position tracker, required with cache
            mask: Optional (T, S) mask from LayerCacheSet.prepare
            rotary: Rotary table, required without cache
        """
        if cache is not None:
            if pos is None:
                raise ValueError("Cached attention requires a position tracker")
            return self.forward_with_cache(x, cache, pos, mask)
        if rotary is None:
            raise ValueError("Uncached attention requires a rotary embedding")
        return self.forward_masked(x, rotary)
