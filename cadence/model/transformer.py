"""Decoder-only transformer in the Llama layout.

Each block is pre-norm: x + attention(norm(x)), then + ffn(norm(x)).
Blocks are built from their configs through `Config.build()`.
"""
from __future__ import annotations

from torch import Tensor, nn
from typing_extensions import override

from cadence.cache.stack import LayerCacheSet
from cadence.cache.layer import KeyValueCache
from cadence.config.model import TransformerConfig
from cadence.infer.position import RotaryPositionTracker
from cadence.layer.rope import RotaryEmbedding


class TransformerBlock(nn.Module):
    """One pre-norm attention + SwiGLU block."""

    def __init__(self, config: TransformerConfig) -> None:
        super().__init__()
        self.attention = config.attention().build()
        self.attention_norm = config.norm().build()
        self.feed_forward = config.ffn().build()
        self.ffn_norm = config.norm().build()

    @override
    def forward(
        self,
        x: Tensor,
        *,
        cache: KeyValueCache | None = None,
        pos: RotaryPositionTracker | None = None,
        mask: Tensor | None = None,
        rotary: RotaryEmbedding | None = None,
    ) -> Tensor:
        h = x + self.attention(
            self.attention_norm(x), cache=cache, pos=pos, mask=mask, rotary=rotary
        )
        return h + self.feed_forward(self.ffn_norm(h))


class Transformer(nn.Module):
    """Token embedding, decoder blocks, final norm and LM head."""

    def __init__(self, config: TransformerConfig) -> None:
        super().__init__()
        self.config = config
        self.tok_embeddings = nn.Embedding(config.vocab_size, config.d_model)
        self.layers = nn.ModuleList(TransformerBlock(config) for _ in range(config.n_layers))
        self.norm = config.norm().build()
        self.output = nn.Linear(config.d_model, config.vocab_size, bias=False)

    @override
    def forward(
        self,
        tokens: Tensor,
        cache: LayerCacheSet,
        pos: RotaryPositionTracker,
        mask: Tensor | None = None,
    ) -> Tensor:
        """Run one decode step and return logits (B, T, vocab).

        `cache.prepare()` and `pos.prepare()` must already have been
        called for this step; `mask` is what `cache.prepare()` returned.
        """
        if len(cache) != len(self.layers):
            raise ValueError(f"Expected {len(self.layers)} layer caches, got {len(cache)}")
        h = self.tok_embeddings(tokens)
        for layer, layer_cache in zip(self.layers, cache):
            h = layer(h, cache=layer_cache, pos=pos, mask=mask)
        cache.ensure_consistent()
        return self.output(self.norm(h))

    def forward_masked(self, tokens: Tensor, rotary: RotaryEmbedding) -> Tensor:
        """Score a full sequence without touching any cache."""
        h = self.tok_embeddings(tokens)
        for layer in self.layers:
            h = layer(h, rotary=rotary)
        return self.output(self.norm(h))
