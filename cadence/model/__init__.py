"""Llama-style decoder models.

- Transformer: the nn.Module (embedding, blocks, norm, LM head)
- Llama: a Transformer plus tokenizer, KV caches and rotary tracker
"""
from __future__ import annotations
