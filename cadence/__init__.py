"""Cadence: in-process LLM inference with streaming output.

Cadence runs autoregressive decoding over Llama-style decoder-only
transformers and streams generated text to a listener as it is produced.

Core pieces:
- Bounded KV caches that evict old history instead of reallocating
- A rotary position tracker that stays aligned with evicted history
- Grouped-query attention over the cached keys and values
- A background decode worker that turns tokens into text and spots stop tokens
"""
