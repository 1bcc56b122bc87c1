"""Incremental token → text decoding.

Sub-word tokenizers cannot always decode one token in isolation: word
boundary markers, merged whitespace and byte fallbacks depend on the
neighbours. The decoder buffers tokens until enough context has arrived,
re-decodes a short overlap with the text already emitted, and returns
only the new suffix. No token-to-character alignment is needed from the
tokenizer.
"""
from __future__ import annotations

from collections.abc import Sequence

from cadence.tokenizer.base import Tokenizer

CONTEXT_OVERLAP = 2


class StreamingDecoder:
    """Turns a token stream into text chunks without duplicating output."""

    def __init__(self, tokenizer: Tokenizer) -> None:
        self.tokenizer = tokenizer
        self.context_size = int(tokenizer.streaming_context_size())
        self.context_overlap = CONTEXT_OVERLAP
        self.buffer: list[int] = []
        self.emitted = 0

    def push_tokens(self, tokens: Sequence[int]) -> str | None:
        """Feed new tokens; return newly decodable text, if any."""
        if self.context_size == 0:
            return self.tokenizer.decode(tokens)

        self.buffer.extend(int(t) for t in tokens)
        if len(self.buffer) - self.emitted < self.context_size:
            return None
        return self._decode_pending()

    def flush(self) -> str | None:
        """Decode whatever is still buffered, regardless of context."""
        if self.context_size == 0 or self.emitted >= len(self.buffer):
            return None
        return self._decode_pending()

    def _decode_pending(self) -> str | None:
        overlap_start = max(0, self.emitted - self.context_overlap)
        decoded = self.tokenizer.decode(self.buffer[overlap_start:])
        overlap = self.tokenizer.decode(self.buffer[overlap_start : self.emitted])

        new_text = decoded[len(overlap):]
        if not new_text:
            return None
        self.emitted = len(self.buffer)
        return new_text
