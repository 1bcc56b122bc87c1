"""Tokenizer interface used by the decoding engine.

The engine needs more than encode/decode: it must know which token ids
end a generation and how many trailing tokens a streaming decoder has to
hold back before sub-word pieces can be turned into text reliably.
"""
from __future__ import annotations

import abc
from collections.abc import Sequence


class Tokenizer(abc.ABC):
    """Abstract text ↔ token-id conversion."""

    @abc.abstractmethod
    def encode(self, text: str, *, bos: bool = False, eos: bool = False) -> list[int]:
        """Convert text to token ids, optionally framed by BOS/EOS."""

    @abc.abstractmethod
    def decode(self, ids: Sequence[int]) -> str:
        """Convert token ids back to text."""

    @property
    @abc.abstractmethod
    def bos_id(self) -> int:
        """Beginning-of-sequence token id."""

    @property
    @abc.abstractmethod
    def eos_id(self) -> int:
        """End-of-sequence token id."""

    @abc.abstractmethod
    def stop_ids(self) -> list[int]:
        """Token ids that end a generation."""

    def bos(self) -> str:
        return self.decode([self.bos_id])

    def eos(self) -> str:
        return self.decode([self.eos_id])

    def streaming_context_size(self) -> int:
        """Tokens a streaming decoder must buffer before decoding.

        Zero means every token can be decoded on its own.
        """
        return 0
