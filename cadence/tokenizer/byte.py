"""Byte-level tokenizer for tests and the tiny test model.

Each UTF-8 byte is a token. Decoding renders the ids as a list literal,
so generated output from random weights stays printable and easy to
compare.
"""
from __future__ import annotations

from collections.abc import Sequence

from typing_extensions import override

from cadence.tokenizer.base import Tokenizer


class ByteTokenizer(Tokenizer):
    """Bytes in, id lists out. BOS is 0, EOS is 1, generation stops on 2."""

    @override
    def encode(self, text: str, *, bos: bool = False, eos: bool = False) -> list[int]:
        ids = list(text.encode("utf-8"))
        if bos:
            ids = self.encode("[bos]") + ids
        if eos:
            ids = ids + self.encode("[end]")
        return ids

    @override
    def decode(self, ids: Sequence[int]) -> str:
        return str([int(i) for i in ids])

    @property
    @override
    def bos_id(self) -> int:
        return 0

    @property
    @override
    def eos_id(self) -> int:
        return 1

    @override
    def stop_ids(self) -> list[int]:
        return [2]
