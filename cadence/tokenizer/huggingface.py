"""SentencePiece-style tokenizers loaded with HuggingFace `tokenizers`.

TinyLlama ships a `tokenizer.json`. Its pieces carry word-boundary
markers and byte fallbacks, so a single token often cannot be decoded on
its own; streaming therefore holds back a few tokens of context.
"""
from __future__ import annotations

import importlib
import importlib.util
from collections.abc import Sequence
from pathlib import Path

from typing_extensions import override

from cadence.config.tokenizer import HuggingFaceTokenizerConfig
from cadence.errors import LoadError
from cadence.tokenizer.base import Tokenizer

STREAMING_CONTEXT_SIZE = 4


class HuggingFaceTokenizer(Tokenizer):
    """Wraps `tokenizers.Tokenizer.from_file`."""

    def __init__(self, cfg: HuggingFaceTokenizerConfig) -> None:
        if importlib.util.find_spec("tokenizers") is None:
            raise ImportError("tokenizers is required for tokenizer=huggingface")
        path = Path(cfg.path)
        if not path.exists():
            raise LoadError(f"Tokenizer file not found: {path}")
        mod = importlib.import_module("tokenizers")
        self._tok = mod.Tokenizer.from_file(str(path))
        self._bos_id = int(cfg.bos_id)
        self._eos_id = int(cfg.eos_id)

    @override
    def encode(self, text: str, *, bos: bool = False, eos: bool = False) -> list[int]:
        ids = list(self._tok.encode(text, add_special_tokens=False).ids)
        if bos:
            ids.insert(0, self._bos_id)
        if eos:
            ids.append(self._eos_id)
        return ids

    @override
    def decode(self, ids: Sequence[int]) -> str:
        return str(self._tok.decode([int(i) for i in ids], skip_special_tokens=False))

    @property
    @override
    def bos_id(self) -> int:
        return self._bos_id

    @property
    @override
    def eos_id(self) -> int:
        return self._eos_id

    @override
    def stop_ids(self) -> list[int]:
        return [self._eos_id]

    @override
    def streaming_context_size(self) -> int:
        return STREAMING_CONTEXT_SIZE
