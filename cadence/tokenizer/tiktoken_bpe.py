"""Tiktoken-based tokenizers.

Two sources are supported: a named tiktoken encoding such as
"cl100k_base", or a Llama 3 `tokenizer.model` rank file, which is a
tiktoken BPE table plus 256 special tokens appended after the base
vocabulary.
"""
from __future__ import annotations

import importlib
import importlib.util
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from typing_extensions import override

from cadence.config.tokenizer import TiktokenTokenizerConfig
from cadence.errors import LoadError
from cadence.tokenizer.base import Tokenizer

LLAMA3_PATTERN = (
    r"(?i:'s|'t|'re|'ve|'m|'ll|'d)|[^\r\n\p{L}\p{N}]?\p{L}+|\p{N}{1,3}|"
    r" ?[^\s\p{L}\p{N}]+[\r\n]*|\s*[\r\n]+|\s+(?!\S)|\s+"
)
LLAMA3_NUM_SPECIAL = 256
LLAMA3_SPECIAL = [
    "<|begin_of_text|>",
    "<|end_of_text|>",
    "<|reserved_special_token_0|>",
    "<|reserved_special_token_1|>",
    "<|finetune_right_pad_id|>",
    "<|step_id|>",
    "<|start_header_id|>",
    "<|end_header_id|>",
    "<|eom_id|>",
    "<|eot_id|>",
    "<|python_tag|>",
]


def _tiktoken() -> Any:
    if importlib.util.find_spec("tiktoken") is None:
        raise ImportError("tiktoken is required for tokenizer=tiktoken")
    return importlib.import_module("tiktoken")


def _llama3_special_tokens(num_base: int) -> dict[str, int]:
    names = LLAMA3_SPECIAL + [
        f"<|reserved_special_token_{i}|>"
        for i in range(2, LLAMA3_NUM_SPECIAL - len(LLAMA3_SPECIAL) + 2)
    ]
    return {name: num_base + i for i, name in enumerate(names)}


class TiktokenTokenizer(Tokenizer):
    """Tiktoken tokenizer; byte-level BPE, so no streaming context is needed."""

    def __init__(self, cfg: TiktokenTokenizerConfig) -> None:
        tiktoken = _tiktoken()
        if cfg.path is not None:
            path = Path(cfg.path)
            if not path.exists():
                raise LoadError(f"Tokenizer file not found: {path}")
            load = importlib.import_module("tiktoken.load")
            ranks = load.load_tiktoken_bpe(str(path))
            special = _llama3_special_tokens(len(ranks))
            self._enc = tiktoken.Encoding(
                name=path.name,
                pat_str=LLAMA3_PATTERN,
                mergeable_ranks=ranks,
                special_tokens=special,
            )
            self._bos_id = special["<|begin_of_text|>"]
            self._eos_id = special["<|end_of_text|>"]
            self._stop_ids = [self._eos_id, special["<|eot_id|>"]]
        else:
            self._enc = tiktoken.get_encoding(str(cfg.encoding))
            self._bos_id = int(self._enc.eot_token)
            self._eos_id = int(self._enc.eot_token)
            self._stop_ids = [self._eos_id]

    @override
    def encode(self, text: str, *, bos: bool = False, eos: bool = False) -> list[int]:
        ids = list(self._enc.encode(text, allowed_special="all"))
        if bos:
            ids.insert(0, self._bos_id)
        if eos:
            ids.append(self._eos_id)
        return ids

    @override
    def decode(self, ids: Sequence[int]) -> str:
        return str(self._enc.decode([int(i) for i in ids]))

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
        return list(self._stop_ids)
