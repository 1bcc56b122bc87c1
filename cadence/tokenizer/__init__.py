"""Tokenizers: text ↔ token ids plus the metadata decoding needs.

Usage:
    from cadence.tokenizer import build_tokenizer

    tokenizer = build_tokenizer(config.tokenizer)
    ids = tokenizer.encode("Hello")
"""
from __future__ import annotations

from cadence.config.tokenizer import (
    ByteTokenizerConfig,
    HuggingFaceTokenizerConfig,
    TiktokenTokenizerConfig,
    TokenizerConfig,
)
from cadence.tokenizer.base import Tokenizer
from cadence.tokenizer.byte import ByteTokenizer


def build_tokenizer(cfg: TokenizerConfig) -> Tokenizer:
    """Build a Tokenizer from config.

    Backends with third-party dependencies are imported only when selected.
    """
    match cfg:
        case ByteTokenizerConfig():
            return ByteTokenizer()
        case TiktokenTokenizerConfig():
            from cadence.tokenizer.tiktoken_bpe import TiktokenTokenizer

            return TiktokenTokenizer(cfg)
        case HuggingFaceTokenizerConfig():
            from cadence.tokenizer.huggingface import HuggingFaceTokenizer

            return HuggingFaceTokenizer(cfg)
        case _:
            raise ValueError(f"Unsupported tokenizer config: {type(cfg)!r}")


__all__ = ["ByteTokenizer", "Tokenizer", "build_tokenizer"]
