"""
tokenizer provides config models for the supported tokenizers.
"""
from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, Field, model_validator


class ByteTokenizerConfig(BaseModel):
    """
    ByteTokenizerConfig configures the byte-level test tokenizer.
    """
    type: Literal["byte"] = "byte"


class TiktokenTokenizerConfig(BaseModel):
    """
    TiktokenTokenizerConfig configures a tiktoken tokenizer.

    Either a named encoding (e.g. "cl100k_base") or the path of a Llama 3
    `tokenizer.model` rank file.
    """
    type: Literal["tiktoken"] = "tiktoken"
    encoding: str | None = None
    path: str | None = None

    @model_validator(mode="after")
    def _validate_source(self) -> "TiktokenTokenizerConfig":
        """
        _validate_source requires exactly one of encoding and path.
        """
        if (self.encoding is None) == (self.path is None):
            raise ValueError("tiktoken tokenizer requires exactly one of encoding or path")
        return self


class HuggingFaceTokenizerConfig(BaseModel):
    """
    HuggingFaceTokenizerConfig configures a `tokenizer.json` file loaded
    with the HuggingFace tokenizers library (SentencePiece-style models).
    """
    type: Literal["huggingface"] = "huggingface"
    path: str
    bos_id: int = 1
    eos_id: int = 2


TokenizerConfig = Annotated[
    ByteTokenizerConfig | TiktokenTokenizerConfig | HuggingFaceTokenizerConfig,
    Field(discriminator="type"),
]
