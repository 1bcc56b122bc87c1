"""Layer configuration with discriminated unions.

Each building block of a decoder layer (attention, MLP, normalization) has
its own config class. The `type` field doubles as the discriminator and as
the pointer `Config.build()` follows to construct the module.
"""
from __future__ import annotations

import enum
from typing import Annotated, Literal, TypeAlias

from pydantic import Field, model_validator

from cadence.config import Config, PositiveFloat, PositiveInt, ValidationType


class LayerType(str, enum.Enum):
    """Layer types known to `Config.build()`.

    The value is the class name and the lowercased member name is the
    module under `cadence.layer` that defines it.
    """

    ATTENTION = "GroupedQueryAttention"
    RMS_NORM = "RMSNormLayer"
    SWIGLU = "SwiGLULayer"

    @staticmethod
    def module_name() -> str:
        """Return the Python package containing layer implementations."""
        return "cadence.layer"


class RMSNormLayerConfig(Config):
    """Configuration for RMSNorm."""

    type: Literal[LayerType.RMS_NORM] = LayerType.RMS_NORM
    d_model: PositiveInt
    eps: PositiveFloat = 1e-5


class SwiGLULayerConfig(Config):
    """Configuration for the SwiGLU feed-forward block."""

    type: Literal[LayerType.SWIGLU] = LayerType.SWIGLU
    d_model: PositiveInt
    d_ff: PositiveInt
    bias: bool = False


class AttentionLayerConfig(Config):
    """Configuration for grouped-query attention.

    n_kv_heads defaults to n_heads (plain multi-head attention). Query
    heads are split into n_kv_heads groups that share one key/value head.
    """

    type: Literal[LayerType.ATTENTION] = LayerType.ATTENTION
    d_model: PositiveInt
    n_heads: PositiveInt
    n_kv_heads: PositiveInt | None = None

    @model_validator(mode="after")
    def _validate_heads(self) -> "AttentionLayerConfig":
        Config.check(self.d_model, ValidationType.SHOULD_BE_MULTIPLE_OF, self.n_heads)
        Config.check(self.n_heads, ValidationType.SHOULD_BE_MULTIPLE_OF, self.kv_heads)
        if self.head_dim % 2 != 0:
            raise ValueError(f"head_dim must be even for rotary encoding, got {self.head_dim}")
        return self

    @property
    def head_dim(self) -> int:
        """Per-head dimension."""
        return self.d_model // self.n_heads

    @property
    def kv_heads(self) -> int:
        """Number of key/value heads."""
        return self.n_kv_heads if self.n_kv_heads is not None else self.n_heads

    @property
    def group_size(self) -> int:
        """Query heads served by each key/value head."""
        return self.n_heads // self.kv_heads


LayerConfig: TypeAlias = Annotated[
    RMSNormLayerConfig | SwiGLULayerConfig | AttentionLayerConfig,
    Field(discriminator="type"),
]
