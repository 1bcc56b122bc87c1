"""Model configuration: transformer shapes and Llama presets.

`TransformerConfig` describes the decoder stack alone. `LlamaConfig` adds
what a runnable model needs around it: rotary settings, cache capacity and
batch size, and the tokenizer. The presets mirror the published Llama 3.x
and TinyLlama architectures plus a tiny test model.
"""
from __future__ import annotations

from typing import Callable

from pydantic import Field, model_validator

from cadence.config import Config, PositiveFloat, PositiveInt
from cadence.config.kvcache import KVCacheConfig
from cadence.config.layer import (
    AttentionLayerConfig,
    RMSNormLayerConfig,
    SwiGLULayerConfig,
)
from cadence.config.rope import RopeConfig, RopeFrequencyScaling
from cadence.config.tokenizer import (
    ByteTokenizerConfig,
    HuggingFaceTokenizerConfig,
    TiktokenTokenizerConfig,
    TokenizerConfig,
)


class TransformerConfig(Config):
    """Shapes of the decoder-only transformer."""

    vocab_size: PositiveInt
    n_layers: PositiveInt
    d_model: PositiveInt
    hidden_size: PositiveInt
    n_heads: PositiveInt
    n_kv_heads: PositiveInt
    max_seq_len: PositiveInt = 128
    norm_eps: PositiveFloat = 1e-5

    def attention(self) -> AttentionLayerConfig:
        return AttentionLayerConfig(
            d_model=self.d_model, n_heads=self.n_heads, n_kv_heads=self.n_kv_heads
        )

    def norm(self) -> RMSNormLayerConfig:
        return RMSNormLayerConfig(d_model=self.d_model, eps=self.norm_eps)

    def ffn(self) -> SwiGLULayerConfig:
        return SwiGLULayerConfig(d_model=self.d_model, d_ff=self.hidden_size)

    @property
    def head_dim(self) -> int:
        return self.d_model // self.n_heads


class LlamaConfig(Config):
    """A complete Llama model: transformer, rotary encoding, cache, tokenizer.

    The rotary table holds `max_seq_len * 5` rows and is re-anchored when
    decoding runs past it, so max_seq_len bounds the attention window and
    not the length of a generation.
    """

    d_model: PositiveInt = 4096
    hidden_size: PositiveInt
    n_layers: PositiveInt = 32
    n_heads: PositiveInt = 32
    n_kv_heads: PositiveInt | None = None
    vocab_size: PositiveInt
    norm_eps: PositiveFloat = 1e-5
    rope: RopeConfig = Field(default_factory=RopeConfig)
    max_seq_len: PositiveInt = 128
    max_batch_size: PositiveInt = 1
    max_context_len: PositiveInt | None = None
    cache: KVCacheConfig = Field(default_factory=KVCacheConfig)
    tokenizer: TokenizerConfig = Field(default_factory=ByteTokenizerConfig)

    @model_validator(mode="after")
    def _validate_context(self) -> "LlamaConfig":
        if self.max_context_len is not None and self.max_seq_len > self.max_context_len:
            raise ValueError(
                f"Maximum sequence length must not exceed {self.max_context_len}, "
                f"got {self.max_seq_len}"
            )
        return self

    @property
    def rope_capacity(self) -> int:
        """Rows in the precomputed rotary table."""
        return self.max_seq_len * 5

    def transformer(self) -> TransformerConfig:
        return TransformerConfig(
            vocab_size=self.vocab_size,
            n_layers=self.n_layers,
            d_model=self.d_model,
            hidden_size=self.hidden_size,
            n_heads=self.n_heads,
            n_kv_heads=self.n_kv_heads if self.n_kv_heads is not None else self.n_heads,
            max_seq_len=self.max_seq_len,
            norm_eps=self.norm_eps,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Presets
    # ─────────────────────────────────────────────────────────────────────

    @classmethod
    def llama3_2_1b_test(cls, **overrides: object) -> "LlamaConfig":
        """Tiny byte-level model with Llama 3.2 structure, for tests."""
        return cls._preset(
            dict(
                hidden_size=128,
                vocab_size=255,
                d_model=64,
                n_layers=2,
                n_heads=4,
                n_kv_heads=2,
                rope=RopeConfig(
                    theta=500000.0, scaled=RopeFrequencyScaling(scale_factor=32.0)
                ),
                tokenizer=ByteTokenizerConfig(),
            ),
            overrides,
        )

    @classmethod
    def llama3_2_1b(cls, tokenizer_path: str, **overrides: object) -> "LlamaConfig":
        return cls._preset(
            dict(
                hidden_size=8192,
                vocab_size=128256,
                d_model=2048,
                n_layers=16,
                n_kv_heads=8,
                rope=RopeConfig(
                    theta=500000.0, scaled=RopeFrequencyScaling(scale_factor=32.0)
                ),
                max_context_len=128 * 1024,
                tokenizer=TiktokenTokenizerConfig(path=tokenizer_path),
            ),
            overrides,
        )

    @classmethod
    def llama3_2_3b(cls, tokenizer_path: str, **overrides: object) -> "LlamaConfig":
        return cls._preset(
            dict(
                hidden_size=8192,
                vocab_size=128256,
                d_model=3072,
                n_layers=28,
                n_heads=24,
                n_kv_heads=8,
                rope=RopeConfig(
                    theta=500000.0, scaled=RopeFrequencyScaling(scale_factor=32.0)
                ),
                max_context_len=128 * 1024,
                tokenizer=TiktokenTokenizerConfig(path=tokenizer_path),
            ),
            overrides,
        )

    @classmethod
    def llama3_1_8b(cls, tokenizer_path: str, **overrides: object) -> "LlamaConfig":
        return cls._preset(
            dict(
                hidden_size=14336,
                vocab_size=128256,
                n_kv_heads=8,
                rope=RopeConfig(theta=500000.0, scaled=RopeFrequencyScaling()),
                max_context_len=128 * 1024,
                tokenizer=TiktokenTokenizerConfig(path=tokenizer_path),
            ),
            overrides,
        )

    @classmethod
    def llama3_8b(cls, tokenizer_path: str, **overrides: object) -> "LlamaConfig":
        return cls._preset(
            dict(
                hidden_size=14336,
                vocab_size=128256,
                n_kv_heads=8,
                rope=RopeConfig(theta=500000.0),
                max_context_len=8 * 1024,
                tokenizer=TiktokenTokenizerConfig(path=tokenizer_path),
            ),
            overrides,
        )

    @classmethod
    def tiny_llama(cls, tokenizer_path: str, **overrides: object) -> "LlamaConfig":
        return cls._preset(
            dict(
                hidden_size=5632,
                vocab_size=32000,
                d_model=2048,
                n_layers=22,
                n_kv_heads=4,
                rope=RopeConfig(theta=10000.0),
                max_context_len=2 * 1024,
                tokenizer=HuggingFaceTokenizerConfig(path=tokenizer_path),
            ),
            overrides,
        )

    @classmethod
    def _preset(cls, base: dict[str, object], overrides: dict[str, object]) -> "LlamaConfig":
        payload = {**base, **{k: v for k, v in overrides.items() if v is not None}}
        return cls.model_validate(payload)


PRESETS: dict[str, Callable[..., LlamaConfig]] = {
    "llama3_2_1b_test": LlamaConfig.llama3_2_1b_test,
    "llama3_2_1b": LlamaConfig.llama3_2_1b,
    "llama3_2_3b": LlamaConfig.llama3_2_3b,
    "llama3_1_8b": LlamaConfig.llama3_1_8b,
    "llama3_8b": LlamaConfig.llama3_8b,
    "tiny_llama": LlamaConfig.tiny_llama,
}
