"""Server configuration loaded from JSON or YAML.

A server config names a model preset and the generation defaults a
server applies to every prompt. Values not given fall back to the
defaults below.
"""
from __future__ import annotations

import json
from pathlib import Path

import yaml
from pydantic import BaseModel, model_validator

from cadence.chat import ChatTemplate
from cadence.config import NonNegativeFloat, NonNegativeInt, PositiveInt, Probability
from cadence.config.kvcache import CacheStrategy
from cadence.config.model import PRESETS, LlamaConfig

# The test preset speaks bytes and has no chat markup.
PRESET_TEMPLATES: dict[str, ChatTemplate] = {
    "llama3_2_1b_test": ChatTemplate.PLAIN,
    "llama3_2_1b": ChatTemplate.LLAMA3,
    "llama3_2_3b": ChatTemplate.LLAMA3,
    "llama3_1_8b": ChatTemplate.LLAMA3,
    "llama3_8b": ChatTemplate.LLAMA3,
    "tiny_llama": ChatTemplate.TINY_LLAMA,
}


class ServerConfig(BaseModel):
    """Base class for server configs with file loading."""

    @classmethod
    def from_path(cls, path: Path) -> "ServerConfig":
        """Load and validate a config from a JSON or YAML file."""
        text = path.read_text(encoding="utf-8")
        match path.suffix.lower():
            case ".json":
                payload = json.loads(text)
            case ".yml" | ".yaml":
                payload = yaml.safe_load(text)
            case s:
                raise ValueError(f"Unsupported format '{s}'")

        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise ValueError(f"Config payload must be a dict, got {type(payload)!r}")
        return cls.model_validate(payload)


class ParrotServerConfig(ServerConfig):
    """The parrot server has nothing to configure."""


class LlamaServerConfig(ServerConfig):
    """Generation settings for a Llama server.

    temperature 0 selects greedy (argmax) decoding; anything above
    selects nucleus sampling with top_p. seed 0 draws a fresh seed per
    server.
    """

    preset: str = "llama3_2_1b_test"
    tokenizer_path: str | None = None
    weights: str | None = None
    device: str = "cpu"
    top_p: Probability = 0.9
    temperature: NonNegativeFloat = 0.0
    max_seq_len: PositiveInt = 1024
    sample_len: PositiveInt = 128
    seed: NonNegativeInt = 0
    cache_strategy: CacheStrategy = CacheStrategy.SHIFT
    chat_template: ChatTemplate | None = None

    @model_validator(mode="after")
    def _validate_preset(self) -> "LlamaServerConfig":
        if self.preset not in PRESETS:
            raise ValueError(
                f"Unknown preset {self.preset!r}; expected one of {sorted(PRESETS)}"
            )
        if self.preset != "llama3_2_1b_test" and self.tokenizer_path is None:
            raise ValueError(f"Preset {self.preset!r} requires tokenizer_path")
        return self

    def template(self) -> ChatTemplate:
        """The chat template to use, defaulting to the preset's own."""
        if self.chat_template is not None:
            return self.chat_template
        return PRESET_TEMPLATES[self.preset]

    def llama_config(self) -> LlamaConfig:
        """Build the LlamaConfig for the selected preset."""
        overrides: dict[str, object] = {
            "max_seq_len": self.max_seq_len,
            "cache": {"strategy": self.cache_strategy},
        }
        factory = PRESETS[self.preset]
        if self.preset == "llama3_2_1b_test":
            return factory(**overrides)
        return factory(self.tokenizer_path, **overrides)
