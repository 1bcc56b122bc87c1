"""Weight loading from PyTorch and safetensors checkpoints."""
from __future__ import annotations

from cadence.loader.checkpoint import CheckpointLoader, hf_llama_mapping, tie_embeddings

__all__ = ["CheckpointLoader", "hf_llama_mapping", "tie_embeddings"]
