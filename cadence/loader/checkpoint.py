"""Checkpoint loading for PyTorch and safetensors files.

Weights usually come as HuggingFace Llama checkpoints: one or more
safetensors shards, with an index file when sharded. This module reads
them into a flat state dict and translates HuggingFace parameter names
into the names used by `cadence.model.transformer.Transformer`.
"""
from __future__ import annotations

import json
from pathlib import Path

import torch
from safetensors.torch import load_file
from torch import Tensor, nn

from cadence.errors import LoadError


def _safe_torch_load(path: Path) -> dict[str, Tensor]:
    """Load a pickled checkpoint with weights_only=True.

    This prevents pickle-based code execution from untrusted files.
    """
    return torch.load(path, map_location="cpu", weights_only=True)


def hf_llama_mapping(n_layers: int) -> dict[str, str]:
    """Map HuggingFace Llama parameter names to Transformer names."""
    mapping = {
        "model.embed_tokens.weight": "tok_embeddings.weight",
        "model.norm.weight": "norm.weight",
    }
    for i in range(n_layers):
        src = f"model.layers.{i}"
        dst = f"layers.{i}"
        mapping.update(
            {
                f"{src}.self_attn.q_proj.weight": f"{dst}.attention.wq.weight",
                f"{src}.self_attn.k_proj.weight": f"{dst}.attention.wk.weight",
                f"{src}.self_attn.v_proj.weight": f"{dst}.attention.wv.weight",
                f"{src}.self_attn.o_proj.weight": f"{dst}.attention.wo.weight",
                f"{src}.mlp.gate_proj.weight": f"{dst}.feed_forward.w_gate.weight",
                f"{src}.mlp.up_proj.weight": f"{dst}.feed_forward.w_up.weight",
                f"{src}.mlp.down_proj.weight": f"{dst}.feed_forward.w_down.weight",
                f"{src}.input_layernorm.weight": f"{dst}.attention_norm.weight",
                f"{src}.post_attention_layernorm.weight": f"{dst}.ffn_norm.weight",
            }
        )
    mapping["lm_head.weight"] = "output.weight"
    return mapping


def tie_embeddings(state_dict: dict[str, Tensor]) -> dict[str, Tensor]:
    """Reuse the embedding matrix as LM head when a checkpoint has none.

    Llama 3.2 checkpoints tie the two and omit `lm_head.weight`.
    """
    if "lm_head.weight" in state_dict or "model.embed_tokens.weight" not in state_dict:
        return state_dict
    return {**state_dict, "lm_head.weight": state_dict["model.embed_tokens.weight"]}


class CheckpointLoader:
    """Loads state dicts from single files or sharded checkpoints.

    Supports:
    - PyTorch checkpoints (.pt, .pth, .bin)
    - safetensors (.safetensors)
    - Sharded checkpoints through their `.index.json`
    """

    def load(self, path: Path) -> dict[str, Tensor]:
        """Load a state dict, choosing the reader from the file name."""
        path = Path(path)
        if not path.exists():
            raise LoadError(f"Checkpoint not found: {path}")
        if path.name.endswith(".index.json"):
            return self.load_sharded(path)
        if path.suffix == ".safetensors":
            return load_file(str(path), device="cpu")
        return _safe_torch_load(path)

    def load_sharded(self, index_path: Path) -> dict[str, Tensor]:
        """Merge every shard listed in an index file's weight_map."""
        data = json.loads(index_path.read_text(encoding="utf-8"))
        weight_map = data.get("weight_map")
        if not isinstance(weight_map, dict):
            raise LoadError(f"Invalid index file {index_path}: missing weight_map")

        out: dict[str, Tensor] = {}
        for shard in sorted(set(weight_map.values())):
            shard_path = index_path.parent / shard
            if shard_path.name.endswith(".index.json"):
                raise LoadError(f"Shard {shard} is an index file, expected tensor file")
            for key, value in self.load(shard_path).items():
                if key in out:
                    raise LoadError(f"Duplicate key in shards: {key}")
                out[key] = value
        return out

    def load_into(
        self,
        model: nn.Module,
        state_dict: dict[str, Tensor],
        mapping: dict[str, str] | None = None,
    ) -> None:
        """Copy a state dict into model, renaming keys through mapping.

        Every model parameter must be provided; extra or missing keys are
        reported together.
        """
        if mapping is not None:
            missing_src = [src for src in mapping if src not in state_dict]
            if missing_src:
                raise LoadError(f"Checkpoint lacks expected tensors: {missing_src[:5]}")
            state_dict = {dst: state_dict[src] for src, dst in mapping.items()}
        try:
            result = model.load_state_dict(state_dict, strict=False)
        except RuntimeError as e:
            raise LoadError(f"load failed: {e}") from e

        missing, unexpected = result
        if missing or unexpected:
            raise LoadError(f"load failed: missing={missing}, unexpected={unexpected}")
