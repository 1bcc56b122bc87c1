"""Tests for checkpoint reading and HuggingFace name mapping."""
from __future__ import annotations

import json
from pathlib import Path
import tempfile
import unittest

import torch
from safetensors.torch import save_file
from torch import nn

from cadence.errors import LoadError
from cadence.loader import CheckpointLoader, hf_llama_mapping, tie_embeddings


class MappingTest(unittest.TestCase):
    def test_layer_names(self) -> None:
        mapping = hf_llama_mapping(2)
        self.assertEqual(
            mapping["model.layers.1.self_attn.k_proj.weight"], "layers.1.attention.wk.weight"
        )
        self.assertEqual(
            mapping["model.layers.0.mlp.gate_proj.weight"], "layers.0.feed_forward.w_gate.weight"
        )
        self.assertEqual(mapping["lm_head.weight"], "output.weight")
        # 2 globals + head + 9 per layer
        self.assertEqual(len(mapping), 3 + 2 * 9)

    def test_tie_embeddings(self) -> None:
        emb = torch.randn(4, 2)
        tied = tie_embeddings({"model.embed_tokens.weight": emb})
        self.assertIs(tied["lm_head.weight"], emb)

    def test_tie_keeps_existing_head(self) -> None:
        state = {"model.embed_tokens.weight": torch.zeros(1), "lm_head.weight": torch.ones(1)}
        self.assertIs(tie_embeddings(state), state)


class CheckpointLoaderTest(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self.tmp.name)
        self.loader = CheckpointLoader()

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_sharded_index(self) -> None:
        save_file({"a": torch.ones(2)}, str(self.dir / "part-1.safetensors"))
        save_file({"b": torch.zeros(3)}, str(self.dir / "part-2.safetensors"))
        index = self.dir / "model.safetensors.index.json"
        index.write_text(
            json.dumps(
                {"weight_map": {"a": "part-1.safetensors", "b": "part-2.safetensors"}}
            ),
            encoding="utf-8",
        )
        state = self.loader.load(index)
        self.assertEqual(sorted(state), ["a", "b"])
        self.assertEqual(state["b"].shape, (3,))

    def test_duplicate_keys_in_shards(self) -> None:
        save_file({"a": torch.ones(2)}, str(self.dir / "x.safetensors"))
        save_file({"a": torch.ones(2)}, str(self.dir / "y.safetensors"))
        index = self.dir / "m.index.json"
        index.write_text(
            json.dumps({"weight_map": {"a": "x.safetensors", "c": "y.safetensors"}}),
            encoding="utf-8",
        )
        with self.assertRaises(LoadError):
            self.loader.load(index)

    def test_index_without_weight_map(self) -> None:
        index = self.dir / "m.index.json"
        index.write_text("{}", encoding="utf-8")
        with self.assertRaises(LoadError):
            self.loader.load(index)

    def test_load_into_reports_missing_source(self) -> None:
        model = nn.Linear(2, 2, bias=False)
        with self.assertRaises(LoadError):
            self.loader.load_into(model, {}, {"w": "weight"})

    def test_load_into_with_mapping(self) -> None:
        model = nn.Linear(2, 2, bias=False)
        w = torch.eye(2)
        self.loader.load_into(model, {"w": w}, {"w": "weight"})
        torch.testing.assert_close(model.weight.detach(), w)

    def test_load_into_shape_mismatch(self) -> None:
        model = nn.Linear(2, 2, bias=False)
        with self.assertRaises(LoadError):
            self.loader.load_into(model, {"weight": torch.zeros(3, 3)})


if __name__ == "__main__":
    unittest.main()
