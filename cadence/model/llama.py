"""Llama: a transformer bundled with its tokenizer and decode state.

The transformer parameters are immutable during inference; the mutable
state of a generation lives beside them in the LayerCacheSet and the
RotaryPositionTracker. A Llama instance therefore serves one sequence
at a time, and `reset()` must run between independent prompts.
"""
from __future__ import annotations

import logging
from pathlib import Path

import torch
import torch.nn.functional as F
from torch import Tensor

from cadence.cache import Cache, LayerCacheSet
from cadence.config.model import LlamaConfig
from cadence.errors import MaxSequenceLengthExceeded
from cadence.infer.emitter import GenerationListener
from cadence.infer.generate import GenerationOutput, generate
from cadence.infer.position import RotaryPositionTracker
from cadence.infer.sampling import Sampler
from cadence.loader import CheckpointLoader, hf_llama_mapping, tie_embeddings
from cadence.model.transformer import Transformer
from cadence.tokenizer import Tokenizer, build_tokenizer

logger = logging.getLogger(__name__)


class Llama:
    """Tokenizer, transformer, KV caches and rotary tracker on one device."""

    def __init__(
        self,
        *,
        config: LlamaConfig,
        tokenizer: Tokenizer,
        transformer: Transformer,
        cache: LayerCacheSet,
        pos: RotaryPositionTracker,
        device: torch.device,
    ) -> None:
        self.config = config
        self.tokenizer = tokenizer
        self.transformer = transformer
        self.cache = cache
        self.pos = pos
        self.device = device

    @classmethod
    def from_config(
        cls,
        config: LlamaConfig,
        *,
        device: torch.device | None = None,
        dtype: torch.dtype = torch.float32,
    ) -> "Llama":
        """Build a randomly initialized model with fresh decode state."""
        device = device if device is not None else torch.device("cpu")
        transformer = Transformer(config.transformer()).to(device=device, dtype=dtype)
        transformer.eval()
        return cls(
            config=config,
            tokenizer=build_tokenizer(config.tokenizer),
            transformer=transformer,
            cache=Cache.build(config, device=device, dtype=dtype),
            pos=RotaryPositionTracker.from_config(config, device=device),
            device=device,
        )

    def load_weights(self, path: Path) -> None:
        """Load weights from a checkpoint file or sharded index.

        HuggingFace names are translated automatically; anything else is
        expected to use this package's parameter names.
        """
        loader = CheckpointLoader()
        state = loader.load(Path(path))
        if "model.embed_tokens.weight" in state:
            loader.load_into(
                self.transformer,
                tie_embeddings(state),
                hf_llama_mapping(self.config.n_layers),
            )
        else:
            loader.load_into(self.transformer, state)
        logger.debug("loaded %d tensors from %s", len(state), path)

    def tokenize(self, text: str) -> Tensor:
        """Encode text into a 1-D tensor of token ids on the model device."""
        ids = self.tokenizer.encode(text)
        return torch.tensor(ids, dtype=torch.long, device=self.device)

    def generate(
        self,
        prompt: str,
        *,
        sample_len: int,
        temperature: float,
        sampler: Sampler,
        listener: GenerationListener,
    ) -> GenerationOutput:
        """Generate text after prompt, streaming it to listener."""
        return generate(
            self,
            prompt,
            sample_len=sample_len,
            temperature=temperature,
            sampler=sampler,
            listener=listener,
        )

    @torch.inference_mode()
    def score(self, text: str) -> float:
        """Mean next-token negative log-likelihood of text.

        Runs the uncached path, so the decode state is left untouched.
        """
        tokens = self.tokenize(text)
        n = int(tokens.numel())
        if n < 2:
            raise ValueError("scoring needs at least two tokens")
        if n > self.cache.max_seq_len:
            raise MaxSequenceLengthExceeded(n, self.cache.max_seq_len)
        logits = self.transformer.forward_masked(tokens.view(1, -1), self.pos.rope)
        return float(F.cross_entropy(logits[0, :-1].float(), tokens[1:]))

    def reset(self) -> None:
        """Clear caches and rotary position between independent prompts."""
        self.cache.reset()
        self.pos.reset()
