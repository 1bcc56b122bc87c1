"""Llama inference server.

Builds a Llama from the configured preset on first use, optionally
loads weights, and runs prompts with the configured sampling settings.
Conversations are rendered with the preset's chat template.
A lock serializes generations: the decode state inside a Llama belongs
to one sequence at a time.
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from pathlib import Path

import torch
from typing_extensions import override

from cadence.chat import Message
from cadence.config.server import LlamaServerConfig
from cadence.errors import ContextLengthExceeded, MaxSequenceLengthExceeded, ModelNotLoaded
from cadence.infer.emitter import GenerationListener, TextCollector
from cadence.infer.sampling import build_sampler
from cadence.model.llama import Llama
from cadence.server.base import Completion, InferenceServer
from cadence.server.registry import registry
from cadence.server.stats import StatEntry, StatKind, Stats

logger = logging.getLogger(__name__)


@registry.register("llama", "Llama 3 family and TinyLlama, selected by preset")
class LlamaServer(InferenceServer):
    config_type = LlamaServerConfig
    config: LlamaServerConfig

    def __init__(self, config: LlamaServerConfig | None = None) -> None:
        super().__init__(config)
        self._model: Llama | None = None
        self._lock = threading.Lock()

    @override
    def load(self) -> Stats | None:
        with self._lock:
            if self._model is not None:
                return None
            start = time.perf_counter()
            model = Llama.from_config(
                self.config.llama_config(), device=torch.device(self.config.device)
            )
            if self.config.weights is not None:
                model.load_weights(Path(self.config.weights))
            self._model = model
            elapsed = time.perf_counter() - start
        logger.debug("loaded preset %s in %.2fs", self.config.preset, elapsed)
        stats = Stats()
        stats.add(StatEntry.model_loading_duration(elapsed))
        return stats

    @override
    def unload(self) -> None:
        with self._lock:
            self._model = None

    @override
    def is_loaded(self) -> bool:
        return self._model is not None

    @property
    def model(self) -> Llama:
        if self._model is None:
            raise ModelNotLoaded("Model is not loaded")
        return self._model

    @override
    def render_prompt(self, messages: Sequence[Message]) -> str:
        return self.config.template().render(messages)

    @override
    def run_prompt(self, prompt: str, listener: GenerationListener) -> Completion:
        load_stats = self.load()
        cfg = self.config
        sampler = build_sampler(temperature=cfg.temperature, top_p=cfg.top_p, seed=cfg.seed)
        collector = listener if isinstance(listener, TextCollector) else _Tee(listener)
        with self._lock:
            model = self.model
            try:
                output = model.generate(
                    prompt,
                    sample_len=cfg.sample_len,
                    temperature=cfg.temperature,
                    sampler=sampler,
                    listener=collector,
                )
            except MaxSequenceLengthExceeded as e:
                raise ContextLengthExceeded(e.actual, e.max) from e

        completion = Completion(collector.result())
        completion.stats.add(
            StatEntry.inference_duration(output.elapsed),
            StatEntry.tokens_count(output.tokens),
            StatEntry.tokens_per_second(output.tokens, output.elapsed),
        )
        total = output.elapsed
        if load_stats is not None:
            total += load_stats.duration(StatKind.MODEL_LOADING_DURATION) or 0.0
            completion.stats.extend(load_stats)
        completion.stats.add(StatEntry.total_duration(total))
        return completion

    @override
    def clear_state(self) -> None:
        with self._lock:
            self.model.reset()


class _Tee(TextCollector):
    """Collects text while forwarding it to another listener."""

    def __init__(self, inner: GenerationListener) -> None:
        super().__init__()
        self.inner = inner

    @override
    def on_text(self, text: str) -> None:
        super().on_text(text)
        self.inner.on_text(text)

    @override
    def on_complete(self) -> None:
        try:
            self.inner.on_complete()
        finally:
            super().on_complete()
