"""A server that echoes the prompt back. Useful to exercise the plumbing."""
from __future__ import annotations

import time

from typing_extensions import override

from cadence.config.server import ParrotServerConfig
from cadence.infer.emitter import GenerationListener
from cadence.server.base import Completion, InferenceServer
from cadence.server.registry import registry
from cadence.server.stats import StatEntry, Stats


@registry.register("parrot", "Echoes the prompt back")
class ParrotServer(InferenceServer):
    config_type = ParrotServerConfig

    def __init__(self, config: ParrotServerConfig | None = None) -> None:
        super().__init__(config)
        self._loaded = False

    @override
    def load(self) -> Stats | None:
        if self._loaded:
            return None
        self._loaded = True
        stats = Stats()
        stats.add(StatEntry.model_loading_duration(0.0))
        return stats

    @override
    def unload(self) -> None:
        self._loaded = False

    @override
    def is_loaded(self) -> bool:
        return self._loaded

    @override
    def run_prompt(self, prompt: str, listener: GenerationListener) -> Completion:
        start = time.perf_counter()
        load_stats = self.load()
        try:
            listener.on_text(prompt)
        finally:
            listener.on_complete()
        completion = Completion(prompt)
        completion.stats.extend(load_stats)
        completion.stats.add(
            StatEntry.total_duration(time.perf_counter() - start),
            StatEntry.tokens_count(len(prompt.split())),
        )
        return completion

    @override
    def clear_state(self) -> None:
        pass
