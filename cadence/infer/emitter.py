"""Listeners that receive generated text from the decode worker.

The worker calls `on_text` for every decoded chunk and `on_complete`
exactly once when the generation ends. Listeners run on the worker
thread, so they must not touch model state.
"""
from __future__ import annotations

from concurrent.futures import Future
from typing import Protocol

from typing_extensions import override

from cadence.console import logger


class GenerationListener(Protocol):
    """Sink for incremental text and the completion signal."""

    def on_text(self, text: str) -> None:
        ...

    def on_complete(self) -> None:
        ...


class TextCollector:
    """Collects the whole completion and hands it over through a Future.

    Useful when the caller wants one string rather than a stream:

        collector = TextCollector()
        model.generate(prompt, listener=collector, ...)
        text = collector.result(timeout=5.0)
    """

    def __init__(self) -> None:
        self._chunks: list[str] = []
        self._future: Future[str] = Future()

    def on_text(self, text: str) -> None:
        self._chunks.append(text)

    def on_complete(self) -> None:
        if not self._future.done():
            self._future.set_result("".join(self._chunks))

    @property
    def future(self) -> "Future[str]":
        return self._future

    def result(self, timeout: float | None = None) -> str:
        """Block until the generation completes and return its text."""
        return self._future.result(timeout=timeout)


class ConsoleListener(TextCollector):
    """Streams text to the console while also collecting it."""

    @override
    def on_text(self, text: str) -> None:
        super().on_text(text)
        logger.stream(text)

    @override
    def on_complete(self) -> None:
        logger.stream("\n")
        super().on_complete()
