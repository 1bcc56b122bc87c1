"""Serve one InferenceServer from a dedicated thread.

Callers post requests on a queue and get a Future back; only the actor
thread ever touches the server. Requests run in submission order.
"""
from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

from cadence.chat import Message
from cadence.infer.emitter import GenerationListener, TextCollector
from cadence.server.base import Completion, InferenceServer

logger = logging.getLogger(__name__)


@dataclass
class _Request:
    action: Callable[[InferenceServer], Any]
    reply: Future = field(default_factory=Future)


class ServerActor:
    """Owns a server and runs every operation on its own thread."""

    def __init__(self, server: InferenceServer) -> None:
        self._server = server
        self._requests: queue.Queue[_Request | None] = queue.Queue()
        # Guards _closed and every put, so nothing is queued behind the sentinel.
        self._lock = threading.Lock()
        self._closed = False
        self._thread = threading.Thread(
            target=self._run, name=f"cadence-{type(server).__name__}", daemon=True
        )
        self._thread.start()

    def submit(self, action: Callable[[InferenceServer], Any]) -> Future:
        """Queue action(server) and return a Future with its result."""
        request = _Request(action)
        with self._lock:
            if self._closed:
                raise RuntimeError("actor is closed")
            self._requests.put(request)
        return request.reply

    def load(self) -> Future:
        return self.submit(lambda s: s.load())

    def complete(self, messages: Sequence[Message]) -> "Future[Completion]":
        messages = list(messages)
        return self.submit(lambda s: s.complete(messages))

    def run_completion(
        self, messages: Sequence[Message], listener: GenerationListener | None = None
    ) -> "Future[Completion]":
        messages = list(messages)
        listener = listener if listener is not None else TextCollector()
        return self.submit(lambda s: s.run_completion(messages, listener))

    def run_prompt(
        self, prompt: str, listener: GenerationListener | None = None
    ) -> "Future[Completion]":
        listener = listener if listener is not None else TextCollector()
        return self.submit(lambda s: s.run_prompt(prompt, listener))

    def clear_state(self) -> Future:
        return self.submit(lambda s: s.clear_state())

    def unload(self) -> None:
        """Finish queued work, stop the actor thread and drop the model."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._requests.put(None)
        self._thread.join()
        self._server.unload()

    def __enter__(self) -> "ServerActor":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.unload()

    def _run(self) -> None:
        while True:
            request = self._requests.get()
            if request is None:
                break
            if not request.reply.set_running_or_notify_cancel():
                continue
            try:
                request.reply.set_result(request.action(self._server))
            except Exception as e:
                logger.debug("actor request failed: %r", e)
                request.reply.set_exception(e)
        self._drain()

    def _drain(self) -> None:
        while True:
            try:
                request = self._requests.get_nowait()
            except queue.Empty:
                return
            if request is not None and not request.reply.done():
                request.reply.cancel()
