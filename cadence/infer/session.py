"""Generation session: token buffer, stop detection and the decode worker.

One session lives for one generation call. The driver thread appends
every sampled token to a pre-sized buffer and forwards it to a single
background worker over a bounded queue. The worker checks each token
against the tokenizer's stop set, decodes the rest into text with a
StreamingDecoder and hands the text to the listener.

Only two values are shared across threads: the stop flag (set by the
worker, polled by the driver between steps) and the generated-token
count (written by the worker only). A full queue blocks the driver,
which throttles generation to decode speed.
"""
from __future__ import annotations

import logging
import queue
import threading
from types import TracebackType

import torch
from torch import Tensor

from cadence.infer.emitter import GenerationListener
from cadence.infer.streaming import StreamingDecoder
from cadence.infer.token_view import TokenView
from cadence.tokenizer.base import Tokenizer

logger = logging.getLogger(__name__)

CHANNEL_SIZE = 64
SEND_POLL_SECONDS = 0.1


class GenerationSession:
    """Owns the transcript and the worker for one generation.

    States: running → stopped (stop token seen) → closed (worker joined).
    """

    def __init__(
        self,
        *,
        tokenizer: Tokenizer,
        listener: GenerationListener,
        max_len: int,
        device: torch.device,
        channel_size: int = CHANNEL_SIZE,
    ) -> None:
        self.tokens = TokenView.allocate(max_len=max_len, device=device)
        self._listener = listener
        self._decoder = StreamingDecoder(tokenizer)
        self._stop_ids = frozenset(int(t) for t in tokenizer.stop_ids())
        self._stop = threading.Event()
        self._num_generated = 0
        self._error: BaseException | None = None
        self._closed = False
        self._queue: queue.Queue[list[int] | None] = queue.Queue(maxsize=channel_size)
        self._worker = threading.Thread(
            target=self._run, name="cadence-decode", daemon=True
        )
        self._worker.start()

    # ─────────────────────────────────────────────────────────────────────
    # Driver side
    # ─────────────────────────────────────────────────────────────────────

    def append_prompt(self, tokens: Tensor) -> None:
        """Add prompt tokens to the transcript without emitting them."""
        self.tokens.append(tokens.reshape(-1))

    def update(self, token: Tensor) -> None:
        """Record a sampled token and forward it unless generation stopped."""
        token = token.reshape(-1)
        self.tokens.append(token)
        if not self.should_stop():
            self._send([int(t) for t in token.tolist()])

    def should_stop(self) -> bool:
        """True once the worker has seen a stop token (or failed)."""
        return self._stop.is_set()

    @property
    def num_generated(self) -> int:
        """Tokens produced strictly before the first stop token."""
        return self._num_generated

    def close(self) -> None:
        """Close the channel, wait for the worker, surface its failure."""
        if self._closed:
            return
        self._closed = True
        if self._worker.is_alive():
            self._send(None)
        self._worker.join()
        if self._error is not None:
            raise RuntimeError("decode worker failed") from self._error

    def __enter__(self) -> "GenerationSession":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _send(self, item: list[int] | None) -> None:
        while True:
            if not self._worker.is_alive():
                raise RuntimeError("decode worker is not running") from self._error
            try:
                self._queue.put(item, timeout=SEND_POLL_SECONDS)
                return
            except queue.Full:
                continue

    # ─────────────────────────────────────────────────────────────────────
    # Worker side
    # ─────────────────────────────────────────────────────────────────────

    def _run(self) -> None:
        logger.debug("decode worker started")
        try:
            done = False
            while not done:
                items = [self._queue.get()]
                while True:
                    try:
                        items.append(self._queue.get_nowait())
                    except queue.Empty:
                        break

                pending: list[int] = []
                for item in items:
                    if item is None:
                        done = True
                        break
                    pending.extend(self._accept(item))
                if pending:
                    self._num_generated += len(pending)
                    self._emit(self._decoder.push_tokens(pending))

            self._emit(self._decoder.flush())
        except Exception as e:
            self._error = e
            self._stop.set()
        finally:
            self._listener.on_complete()
            logger.debug("decode worker exited after %d tokens", self._num_generated)

    def _accept(self, tokens: list[int]) -> list[int]:
        """Return the tokens before the first stop token, setting the flag on stop."""
        if self._stop.is_set():
            return []
        for i, token in enumerate(tokens):
            if token in self._stop_ids:
                self._stop.set()
                return tokens[:i]
        return tokens

    def _emit(self, text: str | None) -> None:
        if text:
            self._listener.on_text(text)
