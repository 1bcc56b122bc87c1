"""Tests for the generation session and its decode worker."""
from __future__ import annotations

from collections.abc import Sequence
import threading
import unittest

import torch
from typing_extensions import override

from cadence.infer.emitter import TextCollector
from cadence.infer.session import GenerationSession
from cadence.infer.token_view import TokenView
from cadence.tokenizer.base import Tokenizer


class CharTokenizer(Tokenizer):
    """Code points as ids; id 0 stops generation."""

    @override
    def encode(self, text: str, *, bos: bool = False, eos: bool = False) -> list[int]:
        return [ord(c) for c in text]

    @override
    def decode(self, ids: Sequence[int]) -> str:
        return "".join(chr(i) for i in ids)

    @property
    @override
    def bos_id(self) -> int:
        return 1

    @property
    @override
    def eos_id(self) -> int:
        return 0

    @override
    def stop_ids(self) -> list[int]:
        return [0]


class FailingListener:
    def __init__(self) -> None:
        self.completed = threading.Event()
        self.complete_calls = 0

    def on_text(self, text: str) -> None:
        raise OSError("sink closed")

    def on_complete(self) -> None:
        self.complete_calls += 1
        self.completed.set()


def _session(listener, max_len: int = 32, channel_size: int = 64) -> GenerationSession:
    return GenerationSession(
        tokenizer=CharTokenizer(),
        listener=listener,
        max_len=max_len,
        device=torch.device("cpu"),
        channel_size=channel_size,
    )


def _tok(c: str | int) -> torch.Tensor:
    return torch.tensor([ord(c) if isinstance(c, str) else c])


class GenerationSessionTest(unittest.TestCase):
    def test_streams_generated_text(self) -> None:
        collector = TextCollector()
        session = _session(collector)
        session.append_prompt(torch.tensor([ord("x"), ord("y")]))
        for c in "abc":
            session.update(_tok(c))
        session.close()
        self.assertEqual(collector.result(timeout=5.0), "abc")
        self.assertEqual(session.num_generated, 3)
        self.assertEqual(session.tokens.length, 5)
        self.assertFalse(session.should_stop())

    def test_stop_token_ends_output(self) -> None:
        collector = TextCollector()
        session = _session(collector)
        for t in ("a", "b", 0, "c", "d"):
            session.update(_tok(t))
        session.close()
        self.assertTrue(session.should_stop())
        self.assertEqual(collector.result(timeout=5.0), "ab")
        self.assertEqual(session.num_generated, 2)

    def test_transcript_keeps_tokens_after_stop(self) -> None:
        """tokens records prompt and every update, forwarded or not."""
        session = _session(TextCollector())
        session.append_prompt(torch.tensor([ord("p")]))
        for t in ("a", 0, "c"):
            session.update(_tok(t))
        session.close()
        self.assertIsInstance(session.tokens, TokenView)
        self.assertEqual(session.tokens.as_tensor().tolist(), [ord("p"), ord("a"), 0, ord("c")])
        self.assertEqual(session.tokens.last(1).tolist(), [ord("c")])

    def test_stop_token_first(self) -> None:
        collector = TextCollector()
        with _session(collector) as session:
            session.update(_tok(0))
        self.assertEqual(collector.result(timeout=5.0), "")
        self.assertEqual(session.num_generated, 0)

    def test_small_channel_applies_backpressure(self) -> None:
        collector = TextCollector()
        session = _session(collector, max_len=300, channel_size=1)
        for i in range(200):
            session.update(_tok(ord("a") + i % 26))
        session.close()
        self.assertEqual(session.num_generated, 200)
        self.assertEqual(len(collector.result(timeout=5.0)), 200)

    def test_close_is_idempotent(self) -> None:
        session = _session(TextCollector())
        session.close()
        session.close()

    def test_worker_failure_surfaces_on_close(self) -> None:
        listener = FailingListener()
        session = _session(listener)
        session.update(_tok("a"))
        self.assertTrue(listener.completed.wait(timeout=5.0))
        self.assertTrue(session.should_stop())
        # Stopped: further updates are recorded but not sent.
        session.update(_tok("b"))
        with self.assertRaises(RuntimeError) as ctx:
            session.close()
        self.assertIsInstance(ctx.exception.__cause__, OSError)
        self.assertEqual(listener.complete_calls, 1)

    def test_send_to_dead_worker(self) -> None:
        listener = FailingListener()
        session = _session(listener)
        session.update(_tok("a"))
        self.assertTrue(listener.completed.wait(timeout=5.0))
        session._worker.join(timeout=5.0)
        with self.assertRaises(RuntimeError):
            session._send([ord("b")])


if __name__ == "__main__":
    unittest.main()
