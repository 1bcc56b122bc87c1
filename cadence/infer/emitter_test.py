"""Tests for generation listeners."""
from __future__ import annotations

import unittest
from unittest import mock

from cadence.infer.emitter import ConsoleListener, TextCollector


class TextCollectorTest(unittest.TestCase):
    def test_result_after_complete(self) -> None:
        collector = TextCollector()
        collector.on_text("Hello")
        collector.on_text(" world")
        self.assertFalse(collector.future.done())
        collector.on_complete()
        self.assertEqual(collector.result(timeout=1.0), "Hello world")

    def test_second_complete_is_ignored(self) -> None:
        collector = TextCollector()
        collector.on_complete()
        collector.on_complete()
        self.assertEqual(collector.result(timeout=1.0), "")


class ConsoleListenerTest(unittest.TestCase):
    def test_streams_and_collects(self) -> None:
        with mock.patch("cadence.infer.emitter.logger") as log:
            listener = ConsoleListener()
            listener.on_text("abc")
            listener.on_complete()
        self.assertEqual(log.stream.call_args_list, [mock.call("abc"), mock.call("\n")])
        self.assertEqual(listener.result(timeout=1.0), "abc")


if __name__ == "__main__":
    unittest.main()
