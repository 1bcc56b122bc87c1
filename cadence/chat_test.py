"""Tests for chat messages and prompt templates."""
from __future__ import annotations

import unittest

from pydantic import ValidationError

from cadence.chat import ChatTemplate, Message, MessageRole


class TestMessage(unittest.TestCase):
    """Tests for Message construction and cleanup."""

    def test_role_from_string(self) -> None:
        msg = Message.model_validate({"role": "assistant", "content": "hi"})
        self.assertEqual(msg.role, MessageRole.ASSISTANT)
        self.assertIsNone(msg.refusal)

    def test_unknown_role_rejected(self) -> None:
        with self.assertRaises(ValidationError):
            Message.model_validate({"role": "narrator", "content": "hi"})

    def test_cleaned_keeps_text_between_markers(self) -> None:
        """The first start marker and the last end marker bound the text."""
        cases = [
            ("Hello, [start]This is a test[end] Goodbye", "[start]", "[end]", "This is a test"),
            (
                "Ignore [start]Keep this[end] and [start]not this[end] end part",
                "[start]",
                "[end]",
                "Keep this[end] and [start]not this",
            ),
            ("abcXdefXghi", "X", "X", "def"),
        ]
        for content, start, end, expected in cases:
            with self.subTest(content=content):
                self.assertEqual(Message.user(content).cleaned(start, end).content, expected)

    def test_cleaned_leaves_unmatched_content(self) -> None:
        cases = [
            ("Hello, This is a test[end] Goodbye", "[start]", "[end]"),
            ("Hello, [start]This is a test. Goodbye", "[start]", "[end]"),
            ("Hello [end] there [start] world", "[start]", "[end]"),
            ("Hello, [start]This is a test[end] Goodbye", "", "[end]"),
            ("Hello, [start]This is a test[end] Goodbye", "[start]", ""),
        ]
        for content, start, end in cases:
            with self.subTest(content=content, start=start, end=end):
                self.assertEqual(Message.user(content).cleaned(start, end).content, content)


class TestChatTemplate(unittest.TestCase):
    """Tests for rendering conversations into prompts."""

    def setUp(self) -> None:
        self.messages = [
            Message.system("You are terse."),
            Message.user("Name a color."),
            Message.assistant("Red."),
            Message.user("Another."),
        ]

    def test_llama3(self) -> None:
        """Each turn gets a header and an eot; the reply header is left open."""
        prompt = ChatTemplate.LLAMA3.render(self.messages)
        self.assertTrue(
            prompt.startswith(
                "<|start_header_id|>system<|end_header_id|>\n\nYou are terse.<|eot_id|>"
            )
        )
        self.assertIn("<|start_header_id|>assistant<|end_header_id|>\n\nRed.<|eot_id|>", prompt)
        self.assertTrue(prompt.endswith("<|start_header_id|>assistant<|end_header_id|>\n\n"))
        self.assertEqual(prompt.count("<|eot_id|>"), 4)

    def test_tiny_llama(self) -> None:
        prompt = ChatTemplate.TINY_LLAMA.render([Message.user("Hi")])
        self.assertEqual(prompt, "<|user|>\nHi</s>\n<|assistant|>\n")

    def test_plain(self) -> None:
        prompt = ChatTemplate.PLAIN.render(self.messages)
        self.assertEqual(prompt, "You are terse.\nName a color.\nRed.\nAnother.")

    def test_empty_conversation(self) -> None:
        for template in ChatTemplate:
            with self.subTest(template=template):
                with self.assertRaises(ValueError):
                    template.render([])


if __name__ == "__main__":
    unittest.main()
