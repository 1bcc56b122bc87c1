"""
chat provides role-tagged messages and the prompt templates that turn a
conversation into the text a model completes.
"""
from __future__ import annotations

import enum
from collections.abc import Sequence

from pydantic import BaseModel


class MessageRole(str, enum.Enum):
    """Who wrote a message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class Message(BaseModel):
    """
    Message is one turn of a conversation.
    """
    role: MessageRole
    content: str
    refusal: str | None = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content)

    def cleaned(self, start: str, end: str) -> "Message":
        """Keep only the text between the first `start` and the last `end`.

        The message comes back unchanged when either marker is empty,
        missing, or the last `end` precedes the first `start`.
        """
        if not start or not end:
            return self
        first = self.content.find(start)
        if first < 0:
            return self
        body_start = first + len(start)
        last = self.content.rfind(end)
        if last < body_start:
            return self
        return self.model_copy(update={"content": self.content[body_start:last]})


class ChatTemplate(str, enum.Enum):
    """How a conversation is rendered into a prompt.

    PLAIN: message contents joined by newlines, no markup
    LLAMA3: Llama 3 header/eot markup, ending with an open assistant header
    TINY_LLAMA: TinyLlama chat markup, ending with an open assistant tag
    """

    PLAIN = "plain"
    LLAMA3 = "llama3"
    TINY_LLAMA = "tiny_llama"

    def render(self, messages: Sequence[Message]) -> str:
        """Render messages into the prompt text for this template."""
        if not messages:
            raise ValueError("Cannot render an empty conversation")
        match self:
            case ChatTemplate.PLAIN:
                return "\n".join(m.content for m in messages)
            case ChatTemplate.LLAMA3:
                turns = "".join(
                    f"<|start_header_id|>{m.role.value}<|end_header_id|>\n\n{m.content}<|eot_id|>"
                    for m in messages
                )
                return turns + "<|start_header_id|>assistant<|end_header_id|>\n\n"
            case ChatTemplate.TINY_LLAMA:
                turns = "\n".join(f"<|{m.role.value}|>\n{m.content}</s>\n" for m in messages)
                return turns + "<|assistant|>\n"
            case _:
                raise ValueError(f"Unknown chat template: {self!r}")
