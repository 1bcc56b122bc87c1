"""Inference server interface.

A server owns one model: it loads it on demand, renders conversations
into prompts in the model's chat format, runs them and reports
statistics. Servers are not thread-safe on their own; share
one across threads through a ServerActor.
"""
from __future__ import annotations

import abc
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import ClassVar

from cadence.chat import ChatTemplate, Message
from cadence.config.server import ServerConfig
from cadence.infer.emitter import GenerationListener, TextCollector
from cadence.server.stats import Stats


@dataclass
class Completion:
    """Generated text plus the statistics gathered while producing it."""

    text: str
    stats: Stats = field(default_factory=Stats)


class InferenceServer(abc.ABC):
    """Lifecycle and completion interface every server implements."""

    config_type: ClassVar[type[ServerConfig]] = ServerConfig

    def __init__(self, config: ServerConfig | None = None) -> None:
        if config is None:
            config = self.config_type()
        if not isinstance(config, self.config_type):
            raise ValueError(
                f"{type(self).__name__} expects {self.config_type.__name__}, "
                f"got {type(config).__name__}"
            )
        self.config = config

    @abc.abstractmethod
    def load(self) -> Stats | None:
        """Load the model if needed; return loading stats when work was done."""

    @abc.abstractmethod
    def unload(self) -> None:
        """Release the model."""

    @abc.abstractmethod
    def is_loaded(self) -> bool:
        ...

    @abc.abstractmethod
    def run_prompt(self, prompt: str, listener: GenerationListener) -> Completion:
        """Stream the completion of prompt to listener and return it."""

    @abc.abstractmethod
    def clear_state(self) -> None:
        """Forget any state carried over from previous prompts."""

    def render_prompt(self, messages: Sequence[Message]) -> str:
        """Turn a conversation into prompt text. Plain servers join the contents."""
        return ChatTemplate.PLAIN.render(messages)

    def run_completion(
        self, messages: Sequence[Message], listener: GenerationListener
    ) -> Completion:
        """Stream the assistant's reply to messages to listener."""
        return self.run_prompt(self.render_prompt(messages), listener)

    def complete(self, messages: Sequence[Message]) -> Completion:
        """Return the assistant's reply to messages without streaming."""
        return self.run_completion(messages, TextCollector())
