"""Typed CLI command payloads.

Each command type represents a distinct user intent. The CLI parses arguments
into these typed objects, which are then dispatched to the appropriate handler.
"""
from __future__ import annotations

from dataclasses import dataclass

from cadence.chat import Message
from cadence.config.server import ServerConfig


@dataclass(frozen=True, slots=True)
class RunCommand:
    """Request to answer one user message with a registered model."""

    model: str
    prompt: str
    config: ServerConfig
    system: str | None = None

    def messages(self) -> list[Message]:
        """The conversation sent to the server."""
        messages = [Message.system(self.system)] if self.system is not None else []
        messages.append(Message.user(self.prompt))
        return messages


@dataclass(frozen=True, slots=True)
class ModelsCommand:
    """Request to list the registered models."""


Command = RunCommand | ModelsCommand
