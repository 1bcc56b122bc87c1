"""Inference servers and their registry.

Importing this package registers every bundled server.
"""
from cadence.server.base import Completion, InferenceServer
from cadence.server.registry import ServerRegistry, registry
from cadence.server.stats import StatEntry, StatKind, Stats
from cadence.server import llama as _llama  # noqa: F401
from cadence.server import parrot as _parrot  # noqa: F401
from cadence.server.actor import ServerActor

__all__ = [
    "Completion",
    "InferenceServer",
    "ServerActor",
    "ServerRegistry",
    "StatEntry",
    "StatKind",
    "Stats",
    "registry",
]
