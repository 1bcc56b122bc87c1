"""Exceptions raised by the inference engine and the server layer.

Capacity problems surface as ValueError or RuntimeError subclasses so
callers that only know the builtin types still catch them. The CLI maps
both families to a non-zero exit.
"""
from __future__ import annotations


class CapacityExceeded(RuntimeError):
    """A sequence buffer was asked to hold more entries than it can.

    Callers must evict before appending; hitting this means the cache
    bookkeeping is out of step with the attention layers.
    """

    def __init__(self, *, length: int, incoming: int, capacity: int) -> None:
        super().__init__(
            f"Cache overflow: len {length} + {incoming} > capacity {capacity}"
        )
        self.length = int(length)
        self.incoming = int(incoming)
        self.capacity = int(capacity)


class MaxSequenceLengthExceeded(ValueError):
    """A single step requested more positions than the cache can ever hold."""

    def __init__(self, actual: int, max: int) -> None:  # noqa: A002
        super().__init__(
            f"Step of {actual} tokens exceeds max sequence length {max}"
        )
        self.actual = int(actual)
        self.max = int(max)


class InferenceError(RuntimeError):
    """Base class for errors reported by inference servers."""


class ModelNotLoaded(InferenceError):
    """The server was asked to run before its model was loaded."""


class ContextLengthExceeded(InferenceError):
    """The prompt does not fit in the configured context window."""

    def __init__(self, actual: int, max: int) -> None:  # noqa: A002
        super().__init__(f"Context length exceeded: {actual} > {max}")
        self.actual = int(actual)
        self.max = int(max)


class UnknownModel(InferenceError):
    """No server is registered under the requested name."""


class LoadError(InferenceError):
    """Model weights or tokenizer files could not be loaded."""
