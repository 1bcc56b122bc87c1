"""Statistics reported alongside a completion.

Servers attach timing and throughput entries to every completion; the
CLI prints `rows()` through the console logger after the streamed text.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field


class StatKind(enum.Enum):
    """Entry kinds, in display order."""

    INFERENCE_DURATION = "Inference Duration"
    MODEL_LOADING_DURATION = "Model Loading Duration"
    NAMED = "Named"
    TOKENS_COUNT = "Tokens Count"
    TOKENS_PER_SECOND = "Tokens Per Second"
    TOTAL_DURATION = "Total Duration"


_ORDER = {kind: i for i, kind in enumerate(StatKind)}


@dataclass(frozen=True, slots=True)
class StatEntry:
    """One statistic. Build entries through the classmethods."""

    kind: StatKind
    seconds: float | None = None
    count: int | None = None
    name: str | None = None
    value: str | None = None

    @classmethod
    def inference_duration(cls, seconds: float) -> "StatEntry":
        return cls(StatKind.INFERENCE_DURATION, seconds=seconds)

    @classmethod
    def model_loading_duration(cls, seconds: float) -> "StatEntry":
        return cls(StatKind.MODEL_LOADING_DURATION, seconds=seconds)

    @classmethod
    def named(cls, name: str, value: str) -> "StatEntry":
        return cls(StatKind.NAMED, name=name, value=value)

    @classmethod
    def tokens_count(cls, count: int) -> "StatEntry":
        return cls(StatKind.TOKENS_COUNT, count=count)

    @classmethod
    def tokens_per_second(cls, count: int, seconds: float) -> "StatEntry":
        return cls(StatKind.TOKENS_PER_SECOND, seconds=seconds, count=count)

    @classmethod
    def total_duration(cls, seconds: float) -> "StatEntry":
        return cls(StatKind.TOTAL_DURATION, seconds=seconds)

    def label(self) -> str:
        if self.kind is StatKind.NAMED:
            return str(self.name)
        return self.kind.value

    def display_value(self) -> str:
        match self.kind:
            case StatKind.NAMED:
                return str(self.value)
            case StatKind.TOKENS_COUNT:
                return str(self.count)
            case StatKind.TOKENS_PER_SECOND:
                if not self.seconds:
                    return "N/A"
                return f"{int(self.count or 0) / self.seconds:.2f}"
            case _:
                return f"{float(self.seconds or 0.0):.2f}s"


@dataclass
class Stats:
    """An ordered collection of StatEntry values."""

    entries: list[StatEntry] = field(default_factory=list)

    def add(self, *entries: StatEntry) -> None:
        for entry in entries:
            if entry not in self.entries:
                self.entries.append(entry)

    def extend(self, other: "Stats | None") -> None:
        if other is not None:
            self.add(*other.entries)

    def duration(self, kind: StatKind) -> float | None:
        """Seconds recorded by the first entry of kind, if any."""
        for entry in self.entries:
            if entry.kind is kind:
                return entry.seconds
        return None

    def rows(self) -> list[list[str]]:
        ordered = sorted(self.entries, key=lambda e: _ORDER[e.kind])
        return [[e.label(), e.display_value()] for e in ordered]
