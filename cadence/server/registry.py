"""Name → server class registry.

Servers register themselves with the module-level `registry`:

    @registry.register("parrot", "Echoes the prompt back")
    class ParrotServer(InferenceServer): ...

Importing `cadence.server` imports every bundled server, so the
registry is complete once the package is loaded.
"""
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, TypeVar

from cadence.config.server import ServerConfig
from cadence.errors import UnknownModel

if TYPE_CHECKING:
    from cadence.server.base import InferenceServer

S = TypeVar("S", bound="type[InferenceServer]")


@dataclass(frozen=True, slots=True)
class ServerEntry:
    name: str
    description: str
    server_type: "type[InferenceServer]"


class ServerRegistry:
    """Maps model names to server classes."""

    def __init__(self) -> None:
        self._entries: dict[str, ServerEntry] = {}

    def register(self, name: str, description: str = "") -> Callable[[S], S]:
        """Class decorator adding a server under name."""

        def decorator(server_type: S) -> S:
            if name in self._entries:
                raise ValueError(f"Server {name!r} is already registered")
            self._entries[name] = ServerEntry(name, description, server_type)
            return server_type

        return decorator

    def names(self) -> list[str]:
        return sorted(self._entries)

    def entries(self) -> list[ServerEntry]:
        return [self._entries[n] for n in self.names()]

    def get(self, name: str) -> ServerEntry:
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownModel(
                f"Unknown model {name!r}; available: {', '.join(self.names()) or 'none'}"
            ) from None

    def create(
        self, name: str, config: ServerConfig | Path | None = None
    ) -> "InferenceServer":
        """Instantiate the server registered under name.

        config may be a config object, a path to a JSON/YAML file, or None
        for the server's defaults.
        """
        entry = self.get(name)
        if isinstance(config, Path):
            config = entry.server_type.config_type.from_path(config)
        return entry.server_type(config)


registry = ServerRegistry()
