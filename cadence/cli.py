"""Command-line interface for cadence.

Commands:
- run: answer a user message with a registered model, streaming the output
- models: list the registered models
"""
from __future__ import annotations

import argparse
from pathlib import Path

from cadence.command import Command, ModelsCommand, RunCommand
from cadence.config.server import ServerConfig
from cadence.server import registry


class _Args(argparse.Namespace):
    """Typed namespace for CLI arguments."""

    command: str | None = None
    model: str | None = None
    prompt: str | None = None
    system: str | None = None
    config: Path | None = None
    sample_len: int | None = None
    temperature: float | None = None
    top_p: float | None = None
    seed: int | None = None
    max_seq_len: int | None = None


# CLI flag destinations that override server config fields of the same name.
_OVERRIDES = ("sample_len", "temperature", "top_p", "seed", "max_seq_len")


class CLI(argparse.ArgumentParser):
    """Parses `cadence` arguments into typed commands."""

    def __init__(self) -> None:
        super().__init__(
            prog="cadence",
            description="cadence - streaming LLM inference with bounded KV caches.",
        )

        _ = self.add_argument(
            "--version",
            action="version",
            version="%(prog)s 0.1.0",
            help="Show the version and exit.",
        )

        subparsers = self.add_subparsers(
            dest="command",
            parser_class=argparse.ArgumentParser,
        )

        run_parser = subparsers.add_parser(
            "run",
            help="Complete a prompt with a registered model.",
        )
        _ = run_parser.add_argument(
            "model",
            type=str,
            help="Registered model name (see `cadence models`).",
        )
        _ = run_parser.add_argument(
            "--prompt",
            type=str,
            required=True,
            help="User message to answer.",
        )
        _ = run_parser.add_argument(
            "--system",
            type=str,
            default=None,
            help="System message sent ahead of the prompt.",
        )
        _ = run_parser.add_argument(
            "--config",
            type=Path,
            default=None,
            help="Server config path (.json, .yml, or .yaml).",
        )
        _ = run_parser.add_argument(
            "--sample-len",
            type=int,
            default=None,
            dest="sample_len",
            help="Maximum number of tokens to generate.",
        )
        _ = run_parser.add_argument(
            "--temperature",
            type=float,
            default=None,
            help="Sampling temperature; 0 selects greedy decoding.",
        )
        _ = run_parser.add_argument(
            "--top-p",
            type=float,
            default=None,
            dest="top_p",
            help="Nucleus sampling probability mass.",
        )
        _ = run_parser.add_argument(
            "--seed",
            type=int,
            default=None,
            help="Sampling seed; 0 picks a random one.",
        )
        _ = run_parser.add_argument(
            "--max-seq-len",
            type=int,
            default=None,
            dest="max_seq_len",
            help="Attention window size in tokens.",
        )

        subparsers.add_parser("models", help="List the registered models.")

    def _server_config(self, model: str, args: _Args) -> ServerConfig:
        """Load the model's config and apply command-line overrides."""
        config_type = registry.get(model).server_type.config_type
        config = (
            config_type.from_path(args.config) if args.config is not None else config_type()
        )
        overrides = {k: getattr(args, k) for k in _OVERRIDES if getattr(args, k) is not None}
        unsupported = sorted(k for k in overrides if k not in config_type.model_fields)
        if unsupported:
            flags = ", ".join("--" + k.replace("_", "-") for k in unsupported)
            raise ValueError(f"Model {model!r} does not accept {flags}")
        if not overrides:
            return config
        return config_type.model_validate({**config.model_dump(), **overrides})

    def parse_command(self, argv: list[str] | None = None) -> Command:
        """Parse CLI arguments into a typed command payload."""
        args = self.parse_args(argv, namespace=_Args())

        match args.command:
            case "run":
                if args.model is None or args.prompt is None:
                    raise ValueError("run requires a model and --prompt.")
                return RunCommand(
                    model=args.model,
                    prompt=args.prompt,
                    system=args.system,
                    config=self._server_config(args.model, args),
                )
            case "models":
                return ModelsCommand()
            case _:
                self.print_help()
                raise SystemExit(2)
