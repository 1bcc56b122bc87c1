"""
__main__ provides the console-script entrypoint for the cadence package.
"""
from __future__ import annotations

import sys
import traceback

from cadence.cli import CLI
from cadence.command import ModelsCommand, RunCommand
from cadence.console import logger
from cadence.infer.emitter import ConsoleListener
from cadence.server import registry


def _run(command: RunCommand) -> None:
    server = registry.create(command.model, command.config)
    settings = command.config.model_dump(mode="json", exclude_none=True)
    if settings:
        logger.key_value(settings, title=command.model)
    with logger.spinner(f"Loading {command.model}...") as progress:
        progress.add_task(f"Loading {command.model}...", total=None)
        load_stats = server.load()
    logger.success(f"{command.model} ready")
    logger.header("Completion", command.model)
    logger.stream(command.prompt)
    completion = server.run_completion(command.messages(), ConsoleListener())
    completion.stats.extend(load_stats)
    logger.stats(completion.stats.rows())


def _models() -> None:
    logger.info(f"{len(registry.names())} models registered")
    logger.table(
        title="Models",
        columns=["Name", "Description"],
        rows=[[e.name, e.description] for e in registry.entries()],
    )


def main(argv: list[str] | None = None) -> None:
    """
    main is the entrypoint for the `cadence` console script.
    """
    try:
        command = CLI().parse_command(argv)

        match command:
            case RunCommand() as c:
                _run(c)
            case ModelsCommand():
                _models()
            case _:
                raise ValueError(f"Invalid command payload: {type(command)!r}")
    except SystemExit as e:
        code = int(e.code) if isinstance(e.code, int) else 1
        if code == 0:
            raise
        sys.exit(code)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        print(f"details: {e!r}", file=sys.stderr)
        sys.exit(1)
    except RuntimeError as e:
        print("runtime error while running cadence.", file=sys.stderr)
        print(f"details: {e!r}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"unexpected error: {type(e).__name__}: {e}", file=sys.stderr)
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
