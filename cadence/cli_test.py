"""Tests for CLI parsing and the console entrypoint."""
from __future__ import annotations

import io
from contextlib import redirect_stderr
from pathlib import Path
import tempfile
import unittest
from unittest import mock

from cadence.__main__ import main
from cadence.cli import CLI
from cadence.command import ModelsCommand, RunCommand
from cadence.config.server import LlamaServerConfig, ParrotServerConfig


class CLITest(unittest.TestCase):
    def test_models(self) -> None:
        self.assertIsInstance(CLI().parse_command(["models"]), ModelsCommand)

    def test_run_defaults(self) -> None:
        cmd = CLI().parse_command(["run", "llama", "--prompt", "hi"])
        assert isinstance(cmd, RunCommand)
        self.assertEqual((cmd.model, cmd.prompt, cmd.system), ("llama", "hi", None))
        self.assertIsInstance(cmd.config, LlamaServerConfig)
        self.assertEqual(cmd.config, LlamaServerConfig())

    def test_run_overrides(self) -> None:
        cmd = CLI().parse_command(
            [
                "run", "llama", "--prompt", "hi",
                "--sample-len", "5", "--temperature", "0.7", "--top-p", "0.5",
                "--seed", "9", "--max-seq-len", "64",
            ]
        )
        assert isinstance(cmd, RunCommand)
        config = cmd.config
        assert isinstance(config, LlamaServerConfig)
        self.assertEqual(config.sample_len, 5)
        self.assertEqual(config.temperature, 0.7)
        self.assertEqual(config.top_p, 0.5)
        self.assertEqual(config.seed, 9)
        self.assertEqual(config.max_seq_len, 64)

    def test_flags_override_config_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "server.json"
            path.write_text('{"sample_len": 11, "seed": 3}', encoding="utf-8")
            cmd = CLI().parse_command(
                ["run", "llama", "--prompt", "hi", "--config", str(path), "--seed", "4"]
            )
        assert isinstance(cmd, RunCommand)
        config = cmd.config
        assert isinstance(config, LlamaServerConfig)
        self.assertEqual((config.sample_len, config.seed), (11, 4))

    def test_parrot_takes_no_sampling_flags(self) -> None:
        cmd = CLI().parse_command(["run", "parrot", "--prompt", "hi"])
        assert isinstance(cmd, RunCommand)
        self.assertIsInstance(cmd.config, ParrotServerConfig)
        with self.assertRaises(ValueError):
            CLI().parse_command(["run", "parrot", "--prompt", "hi", "--temperature", "1"])

    def test_invalid_value(self) -> None:
        with self.assertRaises(ValueError):
            CLI().parse_command(["run", "llama", "--prompt", "hi", "--top-p", "1.5"])


class MainTest(unittest.TestCase):
    def test_unknown_model_exits_with_error(self) -> None:
        err = io.StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit) as ctx:
            main(["run", "nope", "--prompt", "hi"])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("runtime error", err.getvalue())

    def test_bad_flag_exits_with_error(self) -> None:
        err = io.StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit) as ctx:
            main(["run", "llama", "--prompt", "hi", "--sample-len", "0"])
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn("error:", err.getvalue())

    def test_run_parrot_streams_prompt(self) -> None:
        with mock.patch("cadence.__main__.logger") as log, mock.patch(
            "cadence.infer.emitter.logger"
        ) as stream_log:
            main(["run", "parrot", "--prompt", "hello"])
        log.header.assert_called_once()
        self.assertIn(mock.call("hello"), stream_log.stream.call_args_list)

    def test_run_system_message(self) -> None:
        """--system is sent as a system turn ahead of the user turn."""
        cmd = CLI().parse_command(["run", "parrot", "--prompt", "hello", "--system", "be loud"])
        assert isinstance(cmd, RunCommand)
        self.assertEqual(
            [(m.role.value, m.content) for m in cmd.messages()],
            [("system", "be loud"), ("user", "hello")],
        )
        with mock.patch("cadence.__main__.logger"), mock.patch(
            "cadence.infer.emitter.logger"
        ) as stream_log:
            main(["run", "parrot", "--prompt", "hello", "--system", "be loud"])
        self.assertIn(mock.call("be loud\nhello"), stream_log.stream.call_args_list)

    def test_models_lists_registry(self) -> None:
        with mock.patch("cadence.__main__.logger") as log:
            main(["models"])
        rows = log.table.call_args.kwargs["rows"]
        self.assertEqual([r[0] for r in rows], ["llama", "parrot"])


if __name__ == "__main__":
    unittest.main()
