"""
Tests for the typer command line interface.
"""

import configparser
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from safebash.core.configs import CONFIG_PATH
from safebash.ui import config_commands
from safebash.ui.cli import app


class TestCli(unittest.TestCase):

    def setUp(self):
        self.runner = CliRunner()

        # Ignore any config file on the machine running the tests
        self.config_patch = patch("safebash.ui.cli.load_raw_config", return_value={})
        self.mock_config = self.config_patch.start()
        self.env_patch = patch.dict(os.environ)
        self.env_patch.start()
        os.environ.pop("SAFEBASH_EXEC_TIMEOUT_S", None)

    def tearDown(self):
        self.env_patch.stop()
        self.config_patch.stop()

    def test_check_allowed(self):
        result = self.runner.invoke(app, ["check", "ls -la"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("allowed", result.output)

    def test_check_blocked(self):
        result = self.runner.invoke(app, ["check", "rm -rf dir/"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("'rm' deletes files", result.output)

    def test_check_quiet(self):
        result = self.runner.invoke(app, ["check", "--quiet", "git push"])
        self.assertEqual(result.exit_code, 1)
        self.assertEqual(result.output, "")

    def test_check_reads_stdin(self):
        result = self.runner.invoke(app, ["check", "-"], input="ls\nrm file\n")
        self.assertEqual(result.exit_code, 1)

    def test_invalid_config_exits(self):
        self.mock_config.return_value = {"timeout": "abc"}
        result = self.runner.invoke(app, ["check", "ls"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Error loading configuration", result.output)

    def test_run_blocked_never_executes(self):
        with patch("safebash.ui.cli.run_guarded") as mock_run:
            result = self.runner.invoke(app, ["run", "git push origin main"])

        self.assertEqual(result.exit_code, 1)
        self.assertIn("git push", result.output)
        mock_run.assert_not_called()

    def test_run_allowed_passes_exit_code(self):
        with patch("safebash.ui.cli.run_guarded", return_value=(3, "")) as mock_run:
            result = self.runner.invoke(app, ["run", "ls -la", "--timeout", "7"])

        self.assertEqual(result.exit_code, 3)
        self.assertIn("ls -la", result.output)
        args, kwargs = mock_run.call_args
        self.assertEqual(args[0], "ls -la")
        self.assertEqual(kwargs["timeout"], 7)

    def test_run_prints_captured_output_when_not_streaming(self):
        self.mock_config.return_value = {"stream": "false"}
        with patch("safebash.ui.cli.run_guarded", return_value=(0, "hello\n")):
            result = self.runner.invoke(app, ["run", "--silent", "echo hello"])

        self.assertEqual(result.exit_code, 0)
        self.assertEqual(result.output, "hello\n")

    def test_rules_lists_taxonomy(self):
        result = self.runner.invoke(app, ["rules"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("git", result.output)
        self.assertIn("rm", result.output)

    def test_settings_path(self):
        result = self.runner.invoke(app, ["settings", "path"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(str(CONFIG_PATH), result.output)

    def test_settings_show(self):
        with patch("safebash.ui.config_commands.load_raw_config", return_value={}):
            result = self.runner.invoke(app, ["settings", "show"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("timeout", result.output)

    def test_settings_unknown_action(self):
        result = self.runner.invoke(app, ["settings", "bogus"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Unknown action", result.output)


class TestInitConfig(unittest.TestCase):
    """The settings wizard on an existing config file."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = Path(self.temp_dir) / "config.cfg"
        self.config_file.write_text("[DEFAULT]\ntimeout = soon\n")
        self.env_patch = patch.dict(os.environ)
        self.env_patch.start()
        os.environ.pop("SAFEBASH_EXEC_TIMEOUT_S", None)

    def tearDown(self):
        import shutil

        self.env_patch.stop()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_invalid_existing_config_falls_back_to_defaults(self):
        with patch.object(config_commands, "CONFIG_PATH", self.config_file), \
                patch.object(config_commands, "console") as mock_console, \
                patch.object(config_commands.Prompt, "ask", side_effect=["bash", "INFO"]), \
                patch.object(config_commands.IntPrompt, "ask", return_value=15) as mock_int, \
                patch.object(config_commands.Confirm, "ask", return_value=False):
            config_commands.init_config()

        printed = " ".join(str(call.args[0]) for call in mock_console.print.call_args_list)
        self.assertIn("Ignoring invalid configuration", printed)
        self.assertEqual(mock_int.call_args.kwargs["default"], 30)

        cfg = configparser.ConfigParser()
        cfg.read(self.config_file)
        self.assertEqual(cfg["DEFAULT"]["timeout"], "15")
        self.assertEqual(cfg["DEFAULT"]["log_level"], "INFO")
        self.assertEqual(cfg["DEFAULT"]["stream"], "false")


if __name__ == "__main__":
    unittest.main()
