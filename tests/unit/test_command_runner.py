"""Unit tests for CommandRunner."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from project_workspaces.errors import CommandError, CommandTimeoutError
from project_workspaces.services.command_runner import CommandRunner, resolve_executable


@pytest.fixture
def runner():
    runner = CommandRunner()
    runner._resolve = MagicMock(side_effect=lambda name: f"/usr/bin/{name}")
    return runner


class TestCommandRunner:

    def test_captures_output(self, runner):
        completed = subprocess.CompletedProcess(args=[], returncode=3, stdout="out", stderr=None)
        with patch("subprocess.run", return_value=completed) as mock_run:
            result = runner.run("git", ["status"], timeout=2, cwd="/tmp")

        assert (result.exit_code, result.stdout, result.stderr) == (3, "out", "")
        assert result.ok is False
        args, kwargs = mock_run.call_args
        assert args[0] == ["/usr/bin/git", "status"]
        assert kwargs["timeout"] == 2
        assert kwargs["cwd"] == "/tmp"

    def test_timeout_is_typed(self, runner):
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="git", timeout=1)):
            with pytest.raises(CommandTimeoutError) as exc_info:
                runner.run("git", ["fetch"], timeout=1)

        assert exc_info.value.timeout_seconds == 1
        assert exc_info.value.command == "git fetch"

    def test_default_timeout(self, runner):
        completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="", stderr="")
        with patch("subprocess.run", return_value=completed) as mock_run:
            runner.run("git", [])

        assert mock_run.call_args.kwargs["timeout"] == 5.0

    def test_os_error_is_command_error(self, runner):
        with patch("subprocess.run", side_effect=PermissionError("denied")):
            with pytest.raises(CommandError) as exc_info:
                runner.run("git", ["status"])

        assert exc_info.value.detail == "denied"

    def test_undecodable_output_is_command_error(self, runner):
        # Latin-1 "café" read back over ssh
        decode_error = UnicodeDecodeError("utf-8", b"caf\xe9", 3, 4, "invalid continuation byte")
        with patch("subprocess.run", side_effect=decode_error):
            with pytest.raises(CommandError) as exc_info:
                runner.run("ssh", ["box", "cat settings.json"])

        assert exc_info.value.command == "ssh box cat settings.json"
        assert "0xe9" in exc_info.value.detail
        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)

    def test_missing_executable(self):
        with patch("project_workspaces.services.command_runner.resolve_executable", return_value=None):
            with pytest.raises(CommandError, match="Executable not found"):
                CommandRunner().run("nope", [])


class TestResolveExecutable:

    def test_absolute_path_must_be_executable(self, tmp_path):
        script = tmp_path / "tool"
        script.write_text("#!/bin/sh\n")
        assert resolve_executable(str(script)) is None

        script.chmod(0o755)
        assert resolve_executable(str(script)) == str(script)

    def test_uses_path_lookup(self):
        with patch("shutil.which", return_value="/opt/homebrew/bin/aerospace"):
            assert resolve_executable("aerospace") == "/opt/homebrew/bin/aerospace"
