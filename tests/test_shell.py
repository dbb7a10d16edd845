"""
Tests for run_shell.
"""

import os
import shutil
import sys
import time
from pathlib import Path
from unittest import mock

import pytest

from tai.errors import CommandTimeoutError, ValidationError
from tai.tools.registry import ToolRegistry, create_default_registry
from tai.tools.shell import (
    Choice,
    ShellTool,
    combine_output,
    parse_choice,
    prompt_confirm,
    run_command,
)

from conftest import call

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell syntax")


def always(choice: Choice):
    seen: list[str] = []

    def confirm(command: str) -> Choice:
        seen.append(command)
        return choice

    confirm.seen = seen
    return confirm


class TestConfirmation:
    """Nothing is spawned without the operator saying so."""

    @pytest.mark.parametrize("answer, expected", [
        ("", Choice.EXECUTE),
        ("y", Choice.EXECUTE),
        ("Y", Choice.EXECUTE),
        ("yes", Choice.EXECUTE),
        ("n", Choice.SKIP),
        ("NO", Choice.SKIP),
        ("c", Choice.COPY),
        ("C", Choice.COPY),
        ("maybe", None),
    ])
    def test_parse_choice(self, answer: str, expected) -> None:
        assert parse_choice(answer) is expected

    def test_prompt_reprompts_on_garbage(self) -> None:
        with mock.patch("builtins.input", side_effect=["what", "n"]):
            assert prompt_confirm("ls") is Choice.SKIP

    def test_prompt_eof_skips(self) -> None:
        with mock.patch("builtins.input", side_effect=EOFError):
            assert prompt_confirm("ls") is Choice.SKIP

    def test_skip_does_not_spawn(self, workspace: Path) -> None:
        confirm = always(Choice.SKIP)
        tool = ShellTool(workspace, confirm=confirm)
        with mock.patch("tai.tools.shell.subprocess.Popen") as popen:
            result = tool.run_shell("touch created.txt")
        popen.assert_not_called()
        assert result == {"command": "touch created.txt", "executed": False}
        assert confirm.seen == ["touch created.txt"]
        assert not (workspace / "created.txt").exists()

    def test_copy_does_not_spawn(self, workspace: Path) -> None:
        copied: list[str] = []
        tool = ShellTool(
            workspace,
            confirm=always(Choice.COPY),
            clipboard=lambda text: copied.append(text) or True,
        )
        with mock.patch("tai.tools.shell.subprocess.Popen") as popen:
            result = tool.run_shell("rm -rf build")
        popen.assert_not_called()
        assert result == {"command": "rm -rf build", "executed": False, "copied": True}
        assert copied == ["rm -rf build"]

    def test_copy_without_clipboard(self, workspace: Path) -> None:
        tool = ShellTool(workspace, confirm=always(Choice.COPY), clipboard=lambda text: False)
        assert tool.run_shell("ls")["copied"] is False


@posix_only
class TestExecution:

    def test_stdout_and_exit_code(self, workspace: Path) -> None:
        tool = ShellTool(workspace, confirm=always(Choice.EXECUTE))
        result = tool.run_shell("echo hello")
        assert result["executed"] is True
        assert result["exit_code"] == 0
        assert result["stdout"] == "hello\n"
        assert result["stderr"] == ""
        assert result["combined"] == "hello\n"

    def test_nonzero_exit_is_data(self, workspace: Path) -> None:
        tool = ShellTool(workspace, confirm=always(Choice.EXECUTE))
        result = tool.run_shell("echo out; echo err 1>&2; exit 3")
        assert result["exit_code"] == 3
        assert result["stdout"] == "out\n"
        assert result["stderr"] == "err\n"
        assert result["combined"] == "out\n\nerr\n"

    def test_runs_in_workspace_root(self, workspace: Path) -> None:
        tool = ShellTool(workspace, confirm=always(Choice.EXECUTE))
        assert Path(tool.run_shell("pwd")["stdout"].strip()).resolve() == workspace.resolve()

    def test_stdin_is_closed(self, workspace: Path) -> None:
        """A command waiting on stdin sees EOF instead of hanging."""
        tool = ShellTool(workspace, confirm=always(Choice.EXECUTE))
        result = tool.run_shell("cat", timeout_sec=5)
        assert result["exit_code"] == 0
        assert result["stdout"] == ""

    def test_timeout_kills_process(self, workspace: Path) -> None:
        """After a timeout the child is gone, not orphaned."""
        tool = ShellTool(workspace, confirm=always(Choice.EXECUTE))
        started = time.monotonic()
        with pytest.raises(CommandTimeoutError, match="timed out after 1s"):
            tool.run_shell("echo $$ > pid.txt; sleep 30", timeout_sec=1)
        assert time.monotonic() - started < 10

        pid = int((workspace / "pid.txt").read_text().strip())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    def test_timeout_kills_grandchildren(self, workspace: Path) -> None:
        tool = ShellTool(workspace, confirm=always(Choice.EXECUTE))
        with pytest.raises(CommandTimeoutError):
            tool.run_shell("sleep 30 & echo $! > child.txt; wait", timeout_sec=1)
        pid = int((workspace / "child.txt").read_text().strip())
        # The orphaned grandchild may linger as a zombie until init reaps it
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            try:
                os.kill(pid, 0)
            except ProcessLookupError:
                break
            if _is_zombie(pid):
                break
            time.sleep(0.05)
        else:
            pytest.fail("grandchild still running")

    @pytest.mark.skipif(shutil.which("setsid") is None, reason="needs setsid")
    def test_timeout_with_detached_pipe_holder(self, workspace: Path) -> None:
        """A process that left the group keeps the pipes open; the deadline still holds."""
        started = time.monotonic()
        with pytest.raises(CommandTimeoutError, match="timed out after 1s"):
            run_command("setsid sleep 8 & sleep 30", workspace, 1)
        assert time.monotonic() - started < 6

    def test_invalid_timeout(self, workspace: Path) -> None:
        tool = ShellTool(workspace, confirm=always(Choice.EXECUTE))
        with pytest.raises(ValidationError):
            tool.run_shell("true", timeout_sec=0)


def _is_zombie(pid: int) -> bool:
    status = Path(f"/proc/{pid}/status")
    try:
        return "State:\tZ" in status.read_text()
    except OSError:
        return False


@posix_only
class TestThroughRegistry:

    def test_timeout_becomes_error_payload(self, registry: ToolRegistry) -> None:
        result = registry.dispatch(call("run_shell", command="sleep 30", timeout_sec=1))
        assert result.payload == {"error": "Command timed out after 1s"}

    def test_skip_through_registry(self, sandbox) -> None:
        registry = create_default_registry(sandbox, confirm=always(Choice.SKIP))
        result = registry.dispatch(call("run_shell", command="echo hi"))
        assert result.success
        assert result.payload["executed"] is False


class TestCombineOutput:

    def test_both(self) -> None:
        assert combine_output("a", "b") == "a\nb"

    def test_one_side(self) -> None:
        assert combine_output("a", "") == "a"
        assert combine_output("", "b") == "b"
