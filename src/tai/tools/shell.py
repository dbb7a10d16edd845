"""
Process tool: run_shell.

Every command is shown to the operator first and only runs after an
explicit choice. The child runs in its own process group with stdin
closed; if it outlives its deadline the whole group is killed and reaped
before the call fails, so nothing is left running behind the model's back.
"""

import logging
import os
import shutil
import signal
import subprocess
import sys
from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any

from tai.errors import CommandTimeoutError, ProcessError
from tai.tools.base import ParamSpec, Tool, ToolSpec, positive
from tai.types import ProcessResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SEC = 120
KILL_GRACE_SEC = 2
CONFIRM_PROMPT = "Do you want to execute this command? [Y/n/c] "


class Choice(str, Enum):
    """Operator answer to the confirmation prompt."""
    EXECUTE = "execute"
    SKIP = "skip"
    COPY = "copy"


Confirmer = Callable[[str], Choice]


def parse_choice(answer: str) -> Choice | None:
    """Map a typed answer to a Choice; None if it is not recognised."""
    normalized = answer.strip().lower()
    if normalized in ("", "y", "yes"):
        return Choice.EXECUTE
    if normalized in ("n", "no"):
        return Choice.SKIP
    if normalized == "c":
        return Choice.COPY
    return None


def prompt_confirm(command: str) -> Choice:
    """
    Ask the operator on the terminal.

    Unrecognised answers re-prompt. End of input counts as skip.
    """
    while True:
        try:
            answer = input(CONFIRM_PROMPT)
        except EOFError:
            print()
            return Choice.SKIP
        choice = parse_choice(answer)
        if choice is not None:
            return choice
        print("Please answer y, n or c.")


_CLIPBOARD_COMMANDS: list[list[str]] = [
    ["pbcopy"],
    ["clip"],
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
]


def copy_to_clipboard(text: str) -> bool:
    """Put text on the system clipboard using whichever helper is installed."""
    for cmd in _CLIPBOARD_COMMANDS:
        if shutil.which(cmd[0]) is None:
            continue
        try:
            subprocess.run(cmd, input=text, text=True, check=True, timeout=5, capture_output=True)
            return True
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Clipboard helper {cmd[0]} failed: {e}")
    return False


def shell_argv(command: str) -> list[str]:
    if sys.platform == "win32":
        return ["cmd", "/C", command]
    return ["sh", "-c", command]


def _kill_tree(process: subprocess.Popen[bytes]) -> None:
    if sys.platform == "win32":
        process.kill()
        return
    try:
        os.killpg(process.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def _decode(data: bytes | None) -> str:
    return (data or b"").decode("utf-8", errors="replace")


def combine_output(stdout: str, stderr: str) -> str:
    if not stderr:
        return stdout
    if not stdout:
        return stderr
    return f"{stdout}\n{stderr}"


def run_command(command: str, cwd: Path, timeout_sec: float) -> ProcessResult:
    """
    Spawn the platform shell for `command` and wait up to `timeout_sec`.

    Raises:
        ProcessError: If the shell could not be spawned
        CommandTimeoutError: If the deadline passed; the process group is killed
    """
    popen_kwargs: dict[str, Any] = {}
    if sys.platform != "win32":
        popen_kwargs["start_new_session"] = True

    try:
        process = subprocess.Popen(
            shell_argv(command),
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            **popen_kwargs,
        )
    except OSError as e:
        raise ProcessError(f"Failed to execute command: {e}") from e

    try:
        stdout, stderr = process.communicate(timeout=timeout_sec)
    except subprocess.TimeoutExpired as e:
        _kill_tree(process)
        try:
            process.communicate(timeout=KILL_GRACE_SEC)
        except subprocess.TimeoutExpired:
            # A process outside the group still holds the pipes
            process.stdout.close()
            process.stderr.close()
            process.wait()
        logger.warning(f"Command killed after {timeout_sec}s: {command}")
        raise CommandTimeoutError(f"Command timed out after {timeout_sec}s") from e
    except BaseException:
        _kill_tree(process)
        process.wait()
        raise

    out, err = _decode(stdout), _decode(stderr)
    return ProcessResult(
        command=command,
        executed=True,
        exit_code=process.returncode,
        stdout=out,
        stderr=err,
        combined=combine_output(out, err),
    )


def platform_name() -> str:
    if sys.platform == "win32":
        return "Windows"
    if sys.platform == "darwin":
        return "Mac OS"
    return "Linux"


class ShellTool:
    """run_shell with operator confirmation and a hard timeout."""

    name = "run_shell"

    def __init__(
        self,
        cwd: Path,
        confirm: Confirmer = prompt_confirm,
        clipboard: Callable[[str], bool] = copy_to_clipboard,
    ) -> None:
        self.cwd = cwd
        self.confirm = confirm
        self.clipboard = clipboard

    def run_shell(self, command: str, timeout_sec: int = DEFAULT_TIMEOUT_SEC) -> dict[str, Any]:
        positive("timeout_sec", timeout_sec)

        choice = self.confirm(command)
        if choice is Choice.COPY:
            copied = self.clipboard(command)
            print("Command copied to clipboard" if copied else "Failed to copy to clipboard")
            return ProcessResult(command=command, executed=False, copied=copied).to_dict()
        if choice is Choice.SKIP:
            print("Command execution cancelled")
            return ProcessResult(command=command, executed=False).to_dict()

        logger.info(f"Running shell command: {command}")
        return run_command(command, self.cwd, timeout_sec).to_dict()

    def tools(self) -> list[Tool]:
        """Tool definitions for registration."""
        platform = platform_name()
        shell = "cmd /C" if platform == "Windows" else "sh -c"
        return [
            Tool(
                spec=ToolSpec(
                    name=self.name,
                    description=(
                        f"Execute a {platform} shell command on the user's machine. The machine runs {platform}. "
                        "The user can see the command output! Use for tasks that require terminal operations. "
                        "Always prefer safe, idempotent commands and avoid destructive operations."
                    ),
                    parameters=(
                        ParamSpec(
                            "command",
                            "string",
                            f"The exact shell command to execute (Using `{shell}`)",
                            required=True,
                        ),
                        ParamSpec(
                            "timeout_sec",
                            "integer",
                            f"Optional timeout in seconds (defaults to {DEFAULT_TIMEOUT_SEC})",
                        ),
                    ),
                ),
                handler=self.run_shell,
            ),
        ]
