"""
System prompt assembly.
"""

import logging
import shutil
import subprocess
from datetime import timedelta
from pathlib import Path

from tai.history import HistoryEntry
from tai.tools.shell import platform_name

logger = logging.getLogger(__name__)

CONTEXT_FILE_NAME = ".context.tai"

SYSTEM_PROMPT_TEMPLATE = """You are an AI assistant running in a terminal that can call tools to operate on the user's machine.
Your goal is to help the user achieve their task efficiently and safely.

System rules:
- If the user asks you to perform a terminal task, call the run_shell tool with the exact command to execute. Prefer pipes over multiple sequential commands when possible.
- Keep commands non-interactive, idempotent, and safe by default. Avoid destructive operations unless the user explicitly requests them.
- The commands are being executed on {os_name}.
- When executing a terminal command the user can already see the output of the command. Do NOT summarize or restate the command's output.
- If the user is asking about a command (explanatory), answer concisely and include a one-line example, then a brief explanation of key flags.
- After running a command via the tool, use its output to decide next steps. You may call tools multiple times until the task is complete.
- Do not invent file paths or secrets. Never print sensitive values.
- Keep your answer short and concise. Do not exceed {max_words} words!
- When you include code, always use fenced code blocks with a language identifier like ```bash, ```python, etc. Avoid plain triple backticks without a language.
- Always respond using Markdown syntax.

{context_section}{history_section}"""


def git_toplevel(cwd: Path) -> Path | None:
    """Top-level directory of the git work tree containing cwd, if any."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"git unavailable: {e}")
        return None
    if result.returncode != 0 or not result.stdout.strip():
        return None
    return Path(result.stdout.strip())


def find_context_files(root: Path) -> list[tuple[str, str]]:
    """
    Project notes to include in the system prompt.

    Looks for .context.tai in the workspace root, then in the git
    top-level directory. Returns (label, content) pairs.
    """
    local = root / CONTEXT_FILE_NAME
    if local.is_file():
        return [("local", local.read_text(encoding="utf-8"))]

    toplevel = git_toplevel(root)
    if toplevel is not None:
        project = toplevel / CONTEXT_FILE_NAME
        if project.is_file():
            return [("project", project.read_text(encoding="utf-8"))]
    return []


def max_answer_words() -> int:
    """Answer length that fits the current terminal."""
    lines = shutil.get_terminal_size(fallback=(80, 50)).lines
    return max(lines - 6, 10) * 16


def build_system_prompt(
    contexts: list[tuple[str, str]] | None = None,
    relevant_history: list[tuple[HistoryEntry, timedelta]] | None = None,
    os_name: str | None = None,
    max_words: int | None = None,
) -> str:
    context_section = ""
    if contexts:
        context_section = "\n## Additional Context\n\n"
        for name, content in contexts:
            context_section += f"### Context from {name}\n\n{content}\n\n"

    history_section = ""
    if relevant_history:
        history_section = (
            "\nHere are some of your previous interactions (these may not be related "
            "to the current query and are just for reference):\n\n"
        )
        for index, (entry, age) in enumerate(relevant_history, start=1):
            minutes = int(age.total_seconds() // 60)
            history_section += (
                f"Interaction {index} (from {minutes} minutes ago):\n"
                f"User: {entry.user_input}\n"
                f"Assistant: {entry.llm_response}\n\n"
            )

    return SYSTEM_PROMPT_TEMPLATE.format(
        os_name=os_name or platform_name(),
        max_words=max_words or max_answer_words(),
        context_section=context_section,
        history_section=history_section,
    )
