"""
Command-line entry point: `tai [options] <message...>`.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import TextIO

from tai.config import TaiConfig
from tai.errors import WorkspaceError
from tai.history import InteractionHistory
from tai.llm import LLMClient
from tai.loop import ConsoleReporter, ConversationEngine
from tai.prompts import find_context_files
from tai.sandbox import PathSandbox
from tai.tools.registry import create_default_registry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tai", description="Terminal AI Assistant")
    parser.add_argument("message", nargs="*", help="The message to send to the AI")
    parser.add_argument("--nocontext", action="store_true", help="Skip loading context files")
    parser.add_argument("--clear-history", action="store_true", help="Clear conversation history")
    parser.add_argument("--max-steps", type=int, default=None,
                        help="Maximum model calls in one turn (default TAI_MAX_STEPS or 25)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def read_message(stream: TextIO | None = None) -> str:
    """Read a multi-line message from stdin, ending at a blank line or EOF."""
    stream = stream or sys.stdin
    print("> ", end="", flush=True)
    lines: list[str] = []
    for line in stream:
        if not line.strip() and any(part.strip() for part in lines):
            break
        lines.append(line)
    return "".join(lines).strip()


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = TaiConfig.from_env()
    if args.max_steps is not None:
        if args.max_steps <= 0:
            parser.error("--max-steps must be positive")
        config.loop.max_steps = args.max_steps

    history = InteractionHistory.from_config(config.history)
    if args.clear_history:
        history.clear()
        print("History cleared")
        return 0

    user_input = " ".join(args.message) if args.message else read_message()
    if not user_input:
        return 0

    try:
        sandbox = PathSandbox(Path.cwd())
    except WorkspaceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    contexts: list[tuple[str, str]] = []
    if not args.nocontext:
        try:
            contexts = find_context_files(sandbox.root)
        except OSError as e:
            print(f"Warning: Failed to load context files: {e}", file=sys.stderr)
        if contexts:
            print(f"Using context files: [{', '.join(name for name, _ in contexts)}]")

    registry = create_default_registry(sandbox)
    with LLMClient(config.llm) as client:
        engine = ConversationEngine(
            model=client,
            registry=registry,
            config=config.loop,
            history=history,
            contexts=contexts,
            reporter=ConsoleReporter(),
        )
        result = engine.run(user_input)

    if not result.success:
        print(f"Error: {result.error}", file=sys.stderr)
        return 1

    print(result.response)
    return 0


if __name__ == "__main__":
    sys.exit(main())
