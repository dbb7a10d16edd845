"""
Conversation Engine - the turn-based runtime.

One user turn runs the loop:

1. Send the full history and the tool catalog to the model
2. If the model answers in plain text: record it, the turn is done
3. If it asks for tools: run every call in the order received, record
   the calls, their results and a steering message, goto 1

The loop has a hard max_steps limit so a model that never stops asking
for tools cannot run forever.
"""

import json
import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, TextIO

from tai.config import LoopConfig
from tai.history import InteractionHistory
from tai.llm import ChatResponse, LLMError
from tai.prompts import build_system_prompt
from tai.session import Session
from tai.tools.registry import ToolRegistry
from tai.types import ToolCall, ToolResult

logger = logging.getLogger(__name__)

SHELL_STEERING = (
    "Summarize the results of the terminal command succinctly and proceed with any next "
    "steps to complete the user's request. If the command output already satisfies the "
    "request, provide the final answer concisely."
)
TOOL_STEERING = (
    "Use the tool outputs above to answer the user directly. Provide a concise summary or "
    "the requested information. If more actions are needed, call a tool."
)

SENSITIVE_KEY_HINTS = (
    "key", "token", "secret", "password", "passwd", "auth",
    "cookie", "session", "bearer",
)
MAX_VALUE_CHARS = 160
MAX_ITEM_CHARS = 60
MAX_INLINE_ITEMS = 5


class ChatModel(Protocol):
    """Anything that can answer a chat request, such as LLMClient."""
    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> ChatResponse: ...


class EngineState(Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    DONE = "done"


@dataclass
class StepResult:
    """Result of a single model call in the loop."""
    step_number: int
    action: str
    content: str | None = None
    tool_calls_made: int = 0
    results: list[ToolResult] = field(default_factory=list)


@dataclass
class TurnResult:
    """Final result of running one user turn."""
    success: bool
    response: str | None
    steps_taken: int
    step_results: list[StepResult] = field(default_factory=list)
    error: str | None = None
    stopped_reason: str = "completed"


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(hint in lowered for hint in SENSITIVE_KEY_HINTS)


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "…"


def _render_scalar(value: Any, limit: int) -> str:
    if isinstance(value, str):
        return truncate(value, limit)
    return json.dumps(value)


def render_value(key: str, value: Any) -> str:
    """Short display form of one argument value; secrets are masked."""
    if is_sensitive_key(key):
        return "***"
    if isinstance(value, dict):
        return f"{{{len(value)} keys}}"
    if isinstance(value, list):
        if not value:
            return "[]"
        if len(value) <= MAX_INLINE_ITEMS and not any(isinstance(v, (dict, list)) for v in value):
            parts = [
                f'"{truncate(v, MAX_ITEM_CHARS)}"' if isinstance(v, str) else json.dumps(v)
                for v in value
            ]
            return "[" + ", ".join(parts) + "]"
        return f"[{len(value)} items]"
    return _render_scalar(value, MAX_VALUE_CHARS)


def format_arguments(raw: str) -> str:
    """Indented key/value listing of a call's JSON arguments, sorted by key."""
    try:
        arguments = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError:
        return raw
    if not isinstance(arguments, dict):
        return json.dumps(arguments, indent=2)

    lines = []
    for key in sorted(arguments):
        value = arguments[key]
        if isinstance(value, dict) and not is_sensitive_key(key):
            lines.append(f"  {key}:")
            for sub_key in sorted(value):
                lines.append(f"    {sub_key}: {render_value(sub_key, value[sub_key])}")
        else:
            lines.append(f"  {key}: {render_value(key, value)}")
    return "\n".join(lines)


class ConsoleReporter:
    """Plain-text echo of tool activity for the operator."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream

    def _print(self, text: str) -> None:
        print(text, file=self.stream or sys.stdout, flush=True)

    def tool_call(self, call: ToolCall) -> None:
        self._print(f"Tool call: {call.name}")
        self._print(f"params:\n{format_arguments(call.arguments)}")

    def tool_result(self, result: ToolResult) -> None:
        if result.success:
            pretty = json.dumps(result.payload, indent=2, ensure_ascii=False, default=str)
            self._print(f"result:\n{pretty}")
        else:
            self._print(f"result: {result.error}")


class ConversationEngine:
    """
    The turn-based tool-calling loop.

    The engine owns no I/O of its own: the model, the registry (and with
    it every side effect), the history store and the operator echo are
    all handed in.
    """

    def __init__(
        self,
        model: ChatModel,
        registry: ToolRegistry,
        session: Session | None = None,
        config: LoopConfig | None = None,
        history: InteractionHistory | None = None,
        contexts: list[tuple[str, str]] | None = None,
        reporter: ConsoleReporter | None = None,
        system_prompt: str | None = None,
    ) -> None:
        """Initialize the engine."""
        self.model = model
        self.registry = registry
        self.session = session or Session()
        self.config = config or LoopConfig.from_env()
        self.history = history
        self.contexts = contexts or []
        self.reporter = reporter
        self.system_prompt = system_prompt
        self.state = EngineState.IDLE

    def _initial_prompt(self) -> str:
        if self.system_prompt is not None:
            return self.system_prompt
        relevant = self.history.relevant_entries() if self.history else []
        return build_system_prompt(self.contexts, relevant)

    def run(self, user_input: str) -> TurnResult:
        """
        Run the loop for a single user turn.

        Args:
            user_input: The user's message

        Returns:
            TurnResult with the model's final answer
        """
        if self.session.is_empty:
            self.session.add_system_message(self._initial_prompt())
        self.session.add_user_message(user_input)

        step_results: list[StepResult] = []
        step = 0
        self.state = EngineState.AWAITING_MODEL

        while self.state is not EngineState.DONE and step < self.config.max_steps:
            step += 1
            logger.info(f"Conversation step {step}/{self.config.max_steps}")

            try:
                step_result = self._execute_step(step)
            except LLMError as e:
                logger.error(f"LLM error at step {step}: {e}")
                self.state = EngineState.DONE
                return TurnResult(
                    success=False,
                    response=None,
                    steps_taken=step,
                    step_results=step_results,
                    error=str(e),
                    stopped_reason="llm_error",
                )
            step_results.append(step_result)

            if step_result.action == "final_response":
                self.state = EngineState.DONE
                response = step_result.content or ""
                self._remember(user_input, response)
                return TurnResult(
                    success=True,
                    response=response,
                    steps_taken=step,
                    step_results=step_results,
                )

        logger.warning(f"Conversation hit max_steps limit ({self.config.max_steps})")
        self.state = EngineState.DONE
        return TurnResult(
            success=False,
            response=None,
            steps_taken=step,
            step_results=step_results,
            error="Max steps exceeded",
            stopped_reason="max_steps_exceeded",
        )

    def _execute_step(self, step: int) -> StepResult:
        """One model call, and the tool round it asks for if any."""
        tool_schemas = self.registry.get_schemas() if len(self.registry) > 0 else None
        response = self.model.chat(self.session.get_message_dicts(), tools=tool_schemas)

        if not response.has_tool_calls:
            self.session.add_assistant_message(response.content)
            return StepResult(
                step_number=step,
                action="final_response",
                content=response.content,
            )

        self.state = EngineState.DISPATCHING_TOOLS
        calls = list(response.tool_calls)
        self.session.add_assistant_message(response.content, tool_calls=calls)

        results = [self._dispatch(call) for call in calls]
        self.session.add_tool_results(results)

        ran_shell = any(call.name == "run_shell" for call in calls)
        self.session.add_system_message(SHELL_STEERING if ran_shell else TOOL_STEERING)

        self.state = EngineState.AWAITING_MODEL
        return StepResult(
            step_number=step,
            action="tool_calls",
            content=response.content,
            tool_calls_made=len(calls),
            results=results,
        )

    def _dispatch(self, call: ToolCall) -> ToolResult:
        if self.reporter:
            self.reporter.tool_call(call)
        result = self.registry.dispatch(call)
        if self.reporter:
            self.reporter.tool_result(result)
        return result

    def _remember(self, user_input: str, response: str) -> None:
        if self.history is None:
            return
        try:
            self.history.add_entry(user_input, response)
        except OSError as e:
            logger.warning(f"Could not save interaction history: {e}")
