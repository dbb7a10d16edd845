"""
Tool Registry - the controlled interface through which the model acts.

The registry maps tool names to tools, advertises their schemas, and is
the single boundary where a tool call becomes a ToolResult. Whatever goes
wrong (unknown name, unparseable arguments, a failing handler) comes back
as an ``{"error": message}`` payload; dispatch itself never raises.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from tai.errors import ParseError, ToolError
from tai.events import EventLog, EventType
from tai.sandbox import PathSandbox
from tai.tools.base import Tool, ToolSpec
from tai.tools.dir import DirTools
from tai.tools.fetch import FetchTool
from tai.tools.file import FileTools
from tai.tools.shell import Choice, ShellTool, prompt_confirm
from tai.types import ToolCall, ToolResult

logger = logging.getLogger(__name__)


def parse_arguments(raw: str) -> dict[str, Any]:
    """
    Decode the JSON arguments of a tool call.

    An empty string is treated as no arguments.

    Raises:
        ParseError: If the text is not JSON or not a JSON object
    """
    if not raw.strip():
        return {}
    try:
        arguments = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON arguments: {e}") from e
    if not isinstance(arguments, dict):
        raise ParseError(f"Arguments must be a JSON object, got {type(arguments).__name__}")
    return arguments


@dataclass
class ToolRegistry:
    """
    Registry of available tools.

    Only tools registered here can be called. Registration order is the
    order of the advertised catalog.
    """

    _tools: dict[str, Tool] = field(default_factory=dict)
    event_log: EventLog = field(default_factory=EventLog)

    def register(self, tool: Tool) -> None:
        """
        Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered
        """
        if tool.name in self._tools:
            logger.warning(f"Refusing duplicate tool registration: {tool.name}")
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def catalog(self) -> list[ToolSpec]:
        return [tool.spec for tool in self._tools.values()]

    def get_schemas(self) -> list[dict[str, Any]]:
        """Get OpenAI-format schemas for all registered tools."""
        return [spec.to_openai_schema() for spec in self.catalog()]

    def dispatch(self, tool_call: ToolCall) -> ToolResult:
        """
        Execute one tool call and wrap the outcome.

        This is the controlled entry point for all side effects.
        """
        log = self.event_log
        log.log_event(EventType.TOOL_CALL_RECEIVED, tool_call.id, tool_name=tool_call.name)

        tool = self._tools.get(tool_call.name)
        if tool is None:
            return self._fail(tool_call, f"Unknown tool: {tool_call.name}")

        try:
            arguments = tool.spec.validate(parse_arguments(tool_call.arguments))
        except ToolError as e:
            log.log_event(EventType.ARGUMENT_VALIDATION, tool_call.id, valid=False, error=str(e))
            return self._fail(tool_call, str(e))
        log.log_event(EventType.ARGUMENT_VALIDATION, tool_call.id, valid=True)

        logger.info(f"Executing tool: {tool_call.name}")
        log.log_event(EventType.TOOL_EXECUTION_START, tool_call.id, tool_name=tool.name)
        try:
            payload = tool.handler(**arguments)
        except Exception as e:
            if not isinstance(e, ToolError):
                logger.exception(f"Tool {tool.name} raised unexpectedly")
            log.log_event(EventType.TOOL_EXECUTION_END, tool_call.id, success=False)
            return self._fail(tool_call, str(e) or type(e).__name__)

        log.log_event(EventType.TOOL_EXECUTION_END, tool_call.id, success=True)
        result = ToolResult(tool_call_id=tool_call.id, payload=payload)
        log.log_event(EventType.TOOL_RESULT_RETURNED, tool_call.id, success=result.success)
        return result

    def _fail(self, tool_call: ToolCall, message: str) -> ToolResult:
        logger.info(f"Tool call {tool_call.name} failed: {message}")
        self.event_log.log_event(EventType.ERROR, tool_call.id, error=message)
        return ToolResult.failure(tool_call.id, message)

    @property
    def tool_names(self) -> list[str]:
        """List of registered tool names."""
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools


def create_default_registry(
    sandbox: PathSandbox,
    confirm: Callable[[str], Choice] = prompt_confirm,
    fetch_transport: httpx.BaseTransport | None = None,
) -> ToolRegistry:
    """
    Create a registry with the nine built-in tools.

    All filesystem tools share `sandbox`; run_shell runs in its root.
    """
    registry = ToolRegistry()
    file_tools = FileTools(sandbox).tools()
    by_name = {tool.name: tool for tool in file_tools}

    for tool in (
        by_name["read_file"],
        by_name["write_file"],
        by_name["patch_file"],
        *DirTools(sandbox).tools(),
        by_name["grep"],
        *ShellTool(sandbox.root, confirm=confirm).tools(),
        *FetchTool(transport=fetch_transport).tools(),
    ):
        registry.register(tool)
    return registry
