"""
Core types for the assistant.

These types represent the data that flows through the conversation loop:
messages in the history, tool calls requested by the model, and the
structured results handed back to it.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Message roles in the conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """
    A request from the model to execute a tool.

    `arguments` is kept exactly as received on the wire (a JSON-encoded
    object). Parsing happens at the registry so that malformed arguments
    become a structured error instead of a crash in the model client.
    """
    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to OpenAI API format."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": self.arguments,
            },
        }


@dataclass(frozen=True)
class ToolResult:
    """
    The result of executing a tool call.

    `payload` is either the tool's JSON object or ``{"error": message}``.
    It is never an exception object.
    """
    tool_call_id: str
    payload: dict[str, Any]

    @property
    def success(self) -> bool:
        return "error" not in self.payload

    @property
    def error(self) -> str | None:
        error = self.payload.get("error")
        return str(error) if error is not None else None

    @property
    def content(self) -> str:
        """Payload serialized for the model."""
        return json.dumps(self.payload, ensure_ascii=False, default=str)

    @classmethod
    def failure(cls, tool_call_id: str, message: str) -> "ToolResult":
        return cls(tool_call_id=tool_call_id, payload={"error": message})


@dataclass(frozen=True)
class Message:
    """
    A single message in the conversation history.

    An assistant message may carry the tool calls it issued; a tool message
    carries the results for all calls of one model turn, in call order.
    """
    role: Role
    content: str
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()

    def to_dicts(self) -> list[dict[str, Any]]:
        """
        Convert to OpenAI API format.

        The wire format wants one ``tool`` message per result, so a message
        recording several results expands into several dicts.
        """
        if self.tool_results:
            return [
                {
                    "role": Role.TOOL.value,
                    "tool_call_id": result.tool_call_id,
                    "content": result.content,
                }
                for result in self.tool_results
            ]

        result: dict[str, Any] = {
            "role": self.role.value,
            "content": self.content,
        }
        if self.tool_calls:
            result["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        return [result]


@dataclass(frozen=True)
class FileReplacement:
    """One replacement inside a patch request."""
    old_string: str
    new_string: str
    replace_all: bool = False


@dataclass
class ProcessResult:
    """Outcome of a shell command, as reported to the model."""
    command: str
    executed: bool
    exit_code: int | None = None
    stdout: str = ""
    stderr: str = ""
    combined: str = ""
    copied: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "command": self.command,
            "executed": self.executed,
        }
        if self.executed:
            result.update(
                exit_code=self.exit_code,
                stdout=self.stdout,
                stderr=self.stderr,
                combined=self.combined,
            )
        if self.copied is not None:
            result["copied"] = self.copied
        return result
