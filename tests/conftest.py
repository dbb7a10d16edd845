"""
Shared fixtures.
"""

import json
from pathlib import Path

import pytest

from tai.llm import ChatResponse
from tai.sandbox import PathSandbox
from tai.tools.registry import ToolRegistry, create_default_registry
from tai.tools.shell import Choice
from tai.types import ToolCall


class MockLLMClient:
    """Mock LLM client that replays scripted responses."""

    def __init__(self, responses: list[ChatResponse] | None = None):
        self._responses = responses or []
        self._response_index = 0
        self.calls: list[dict] = []

    def chat(self, messages: list[dict], tools: list[dict] | None = None) -> ChatResponse:
        self.calls.append({"messages": messages, "tools": tools})

        if self._response_index < len(self._responses):
            response = self._responses[self._response_index]
            self._response_index += 1
            return response

        return ChatResponse(content="Default response", tool_calls=[], finish_reason="stop")


def call(name: str, call_id: str = "call_1", **arguments) -> ToolCall:
    """Build a ToolCall with JSON-encoded arguments."""
    return ToolCall(id=call_id, name=name, arguments=json.dumps(arguments))


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def sandbox(workspace: Path) -> PathSandbox:
    return PathSandbox(workspace)


@pytest.fixture
def registry(sandbox: PathSandbox) -> ToolRegistry:
    """Default registry whose shell confirmation always says yes."""
    return create_default_registry(sandbox, confirm=lambda command: Choice.EXECUTE)
