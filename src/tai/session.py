"""
Session - the conversation history of one run.

The history is append-only: messages are never reordered, edited or
removed once added, and readers only ever get copies. That is what lets
the model see, on every request, exactly what happened before.
"""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from tai.types import Message, Role, ToolCall, ToolResult


@dataclass
class Session:
    """
    A single conversation.

    The session owns the message history for the lifetime of the process.
    Nothing is carried over between runs except through InteractionHistory.
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    _messages: list[Message] = field(default_factory=list, repr=False)

    def _append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def add_system_message(self, content: str) -> Message:
        """Add a system message to the conversation."""
        return self._append(Message(role=Role.SYSTEM, content=content))

    def add_user_message(self, content: str) -> Message:
        """Add a user message to the conversation."""
        return self._append(Message(role=Role.USER, content=content))

    def add_assistant_message(
        self,
        content: str,
        tool_calls: list[ToolCall] | None = None,
    ) -> Message:
        """Add an assistant message, with the tool calls it issued if any."""
        return self._append(Message(
            role=Role.ASSISTANT,
            content=content,
            tool_calls=tuple(tool_calls or ()),
        ))

    def add_tool_results(self, results: list[ToolResult]) -> Message:
        """Record the results of one round of tool calls, in call order."""
        return self._append(Message(
            role=Role.TOOL,
            content="",
            tool_results=tuple(results),
        ))

    def get_messages(self) -> list[Message]:
        """Get all messages in the conversation."""
        return list(self._messages)

    def get_message_dicts(self) -> list[dict[str, Any]]:
        """Get all messages as dicts (for API calls)."""
        return [d for m in self._messages for d in m.to_dicts()]

    @property
    def is_empty(self) -> bool:
        return not self._messages

    @property
    def message_count(self) -> int:
        """Number of messages in the conversation."""
        return len(self._messages)
