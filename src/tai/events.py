"""
Dispatch event log.

The registry records what happened to every tool call (received,
validated, executed, failed) in an append-only log. The log is kept in
memory, capped at the most recent MAX_EVENTS entries, and every event is
also written to the debug log.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

MAX_EVENTS = 10_000


class EventType(Enum):
    """Types of events in the dispatch log."""
    TOOL_CALL_RECEIVED = "tool_call_received"
    ARGUMENT_VALIDATION = "argument_validation"
    TOOL_EXECUTION_START = "tool_execution_start"
    TOOL_EXECUTION_END = "tool_execution_end"
    TOOL_RESULT_RETURNED = "tool_result_returned"
    ERROR = "error"


@dataclass
class DispatchEvent:
    """A single event in the dispatch log."""
    timestamp: datetime
    event_type: EventType
    tool_call_id: str
    data: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "tool_call_id": self.tool_call_id,
            "data": self.data,
        }


@dataclass
class EventLog:
    """Append-only event log for registry dispatch; the oldest events fall off."""
    max_events: int = MAX_EVENTS
    events: deque[DispatchEvent] = field(init=False)

    def __post_init__(self) -> None:
        self.events = deque(maxlen=self.max_events)

    def log_event(
        self,
        event_type: EventType,
        tool_call_id: str = "",
        **data: Any,
    ) -> DispatchEvent:
        event = DispatchEvent(
            timestamp=datetime.now(UTC),
            event_type=event_type,
            tool_call_id=tool_call_id,
            data=data,
        )
        self.events.append(event)
        logger.debug(f"{event_type.value} {tool_call_id} {data}")
        return event

    def get_events_for_call(self, tool_call_id: str) -> list[DispatchEvent]:
        return [e for e in self.events if e.tool_call_id == tool_call_id]

    def clear(self) -> None:
        self.events.clear()

    def __len__(self) -> int:
        return len(self.events)
