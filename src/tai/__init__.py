"""
tai - a terminal assistant that lets a language model act on the local
machine through a small set of sandboxed tools.

Every side effect goes through a registered tool. Filesystem tools are
confined to the workspace root, shell commands need the operator's
confirmation, and every failure is handed back to the model as data.
"""

__version__ = "0.1.0"

from tai.llm import LLMClient, LLMError
from tai.loop import ConversationEngine, TurnResult
from tai.sandbox import PathSandbox
from tai.session import Session
from tai.tools import Tool, ToolRegistry, create_default_registry
from tai.types import Message, Role, ToolCall, ToolResult

__all__ = [
    "ConversationEngine",
    "LLMClient",
    "LLMError",
    "Message",
    "PathSandbox",
    "Role",
    "Session",
    "Tool",
    "ToolCall",
    "ToolRegistry",
    "ToolResult",
    "TurnResult",
    "create_default_registry",
]
