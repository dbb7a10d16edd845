"""Built-in tools and the registry that dispatches to them."""

from tai.tools.base import ParamSpec, Tool, ToolSpec
from tai.tools.registry import ToolRegistry, create_default_registry

__all__ = [
    "ParamSpec",
    "Tool",
    "ToolRegistry",
    "ToolSpec",
    "create_default_registry",
]
