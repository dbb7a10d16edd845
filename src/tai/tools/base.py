"""
Tool Contract - the uniform interface every capability implements.

A tool is a declarative spec (name, description, parameter descriptors)
plus a blocking handler. The spec is built once at startup and is used
both for the catalog advertised to the model and to validate the
arguments of incoming calls before the handler ever sees them.
"""

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from tai.errors import ValidationError

logger = logging.getLogger(__name__)

_PYTHON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
}


class ToolHandler(Protocol):
    """Protocol for tool handler functions."""
    def __call__(self, **kwargs: Any) -> dict[str, Any]: ...


def _matches_type(value: Any, type_name: str) -> bool:
    expected = _PYTHON_TYPES.get(type_name)
    if expected is None:
        return True
    # bool is an int subclass; never accept it where a number is expected
    if isinstance(value, bool) and bool not in expected:
        return False
    return isinstance(value, expected)


@dataclass(frozen=True)
class ParamSpec:
    """One parameter of a tool."""
    name: str
    type: str
    description: str
    required: bool = False
    items: str | None = None

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": self.type,
            "description": self.description,
        }
        if self.type == "array":
            schema["items"] = {"type": self.items or "string"}
        return schema

    def check(self, value: Any) -> None:
        """Raise ValidationError if value does not fit this parameter."""
        if not _matches_type(value, self.type):
            raise ValidationError(
                f"Parameter '{self.name}' must be of type {self.type}, "
                f"got {type(value).__name__}"
            )
        if self.type == "array" and self.items:
            for index, item in enumerate(value):
                if not _matches_type(item, self.items):
                    raise ValidationError(
                        f"Parameter '{self.name}[{index}]' must be of type {self.items}, "
                        f"got {type(item).__name__}"
                    )


@dataclass(frozen=True)
class ToolSpec:
    """Schema of a tool as advertised to the model."""
    name: str
    description: str
    parameters: tuple[ParamSpec, ...] = ()

    @property
    def required(self) -> list[str]:
        return [p.name for p in self.parameters if p.required]

    def get_param(self, name: str) -> ParamSpec | None:
        for param in self.parameters:
            if param.name == name:
                return param
        return None

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI tool format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {p.name: p.to_json_schema() for p in self.parameters},
                    "required": self.required,
                },
            },
        }

    def validate(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """
        Check arguments against the parameter descriptors.

        Returns the arguments the handler should receive: explicit nulls
        are treated as absent and parameters the tool does not declare are
        dropped.

        Raises:
            ValidationError: naming the first missing or mistyped parameter
        """
        cleaned: dict[str, Any] = {}
        for key, value in arguments.items():
            if value is None:
                continue
            param = self.get_param(key)
            if param is None:
                logger.debug(f"Ignoring undeclared parameter {key!r} for tool {self.name}")
                continue
            param.check(value)
            cleaned[key] = value

        for name in self.required:
            if name not in cleaned:
                raise ValidationError(f"Missing required parameter: {name}")
        return cleaned


@dataclass(frozen=True)
class Tool:
    """
    Definition of a tool that the model can use.

    The handler is the ONLY code that can have side effects. It receives
    validated keyword arguments and returns a JSON-serializable dict; it
    signals failure by raising, never by returning an error payload.
    """
    spec: ToolSpec
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.spec.name


def non_negative(name: str, value: int) -> int:
    """Shared check for count-like integer parameters."""
    if value < 0:
        raise ValidationError(f"Parameter '{name}' must be non-negative, got {value}")
    return value


def positive(name: str, value: int) -> int:
    if value <= 0:
        raise ValidationError(f"Parameter '{name}' must be positive, got {value}")
    return value
