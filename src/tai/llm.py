"""
Model backend client.

tai only needs one endpoint, POST {base_url}/chat/completions, so any
OpenAI-compatible server will do (a local Ollama by default). Busy
backends (429, 503), timeouts and dropped connections are retried a
few times before the turn gives up.
"""

import json
import logging
import time
from typing import Any

import httpx

from tai.config import LLMConfig
from tai.types import ToolCall

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10.0
# A long answer from a local model is one slow read
READ_TIMEOUT = 180.0
WRITE_TIMEOUT = 10.0
POOL_TIMEOUT = 10.0

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 5.0
RETRYABLE_STATUS = (429, 503)


class LLMError(Exception):
    """The model backend could not produce an answer."""


class _Retryable(Exception):
    """A failure worth another attempt."""


class LLMClient:
    """Blocking chat client; a turn waits for the model anyway."""

    def __init__(
        self,
        config: LLMConfig | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config or LLMConfig.from_env()
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        timeout = httpx.Timeout(
            connect=CONNECT_TIMEOUT,
            read=READ_TIMEOUT,
            write=WRITE_TIMEOUT,
            pool=POOL_TIMEOUT,
        )

        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        self._client = httpx.Client(
            base_url=self.config.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> "ChatResponse":
        """
        Ask the model for the next message.

        Args:
            messages: Conversation so far, in wire format
            tools: Tool catalog in OpenAI function format

        Raises:
            LLMError: On a non-retryable failure, or when every attempt failed
        """
        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            payload["tools"] = tools

        attempts = self.max_retries + 1
        failure: _Retryable | None = None
        for attempt in range(1, attempts + 1):
            if failure is not None:
                logger.info(f"Retrying in {self.retry_delay}s ({attempt}/{attempts})")
                time.sleep(self.retry_delay)
            try:
                return ChatResponse.from_api_response(self._post(payload, attempt))
            except _Retryable as e:
                logger.warning(f"Attempt {attempt}/{attempts} failed: {e}")
                failure = e

        cause = failure.__cause__ if failure else None
        raise LLMError(f"Request failed after {attempts} attempts: {cause}") from cause

    def _post(self, payload: dict[str, Any], attempt: int) -> dict[str, Any]:
        """One request; transient failures come back as _Retryable."""
        logger.debug(f"POST /chat/completions, {len(payload['messages'])} messages, attempt {attempt}")
        try:
            response = self._client.post("/chat/completions", json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in RETRYABLE_STATUS:
                raise _Retryable(f"backend busy ({status})") from e
            raise LLMError(f"HTTP {status}: {e.response.text}") from e
        except httpx.TransportError as e:
            raise _Retryable(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise LLMError(f"Backend returned invalid JSON: {e}") from e

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "LLMClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class ChatResponse:
    """
    Response from a chat completion request.

    Tool-call arguments stay as the raw JSON text the backend sent.
    """

    def __init__(
        self,
        content: str | None,
        tool_calls: list[ToolCall] | None,
        finish_reason: str = "stop",
        raw_response: dict[str, Any] | None = None,
    ) -> None:
        self.content = content or ""
        self.tool_calls = tool_calls or []
        self.finish_reason = finish_reason
        self.raw_response = raw_response or {}

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ChatResponse":
        """
        Parse an API response into a ChatResponse.

        Raises:
            LLMError: If the response has no choices
        """
        try:
            choice = data["choices"][0]
            message = choice["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Malformed chat completion response: {data!r}") from e

        tool_calls: list[ToolCall] = []
        for tc in message.get("tool_calls") or []:
            function = tc.get("function", {})
            arguments = function.get("arguments", "{}")
            # Some backends send an already-decoded object
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            tool_calls.append(ToolCall(
                id=tc.get("id", ""),
                name=function.get("name", ""),
                arguments=arguments,
            ))

        return cls(
            content=message.get("content"),
            tool_calls=tool_calls,
            finish_reason=choice.get("finish_reason") or "stop",
            raw_response=data,
        )

    @property
    def has_tool_calls(self) -> bool:
        """Check if the response includes tool calls."""
        return len(self.tool_calls) > 0
