"""
Tests for the OpenAI-compatible client, against httpx.MockTransport.
"""

import json

import httpx
import pytest

from tai.config import LLMConfig
from tai.llm import ChatResponse, LLMClient, LLMError


def make_client(handler, **kwargs) -> LLMClient:
    config = LLMConfig(base_url="http://llm.test/v1", api_key="secret", model="test-model")
    return LLMClient(config, transport=httpx.MockTransport(handler), retry_delay=0, **kwargs)


def completion(message: dict, finish_reason: str = "stop") -> dict:
    return {"choices": [{"message": message, "finish_reason": finish_reason}]}


class TestChatResponse:

    def test_plain_text(self) -> None:
        response = ChatResponse.from_api_response(completion({"role": "assistant", "content": "hi"}))
        assert response.content == "hi"
        assert not response.has_tool_calls

    def test_tool_call_arguments_stay_raw(self) -> None:
        """Malformed arguments are not parsed here; the registry reports them."""
        response = ChatResponse.from_api_response(completion({
            "role": "assistant",
            "content": None,
            "tool_calls": [{
                "id": "call_1",
                "type": "function",
                "function": {"name": "read_file", "arguments": "{broken"},
            }],
        }, finish_reason="tool_calls"))
        assert response.content == ""
        assert response.tool_calls[0].arguments == "{broken"
        assert response.finish_reason == "tool_calls"

    def test_object_arguments_are_encoded(self) -> None:
        response = ChatResponse.from_api_response(completion({
            "tool_calls": [{"id": "c", "function": {"name": "stat", "arguments": {"path": "."}}}],
        }))
        assert json.loads(response.tool_calls[0].arguments) == {"path": "."}

    def test_malformed_response(self) -> None:
        with pytest.raises(LLMError):
            ChatResponse.from_api_response({"choices": []})


class TestLLMClient:

    def test_request_shape(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=completion({"content": "ok"}))

        tools = [{"type": "function", "function": {"name": "stat"}}]
        with make_client(handler) as client:
            response = client.chat([{"role": "user", "content": "hi"}], tools=tools)

        assert response.content == "ok"
        request = seen[0]
        assert request.url == "http://llm.test/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer secret"
        body = json.loads(request.content)
        assert body["model"] == "test-model"
        assert body["tools"] == tools

    def test_retries_on_503(self) -> None:
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json=completion({"content": "finally"}))

        assert make_client(handler).chat([]).content == "finally"
        assert len(attempts) == 3

    def test_gives_up_after_retries(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(LLMError, match="after 2 attempts"):
            make_client(handler, max_retries=1).chat([])

    def test_client_error_not_retried(self) -> None:
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            return httpx.Response(400, text="bad request")

        with pytest.raises(LLMError, match="HTTP 400"):
            make_client(handler).chat([])
        assert len(attempts) == 1
