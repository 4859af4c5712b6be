"""
Tests for the completion client.

Uses httpx.MockTransport in place of the network.
"""

import json

import httpx
import pytest
from unittest.mock import patch

from shadow_user.config import AgentConfig
from shadow_user.llm_client import AssistantMessage, LLMClient, ToolCall


def make_client(handler, **overrides):
    config = AgentConfig(
        goal="test",
        model_endpoint="https://llm.test/v1/",
        model="test-model",
        api_key="sk-test",
        **overrides,
    )
    return LLMClient(config, client=httpx.Client(transport=httpx.MockTransport(handler)))


def chat_response(message):
    return httpx.Response(200, json={"choices": [{"message": message}]})


class TestComplete:
    """Tests for LLMClient.complete."""

    def test_request_shape(self):
        """The request carries the model, tools, auto tool choice and temperature."""
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return chat_response({"content": "ok"})

        client = make_client(handler)
        client.complete([{"role": "user", "content": "hi"}], [{"type": "function"}])

        assert seen["url"] == "https://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["model"] == "test-model"
        assert seen["body"]["tool_choice"] == "auto"
        assert seen["body"]["temperature"] == 0.2
        assert seen["body"]["tools"] == [{"type": "function"}]

    def test_parses_tool_calls(self):
        def handler(request):
            return chat_response({
                "content": None,
                "tool_calls": [{
                    "id": "call_7",
                    "type": "function",
                    "function": {"name": "click", "arguments": '{"index": 3}'},
                }],
            })

        reply = make_client(handler).complete([], [])

        assert reply.content is None
        assert reply.tool_calls == [ToolCall(id="call_7", name="click", arguments='{"index": 3}')]

    def test_object_arguments_are_serialized(self):
        """Some servers send arguments as an object instead of a string."""
        def handler(request):
            return chat_response({
                "tool_calls": [{"id": "c", "function": {"name": "scroll", "arguments": {"dy": 500}}}],
            })

        reply = make_client(handler).complete([], [])

        assert json.loads(reply.tool_calls[0].arguments) == {"dy": 500}

    def test_no_choices(self):
        reply = make_client(lambda request: httpx.Response(200, json={"choices": []})).complete([], [])
        assert reply is None

    def test_retries_rate_limit(self):
        """HTTP 429 is retried with backoff."""
        responses = [httpx.Response(429, json={}), chat_response({"content": "done"})]

        with patch("shadow_user.llm_client.time.sleep") as sleep:
            reply = make_client(lambda request: responses.pop(0)).complete([], [])

        assert reply.text == "done"
        sleep.assert_called_once_with(4)

    def test_server_error_propagates(self):
        client = make_client(lambda request: httpx.Response(500, json={"error": "boom"}))

        with pytest.raises(httpx.HTTPStatusError):
            client.complete([], [])

    def test_transport_error_exhausts_retries(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with patch("shadow_user.llm_client.time.sleep") as sleep:
            with pytest.raises(httpx.ConnectError):
                make_client(handler).complete([], [], max_retries=2)

        assert sleep.call_count == 2


class TestAssistantMessage:
    """Tests for transcript conversion."""

    def test_to_transcript_with_calls(self):
        message = AssistantMessage(tool_calls=[ToolCall(id="c1", name="go_back")])

        assert message.to_transcript() == {
            "role": "assistant",
            "content": "",
            "tool_calls": [{"id": "c1", "type": "function", "function": {"name": "go_back", "arguments": "{}"}}],
        }

    def test_text_only(self):
        message = AssistantMessage(content="  Done.  ")

        assert message.text == "Done."
        assert "tool_calls" not in message.to_transcript()
