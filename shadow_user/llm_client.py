"""
LLM client for Shadow User.

Talks to an OpenAI-compatible chat completions endpoint with native
function calling, and validates the returned message with Pydantic.
"""

import json
import logging
import time
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from .config import AgentConfig

logger = logging.getLogger(__name__)


class ToolCall(BaseModel):
    """One structured action request emitted by the model."""

    id: str = ""
    name: str
    arguments: str = "{}"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ToolCall":
        """Build from the wire shape ``{id, type, function: {name, arguments}}``."""
        function = data.get("function") or {}
        arguments = function.get("arguments")
        if arguments is None or arguments == "":
            arguments = "{}"
        return cls(
            id=data.get("id") or "",
            name=function.get("name") or "",
            arguments=arguments if isinstance(arguments, str) else _dumps(arguments),
        )

    def to_api(self) -> dict[str, Any]:
        """Wire shape for echoing the call back in the transcript."""
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


class AssistantMessage(BaseModel):
    """The model's reply for one decision step."""

    content: Optional[str] = None
    tool_calls: list[ToolCall] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return (self.content or "").strip()

    def to_transcript(self) -> dict[str, Any]:
        """Assistant turn as it is appended to the transcript."""
        message: dict[str, Any] = {"role": "assistant", "content": self.content or ""}
        if self.tool_calls:
            message["tool_calls"] = [call.to_api() for call in self.tool_calls]
        return message


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


class LLMClient:
    """Client for OpenAI-compatible LLM APIs."""

    def __init__(self, config: AgentConfig, client: Optional[httpx.Client] = None):
        """Initialize the LLM client.

        Args:
            config: Agent configuration
            client: Optional preconfigured HTTP client
        """
        self.config = config
        self.endpoint = config.model_endpoint.rstrip("/")
        self.model = config.model
        self.temperature = config.temperature

        self.headers = {"Content-Type": "application/json"}
        if config.api_key:
            self.headers["Authorization"] = f"Bearer {config.api_key}"

        self.client = client or httpx.Client(timeout=60.0)

    def close(self) -> None:
        """Close the HTTP client."""
        self.client.close()

    def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]],
        max_retries: int = 3,
    ) -> Optional[AssistantMessage]:
        """Request one decision from the model.

        Args:
            messages: Full transcript
            tools: Function-calling declarations
            max_retries: Maximum retries on rate limit and transport errors

        Returns:
            The assistant message, or None when the response carries none

        Raises:
            httpx.HTTPError: On HTTP errors after retries are exhausted
        """
        url = f"{self.endpoint}/chat/completions"

        payload = {
            "model": self.model,
            "messages": messages,
            "tools": tools,
            "tool_choice": "auto",
            "temperature": self.temperature,
        }

        data = self._post_with_retry(url, payload, max_retries)
        return self._parse_response(data)

    def _post_with_retry(self, url: str, payload: dict[str, Any], max_retries: int) -> dict[str, Any]:
        last_error: Optional[Exception] = None
        for attempt in range(max_retries + 1):
            try:
                if attempt > 0:
                    # Exponential backoff: 4s, 8s, 16s
                    wait_time = 2 ** (attempt + 1)
                    logger.warning("Completion request failed (%s), retrying in %ss", last_error, wait_time)
                    time.sleep(wait_time)

                response = self.client.post(url, json=payload, headers=self.headers)
                response.raise_for_status()
                return response.json()

            except httpx.HTTPStatusError as e:
                last_error = e
                if e.response.status_code == 429 and attempt < max_retries:
                    continue
                raise
            except httpx.TransportError as e:
                last_error = e
                if attempt < max_retries:
                    continue
                raise

        raise last_error

    @staticmethod
    def _parse_response(data: dict[str, Any]) -> Optional[AssistantMessage]:
        choices = data.get("choices") or []
        if not choices:
            return None
        message = choices[0].get("message")
        if not message:
            return None

        return AssistantMessage(
            content=message.get("content"),
            tool_calls=[ToolCall.from_api(c) for c in message.get("tool_calls") or []],
        )
