"""
LLM Client - Abstraction over LLM backends.

This client works with any OpenAI-compatible API:
- vLLM (http://localhost:8000/v1)
- Ollama (http://localhost:11434/v1)
- OpenAI itself

The abstraction is intentionally thin: the agent loop only needs
"send the conversation and the tool catalog, get back text and/or tool
calls". Requests fail fast. There is no retry or backoff; any failure is
raised as LLMError and shown to the user.
"""

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

import httpx

from ikode.config import LLMConfig
from ikode.types import ToolCall

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_WRITE_TIMEOUT = 10.0
DEFAULT_POOL_TIMEOUT = 10.0


class LLMError(Exception):
    """The model request itself failed (ProviderFailure)."""

    kind = "ProviderFailure"


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Usage | None":
        if not data:
            return None
        prompt = int(data.get("prompt_tokens") or 0)
        completion = int(data.get("completion_tokens") or 0)
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=int(data.get("total_tokens") or prompt + completion),
        )


@dataclass
class StreamChunk:
    """
    One piece of a streamed response.

    Text chunks carry a delta; the last chunk has done=True and carries
    the usage summary when the backend reports one.
    """
    text: str = ""
    usage: Usage | None = None
    done: bool = False


def _content_text(content: Any) -> str | None:
    """Collapse string-or-parts message content into plain text."""
    if content is None or isinstance(content, str):
        return content
    if isinstance(content, dict):
        content = [content]
    texts = [
        part.get("text", "")
        for part in content
        if isinstance(part, dict) and part.get("type") in ("text", "output_text")
    ]
    return "".join(texts)


class ChatResponse:
    """
    Response from a chat completion request.

    This wraps the API response and provides convenient access to
    the content and any tool calls. Tool-call arguments stay raw JSON
    strings; they are parsed by the tool registry.
    """

    def __init__(
        self,
        content: str | None,
        tool_calls: list[ToolCall] | None,
        finish_reason: str,
        raw_response: dict[str, Any],
        usage: Usage | None = None,
    ) -> None:
        self.content = content or ""
        self.tool_calls = tool_calls or []
        self.finish_reason = finish_reason
        self.raw_response = raw_response
        self.usage = usage

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "ChatResponse":
        """Parse an API response into a ChatResponse."""
        try:
            choice = data["choices"][0]
            message = choice["message"]
            if not isinstance(message, dict):
                raise TypeError(f"message is {type(message).__name__}, not an object")
            raw_calls = message.get("tool_calls") or []
            if not isinstance(raw_calls, list) or not all(isinstance(tc, dict) for tc in raw_calls):
                raise TypeError("tool_calls must be a list of objects")

            return cls(
                content=_content_text(message.get("content")),
                tool_calls=[ToolCall.from_dict(tc) for tc in raw_calls],
                finish_reason=choice.get("finish_reason") or "stop",
                raw_response=data,
                usage=Usage.from_dict(data.get("usage")),
            )
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise LLMError(f"Malformed response from provider: {e!r}") from e

    @property
    def has_tool_calls(self) -> bool:
        """Check if the response includes tool calls."""
        return len(self.tool_calls) > 0

    @property
    def is_complete(self) -> bool:
        """Check if this is a complete response (no tool calls pending)."""
        return not self.has_tool_calls


class LLMClient:
    """
    Client for OpenAI-compatible LLM APIs.

    Synchronous: the agent loop has one outstanding request at a time and
    simply waits for it.
    """

    def __init__(
        self,
        config: LLMConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client with configuration.

        Args:
            config: LLM configuration (model, API key, etc.)
            transport: Optional httpx transport, for tests or proxies
        """
        self.config = config or LLMConfig.from_env()

        timeout = httpx.Timeout(
            connect=DEFAULT_CONNECT_TIMEOUT,
            read=self.config.timeout,
            write=DEFAULT_WRITE_TIMEOUT,
            pool=DEFAULT_POOL_TIMEOUT,
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

    def _payload(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None,
        model: str | None,
        cache_key: str | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model or self.config.model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            payload["tools"] = tools
        if cache_key and self.config.prompt_cache:
            payload["prompt_cache_key"] = cache_key
        return payload

    def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        cache_key: str | None = None,
    ) -> ChatResponse:
        """
        Send a chat completion request.

        Args:
            messages: The conversation history in OpenAI format
            tools: Optional list of tool definitions
            model: Model identifier; defaults to the configured one
            cache_key: Prompt cache key, sent when prompt caching is enabled

        Returns:
            ChatResponse with the assistant's response

        Raises:
            LLMError: On timeout, network error, error status or malformed body
        """
        payload = self._payload(messages, tools, model, cache_key)
        logger.debug(f"Sending chat request with {len(messages)} messages to {payload['model']}")

        try:
            response = self._client.post("/chat/completions", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Request timed out: {e}")
            raise LLMError(f"Request timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP error: {e.response.status_code} - {e.response.text}")
            raise LLMError(f"HTTP {e.response.status_code}: {e.response.text}") from e
        except httpx.RequestError as e:
            logger.error(f"Request error: {e}")
            raise LLMError(f"Request failed: {e}") from e
        except ValueError as e:
            raise LLMError(f"Provider returned invalid JSON: {e}") from e

        return ChatResponse.from_api_response(data)

    def chat_stream(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        cache_key: str | None = None,
    ) -> Iterator[StreamChunk]:
        """
        Stream a chat completion as server-sent events.

        Yields text deltas in order, then one final chunk with done=True
        and the usage summary. Tool-call deltas are not assembled here;
        the agent loop uses chat() when tools are involved.
        """
        payload = self._payload(messages, tools, model, cache_key)
        payload["stream"] = True
        payload["stream_options"] = {"include_usage": True}

        usage: Usage | None = None
        try:
            with self._client.stream("POST", "/chat/completions", json=payload) as response:
                if response.is_error:
                    response.read()
                    raise LLMError(f"HTTP {response.status_code}: {response.text}")
                for line in response.iter_lines():
                    if not line.startswith("data:"):
                        continue
                    data = line[len("data:"):].strip()
                    if data == "[DONE]":
                        break
                    try:
                        event = json.loads(data)
                        usage = Usage.from_dict(event.get("usage")) or usage
                        texts = [
                            _content_text((choice.get("delta") or {}).get("content"))
                            for choice in event.get("choices") or []
                        ]
                    except (ValueError, TypeError, AttributeError) as e:
                        raise LLMError(f"Malformed stream event: {data[:200]}") from e
                    for text in texts:
                        if text:
                            yield StreamChunk(text=text)
        except httpx.TimeoutException as e:
            raise LLMError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise LLMError(f"Request failed: {e}") from e

        yield StreamChunk(usage=usage, done=True)

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> "LLMClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
