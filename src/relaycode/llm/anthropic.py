"""Anthropic Claude implementation."""

import json
from typing import Optional

import anthropic
import httpx

from relaycode.cancellation import CancellationToken, OperationCancelled
from relaycode.llm.base import (
    LLMProvider, LLMResponse, Message, StreamCallbacks, ToolCall,
    LLMError, APIKeyError, ConnectionError, RateLimitError,
    ModelError, ContextLengthError,
)


def _parse_anthropic_error(e: Exception, model: str = "") -> LLMError:
    """Convert Anthropic exceptions to structured LLMError."""
    error_str = str(e).lower()

    if isinstance(e, anthropic.AuthenticationError):
        return APIKeyError("Anthropic")

    if isinstance(e, anthropic.RateLimitError):
        retry_after = 0
        if getattr(e, 'response', None) is not None:
            try:
                retry_after = int(e.response.headers.get('retry-after', 0))
            except (TypeError, ValueError):
                retry_after = 0
        return RateLimitError("Anthropic", retry_after)

    if isinstance(e, anthropic.NotFoundError):
        return ModelError("Anthropic", model)

    if isinstance(e, anthropic.BadRequestError):
        if "context length" in error_str or "too long" in error_str:
            return ContextLengthError("Anthropic")
        return LLMError(str(e), "Anthropic", "Check your request format")

    if isinstance(e, anthropic.APIConnectionError):
        return ConnectionError("Anthropic", str(e))

    return LLMError(str(e), "Anthropic")


def to_anthropic_messages(messages: list[Message]) -> list[dict]:
    """Convert history to Anthropic's block format.

    Assistant tool calls become tool_use blocks; consecutive tool results are
    grouped into a single user message of tool_result blocks.
    """
    converted: list[dict] = []
    for msg in messages:
        if msg.role == "system":
            continue

        if msg.role == "tool":
            block = {
                "type": "tool_result",
                "tool_use_id": msg.tool_call_id or "",
                "content": msg.content,
            }
            last = converted[-1] if converted else None
            if (last and last["role"] == "user" and isinstance(last["content"], list)
                    and all(b.get("type") == "tool_result" for b in last["content"])):
                last["content"].append(block)
            else:
                converted.append({"role": "user", "content": [block]})
            continue

        if msg.role == "assistant" and msg.tool_calls:
            blocks = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            for tc in msg.tool_calls:
                blocks.append({
                    "type": "tool_use",
                    "id": tc.id,
                    "name": tc.name,
                    "input": tc.arguments,
                })
            converted.append({"role": "assistant", "content": blocks})
            continue

        converted.append({"role": msg.role, "content": msg.content})
    return converted


class AnthropicProvider(LLMProvider):
    """Anthropic Claude LLM provider."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        debug: bool = False,
        ssl_verify: bool | str = True,
        max_tokens: int = 4096,
    ):
        """Initialize the Anthropic provider.

        Args:
            api_key: Anthropic API key.
            model: Model to use (default: claude-sonnet-4-20250514).
            debug: Enable debug logging.
            ssl_verify: SSL verification (True, False, or path to CA bundle).
            max_tokens: Completion token limit per request.
        """
        self.api_key = api_key
        self.model = model
        self.debug = debug
        self.ssl_verify = ssl_verify
        self.max_tokens = max_tokens
        self._client = None

    @property
    def client(self):
        """Lazy-load the Anthropic client."""
        if self._client is None and self.api_key:
            # Configure SSL
            if self.ssl_verify is False:
                http_client = httpx.Client(verify=False)
            elif isinstance(self.ssl_verify, str):
                http_client = httpx.Client(verify=self.ssl_verify)
            else:
                http_client = None  # Use default

            if http_client:
                self._client = anthropic.Anthropic(
                    api_key=self.api_key,
                    http_client=http_client
                )
            else:
                self._client = anthropic.Anthropic(api_key=self.api_key)
        return self._client

    def is_available(self) -> bool:
        """Check if Anthropic is configured."""
        return bool(self.api_key)

    def _build_request(self, messages: list[Message], tools: list[dict], system: str) -> dict:
        system_parts = [system] if system else []
        system_parts += [m.content for m in messages if m.role == "system" and m.content]

        kwargs = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": to_anthropic_messages(messages),
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)
        if tools:
            kwargs["tools"] = tools

        self._log_debug("REQUEST", {
            "model": self.model,
            "messages": len(kwargs["messages"]),
            "tools": len(tools) if tools else 0,
            "system": system[:100] + "..." if system and len(system) > 100 else system
        })
        return kwargs

    def chat(
        self,
        messages: list[Message],
        tools: list[dict] = None,
        system: str = None,
        token: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """Send a chat request to Claude."""
        if not self.is_available():
            raise APIKeyError("Anthropic")

        kwargs = self._build_request(messages, tools, system)

        def _create():
            try:
                return self.client.messages.create(**kwargs)
            except anthropic.APIError as e:
                raise _parse_anthropic_error(e, self.model) from e

        response = self._retry_with_backoff(_create, token=token)
        if token:
            token.raise_if_cancelled()

        result = self._parse_response(response)
        self._log_debug("RESPONSE", {
            "content_length": len(result.content),
            "tool_calls": len(result.tool_calls),
            "stop_reason": result.stop_reason
        })
        return result

    def _parse_response(self, response) -> LLMResponse:
        """Parse Anthropic response into LLMResponse."""
        content_parts = []
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                content_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=block.input if isinstance(block.input, dict) else {}
                ))

        return LLMResponse(
            content="\n".join(content_parts),
            tool_calls=tool_calls,
            stop_reason=response.stop_reason or "end_turn"
        )

    def chat_stream(
        self,
        messages: list[Message],
        tools: list[dict] = None,
        callbacks: Optional[StreamCallbacks] = None,
        system: str = None,
        token: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """Stream a response, reporting tokens through callbacks.

        The token is checked on every event, so cancellation takes effect
        mid-stream.
        """
        if not self.is_available():
            raise APIKeyError("Anthropic")

        callbacks = callbacks or StreamCallbacks()
        kwargs = self._build_request(messages, tools, system)

        collected_content = []
        tool_calls = []
        current_tool_id = None
        current_tool_name = None
        current_tool_input = ""

        try:
            with self.client.messages.stream(**kwargs) as stream:
                for event in stream:
                    if token and token.is_cancelled:
                        raise OperationCancelled(token.reason)

                    if event.type == "content_block_start":
                        if getattr(event.content_block, 'type', None) == "tool_use":
                            current_tool_id = event.content_block.id
                            current_tool_name = event.content_block.name
                            current_tool_input = ""

                    elif event.type == "content_block_delta":
                        if hasattr(event.delta, 'text'):
                            collected_content.append(event.delta.text)
                            callbacks.token(event.delta.text)
                        elif hasattr(event.delta, 'partial_json'):
                            # Tool input JSON accumulating
                            current_tool_input += event.delta.partial_json

                    elif event.type == "content_block_stop":
                        if current_tool_id:
                            try:
                                args = json.loads(current_tool_input) if current_tool_input else {}
                            except json.JSONDecodeError:
                                args = {}
                            call = ToolCall(
                                id=current_tool_id,
                                name=current_tool_name,
                                arguments=args if isinstance(args, dict) else {}
                            )
                            tool_calls.append(call)
                            callbacks.tool_call(call)
                            current_tool_id = None
                            current_tool_name = None
                            current_tool_input = ""

                final_message = stream.get_final_message()
                stop_reason = final_message.stop_reason or "end_turn"

        except anthropic.APIError as e:
            raise _parse_anthropic_error(e, self.model) from e

        return LLMResponse(
            content="".join(collected_content),
            tool_calls=tool_calls,
            stop_reason=stop_reason
        )
