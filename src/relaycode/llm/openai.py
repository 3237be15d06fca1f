"""OpenAI implementation with flexible model selection."""

import json
from typing import Optional

import httpx
import openai

from relaycode.cancellation import CancellationToken, OperationCancelled
from relaycode.llm.base import (
    LLMProvider, LLMResponse, Message, StreamCallbacks, ToolCall,
    LLMError, APIKeyError, ConnectionError, RateLimitError,
    ModelError, ContextLengthError
)


def _parse_openai_error(e: Exception, model: str = "", provider: str = "OpenAI") -> LLMError:
    """Convert OpenAI exceptions to structured LLMError."""
    error_str = str(e).lower()

    if isinstance(e, openai.AuthenticationError):
        return APIKeyError(provider)

    if isinstance(e, openai.RateLimitError):
        return RateLimitError(provider)

    if isinstance(e, openai.NotFoundError):
        return ModelError(provider, model)

    if isinstance(e, openai.BadRequestError):
        if "context_length" in error_str or "maximum context" in error_str:
            return ContextLengthError(provider)
        return LLMError(str(e), provider, "Check your request format")

    if isinstance(e, openai.APIConnectionError):
        return ConnectionError(provider, str(e))

    return LLMError(str(e), provider)


def convert_tools(anthropic_tools: list[dict]) -> list[dict]:
    """Convert Anthropic tool format to OpenAI function format."""
    openai_tools = []
    for tool in anthropic_tools:
        openai_tools.append({
            "type": "function",
            "function": {
                "name": tool.get("name", ""),
                "description": tool.get("description", ""),
                "parameters": tool.get("input_schema", {})
            }
        })
    return openai_tools


def to_openai_messages(messages: list[Message], system: Optional[str] = None) -> list[dict]:
    """Convert history to chat.completions messages."""
    converted = []
    if system:
        converted.append({"role": "system", "content": system})

    for msg in messages:
        if msg.role == "tool":
            converted.append({
                "role": "tool",
                "tool_call_id": msg.tool_call_id or "",
                "content": msg.content,
            })
        elif msg.role == "assistant" and msg.tool_calls:
            converted.append({
                "role": "assistant",
                "content": msg.content or None,
                "tool_calls": [
                    {
                        "id": tc.id,
                        "type": "function",
                        "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                    }
                    for tc in msg.tool_calls
                ],
            })
        else:
            converted.append({"role": msg.role, "content": msg.content})
    return converted


def _decode_arguments(raw: str) -> dict:
    try:
        args = json.loads(raw) if raw else {}
    except json.JSONDecodeError:
        return {}
    return args if isinstance(args, dict) else {}


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider with flexible model selection.

    Supports any OpenAI model - no restrictions.
    Examples: gpt-4, gpt-4-turbo, gpt-4o, gpt-3.5-turbo, o1-preview, etc.
    """

    name = "openai"
    display_name = "OpenAI"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: Optional[str] = None,
        debug: bool = False,
        ssl_verify: bool | str = True,
        max_tokens: int = 4096,
    ):
        """Initialize the OpenAI provider.

        Args:
            api_key: OpenAI API key.
            model: Any OpenAI model name (no restrictions).
            base_url: Optional custom base URL (for Azure, proxies, etc.)
            debug: Enable debug logging.
            ssl_verify: SSL verification (True, False, or path to CA bundle).
            max_tokens: Completion token limit per request.
        """
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.debug = debug
        self.ssl_verify = ssl_verify
        self.max_tokens = max_tokens
        self._client = None

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None and self.api_key:
            kwargs = {"api_key": self.api_key}
            if self.base_url:
                kwargs["base_url"] = self.base_url

            # Configure SSL
            if self.ssl_verify is False:
                kwargs["http_client"] = httpx.Client(verify=False)
            elif isinstance(self.ssl_verify, str):
                kwargs["http_client"] = httpx.Client(verify=self.ssl_verify)

            self._client = openai.OpenAI(**kwargs)
        return self._client

    def is_available(self) -> bool:
        """Check if OpenAI is configured."""
        return bool(self.api_key)

    def _build_request(self, messages: list[Message], tools: list[dict], system: str) -> dict:
        kwargs = {
            "model": self.model,
            "messages": to_openai_messages(messages, system),
            "max_tokens": self.max_tokens,
        }
        if tools:
            kwargs["tools"] = convert_tools(tools)

        self._log_debug("REQUEST", {
            "model": self.model,
            "messages": len(kwargs["messages"]),
            "tools": len(kwargs.get("tools", [])),
        })
        return kwargs

    def chat(
        self,
        messages: list[Message],
        tools: list[dict] = None,
        system: str = None,
        token: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """Send a chat request to OpenAI."""
        if not self.is_available():
            raise APIKeyError(self.display_name)

        kwargs = self._build_request(messages, tools, system)

        def _create():
            try:
                return self.client.chat.completions.create(**kwargs)
            except openai.APIError as e:
                raise _parse_openai_error(e, self.model, self.display_name) from e

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
        """Parse OpenAI response into LLMResponse."""
        choice = response.choices[0]
        message = choice.message

        tool_calls = []
        for tc in message.tool_calls or []:
            tool_calls.append(ToolCall(
                id=tc.id,
                name=tc.function.name,
                arguments=_decode_arguments(tc.function.arguments)
            ))

        return LLMResponse(
            content=message.content or "",
            tool_calls=tool_calls,
            stop_reason=choice.finish_reason or "stop"
        )

    def chat_stream(
        self,
        messages: list[Message],
        tools: list[dict] = None,
        callbacks: Optional[StreamCallbacks] = None,
        system: str = None,
        token: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """Stream a response, checking the token on every chunk."""
        if not self.is_available():
            raise APIKeyError(self.display_name)

        callbacks = callbacks or StreamCallbacks()
        kwargs = self._build_request(messages, tools, system)
        kwargs["stream"] = True

        collected_content = []
        current_tool_calls = {}  # index -> {id, name, arguments}
        stop_reason = "stop"

        try:
            stream = self.client.chat.completions.create(**kwargs)
            for chunk in stream:
                if token and token.is_cancelled:
                    close = getattr(stream, "close", None)
                    if close:
                        close()
                    raise OperationCancelled(token.reason)

                if not chunk.choices:
                    continue

                choice = chunk.choices[0]
                delta = choice.delta
                if choice.finish_reason:
                    stop_reason = choice.finish_reason

                if delta.content:
                    collected_content.append(delta.content)
                    callbacks.token(delta.content)

                for tc in delta.tool_calls or []:
                    entry = current_tool_calls.setdefault(
                        tc.index, {"id": "", "name": "", "arguments": ""}
                    )
                    if tc.id:
                        entry["id"] = tc.id
                    if tc.function:
                        if tc.function.name:
                            entry["name"] = tc.function.name
                        if tc.function.arguments:
                            entry["arguments"] += tc.function.arguments

        except openai.APIError as e:
            raise _parse_openai_error(e, self.model, self.display_name) from e

        tool_calls = []
        for idx in sorted(current_tool_calls):
            data = current_tool_calls[idx]
            call = ToolCall(
                id=data["id"],
                name=data["name"],
                arguments=_decode_arguments(data["arguments"])
            )
            tool_calls.append(call)
            callbacks.tool_call(call)

        return LLMResponse(
            content="".join(collected_content),
            tool_calls=tool_calls,
            stop_reason=stop_reason
        )


class CustomLLMProvider(OpenAIProvider):
    """Custom LLM provider for any OpenAI-compatible API.

    Works with:
    - Ollama (http://localhost:11434/v1)
    - LM Studio (http://localhost:1234/v1)
    - vLLM, text-generation-inference
    - Any OpenAI-compatible endpoint

    Models without native function calling print their calls as text; the
    response normalizer extracts those, so nothing extra happens here.
    """

    name = "custom"
    display_name = "Custom"

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: str = "not-needed",  # Some local servers don't need a key
        debug: bool = False,
        ssl_verify: bool | str = True,
        max_tokens: int = 4096,
    ):
        super().__init__(
            api_key=api_key or "not-needed",
            model=model,
            base_url=base_url,
            debug=debug,
            ssl_verify=ssl_verify,
            max_tokens=max_tokens,
        )

    def is_available(self) -> bool:
        """Check if the custom provider is configured."""
        return bool(self.base_url)
