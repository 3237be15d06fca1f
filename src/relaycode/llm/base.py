"""Abstract LLM interface shared by every provider."""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from relaycode.cancellation import CancellationToken, OperationCancelled
from relaycode.style import debug_block, yellow


# =============================================================================
# LLM Error Classes - Structured errors for better debugging
# =============================================================================

class LLMError(Exception):
    """Base exception for LLM errors."""

    def __init__(self, message: str, provider: str = "", suggestion: str = ""):
        self.message = message
        self.provider = provider
        self.suggestion = suggestion
        super().__init__(self.format_message())

    def format_message(self) -> str:
        parts = [f"[{self.provider}] {self.message}" if self.provider else self.message]
        if self.suggestion:
            parts.append(f"\n  Suggestion: {self.suggestion}")
        return "".join(parts)


class APIKeyError(LLMError):
    """API key is missing or invalid."""

    def __init__(self, provider: str):
        super().__init__(
            message="API key not configured",
            provider=provider,
            suggestion=f"Set {provider.upper()}_API_KEY environment variable"
        )


class ConnectionError(LLMError):
    """Failed to connect to the API."""

    def __init__(self, provider: str, details: str = ""):
        super().__init__(
            message=f"Connection failed: {details}" if details else "Connection failed",
            provider=provider,
            suggestion="Check your internet connection and API endpoint"
        )


class RateLimitError(LLMError):
    """Rate limit exceeded."""

    def __init__(self, provider: str, retry_after: int = 0):
        msg = "Rate limit exceeded"
        if retry_after:
            msg += f" (retry after {retry_after}s)"
        super().__init__(
            message=msg,
            provider=provider,
            suggestion="Wait a moment and try again, or reduce request frequency"
        )
        self.retry_after = retry_after


class ModelError(LLMError):
    """Model not found or not accessible."""

    def __init__(self, provider: str, model: str):
        super().__init__(
            message=f"Model '{model}' not available",
            provider=provider,
            suggestion="Check model name or your API plan permissions"
        )


class ContextLengthError(LLMError):
    """Context length exceeded."""

    def __init__(self, provider: str, limit: int = 0):
        msg = "Context length exceeded"
        if limit:
            msg += f" (limit: {limit} tokens)"
        super().__init__(
            message=msg,
            provider=provider,
            suggestion="Reduce message history or use a model with larger context"
        )


class ResponseParseError(LLMError):
    """Failed to parse API response."""

    def __init__(self, provider: str, details: str = ""):
        super().__init__(
            message=f"Failed to parse response: {details}" if details else "Failed to parse response",
            provider=provider,
            suggestion="This may be a temporary API issue - try again"
        )


# =============================================================================
# Conversation data
# =============================================================================

@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model."""
    id: str
    name: str
    arguments: dict = field(default_factory=dict)

    @property
    def function(self) -> dict:
        """Provider-neutral {name, arguments} view."""
        return {"name": self.name, "arguments": self.arguments}

    def to_dict(self) -> dict:
        return {"id": self.id, "function": self.function}

    @classmethod
    def from_dict(cls, data: dict) -> "ToolCall":
        function = data.get("function") or {}
        return cls(
            id=data.get("id", ""),
            name=function.get("name", data.get("name", "")),
            arguments=dict(function.get("arguments", data.get("arguments")) or {}),
        )


@dataclass
class Message:
    """A chat message."""
    role: str  # "system", "user", "assistant", "tool"
    content: str
    name: Optional[str] = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name:
            data["name"] = self.name
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            role=data.get("role", "user"),
            content=data.get("content") or "",
            name=data.get("name"),
            tool_calls=[ToolCall.from_dict(tc) for tc in data.get("tool_calls", [])],
            tool_call_id=data.get("tool_call_id"),
        )


@dataclass
class LLMResponse:
    """Response from an LLM.

    `raw` carries the undecoded provider value when a provider hands back
    something other than plain text, so the normalizer can classify it.
    """
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    stop_reason: str = "end_turn"
    raw: Any = None

    @property
    def has_tool_calls(self) -> bool:
        """Check if response contains tool calls."""
        return len(self.tool_calls) > 0


@dataclass
class ToolResult:
    """Result of executing one tool call, as fed back to the model."""
    tool_call_id: str
    output: str
    name: str = ""
    is_error: bool = False

    def to_message(self) -> Message:
        return Message(
            role="tool",
            content=self.output,
            name=self.name or None,
            tool_call_id=self.tool_call_id,
        )


@dataclass
class StreamCallbacks:
    """Hooks invoked while a streamed response arrives."""
    on_token: Optional[Callable[[str], None]] = None
    on_tool_call: Optional[Callable[[ToolCall], None]] = None

    def token(self, text: str) -> None:
        if self.on_token and text:
            self.on_token(text)

    def tool_call(self, call: ToolCall) -> None:
        if self.on_tool_call:
            self.on_tool_call(call)


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    Attributes:
        debug: Enable debug logging of requests/responses.
        max_retries: Maximum retry attempts for transient failures.
        retry_delay: Base delay between retries (exponential backoff).
    """

    name: str = "base"
    debug: bool = False
    max_retries: int = 3
    retry_delay: float = 1.0

    @abstractmethod
    def chat(
        self,
        messages: list[Message],
        tools: list[dict] = None,
        system: str = None,
        token: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """Send a chat request to the LLM.

        Args:
            messages: Conversation history (already filtered).
            tools: Optional list of tool schemas (Anthropic format).
            system: Optional system prompt.
            token: Cancellation token; providers raise OperationCancelled
                when it fires.

        Returns:
            LLMResponse with content and/or tool calls.

        Raises:
            LLMError: On provider failures.
            OperationCancelled: If the token was cancelled.
        """
        pass

    def chat_stream(
        self,
        messages: list[Message],
        tools: list[dict] = None,
        callbacks: Optional[StreamCallbacks] = None,
        system: str = None,
        token: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """Streaming variant of chat().

        The default delivers the buffered response as a single token.
        """
        response = self.chat(messages, tools=tools, system=system, token=token)
        if callbacks:
            callbacks.token(response.content)
            for call in response.tool_calls:
                callbacks.tool_call(call)
        return response

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is available (API key set, etc.)."""
        pass

    def test_connection(self) -> tuple[bool, str]:
        """Test if the API connection actually works.

        Returns:
            Tuple of (success: bool, message: str)
        """
        if not self.is_available():
            return False, "Provider not configured (missing API key?)"

        try:
            self.chat(
                messages=[Message(role="user", content="Hi")],
                system="Respond with just 'ok'."
            )
            return True, "Connection successful"
        except LLMError as e:
            return False, str(e)

    def _log_debug(self, label: str, data: Any) -> None:
        """Log debug information if debug mode is enabled."""
        if self.debug:
            print(debug_block(label, data))

    def _retry_with_backoff(self, func, *args, token: Optional[CancellationToken] = None, **kwargs):
        """Execute function with exponential backoff retry.

        Rate-limit and connection errors are retried; other LLM errors and
        cancellation propagate immediately.
        """
        last_error = None
        for attempt in range(self.max_retries):
            if token:
                token.raise_if_cancelled()
            try:
                return func(*args, **kwargs)
            except RateLimitError as e:
                last_error = e
                wait_time = e.retry_after if e.retry_after else (self.retry_delay * (2 ** attempt))
            except ConnectionError as e:
                last_error = e
                wait_time = self.retry_delay * (2 ** attempt)

            if attempt < self.max_retries - 1:
                if self.debug:
                    print(yellow(f"[Retry] {last_error.message}, waiting {wait_time}s..."))
                if token:
                    if token.wait(wait_time):
                        raise OperationCancelled(token.reason)
                else:
                    time.sleep(wait_time)

        raise last_error


class MockLLMProvider(LLMProvider):
    """Scripted provider for tests and offline runs.

    Queued items may be strings, LLMResponse objects, raw provider values
    (dicts, lists, numbers) or exceptions to raise.
    """

    name = "mock"

    def __init__(self, responses: Optional[list] = None):
        self.responses: list = list(responses or [])
        self.response_index = 0
        self.calls: list[list[Message]] = []

    def add_response(self, response: Any, tool_calls: Optional[list[ToolCall]] = None) -> None:
        """Queue a canned response."""
        if tool_calls is not None:
            content = response if isinstance(response, str) else ""
            response = LLMResponse(content=content, tool_calls=list(tool_calls))
        self.responses.append(response)

    def _next(self, messages: list[Message]) -> LLMResponse:
        self.calls.append(list(messages))

        if self.response_index < len(self.responses):
            item = self.responses[self.response_index]
            self.response_index += 1
        else:
            last_user = next(
                (m.content for m in reversed(messages) if m.role == "user"),
                "No message"
            )
            item = f"[Mock] Received: {last_user}"

        if isinstance(item, BaseException):
            raise item
        if isinstance(item, LLMResponse):
            return item
        if isinstance(item, str):
            return LLMResponse(content=item)
        return LLMResponse(content="", raw=item)

    def chat(
        self,
        messages: list[Message],
        tools: list[dict] = None,
        system: str = None,
        token: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        if token:
            token.raise_if_cancelled()
        return self._next(messages)

    def chat_stream(
        self,
        messages: list[Message],
        tools: list[dict] = None,
        callbacks: Optional[StreamCallbacks] = None,
        system: str = None,
        token: Optional[CancellationToken] = None,
    ) -> LLMResponse:
        """Emit the canned content word by word, checking the token between words."""
        if token:
            token.raise_if_cancelled()
        response = self._next(messages)
        for word in response.content.split(" "):
            if token:
                token.raise_if_cancelled()
            if callbacks:
                callbacks.token(word + " ")
        if callbacks:
            for call in response.tool_calls:
                callbacks.tool_call(call)
        return response

    def is_available(self) -> bool:
        """Mock is always available."""
        return True
