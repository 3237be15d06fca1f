"""Tests for LLM module."""

import pytest
from types import SimpleNamespace

from relaycode.cancellation import CancellationToken, OperationCancelled
from relaycode.config import Config
from relaycode.llm import (
    AnthropicProvider,
    CustomLLMProvider,
    OpenAIProvider,
    create_provider,
)
from relaycode.llm.anthropic import to_anthropic_messages
from relaycode.llm.base import (
    Message,
    ToolCall,
    ToolResult,
    LLMResponse,
    LLMError,
    APIKeyError,
    ConnectionError,
    RateLimitError,
    ModelError,
    ContextLengthError,
    ResponseParseError,
    MockLLMProvider,
    StreamCallbacks,
    LLMProvider,
)
from relaycode.llm.openai import convert_tools, to_openai_messages


# ============================================================================
# Conversation data
# ============================================================================

class TestMessage:
    """Tests for Message."""

    def test_dict_round_trip_with_tool_calls(self):
        """Test an assistant message with calls survives to_dict/from_dict."""
        msg = Message(
            role="assistant",
            content="Reading",
            tool_calls=[ToolCall("c1", "read_file", {"path": "a.py"})],
        )

        data = msg.to_dict()

        assert data["tool_calls"] == [{"id": "c1", "function": {"name": "read_file", "arguments": {"path": "a.py"}}}]
        assert Message.from_dict(data) == msg

    def test_plain_message_dict_is_minimal(self):
        """Test optional keys are left out."""
        assert Message("user", "hi").to_dict() == {"role": "user", "content": "hi"}

    def test_from_dict_accepts_flat_tool_calls(self):
        """Test calls stored as {name, arguments} are read too."""
        msg = Message.from_dict({
            "role": "assistant",
            "content": None,
            "tool_calls": [{"id": "c1", "name": "find_files", "arguments": {"pattern": "*.py"}}],
        })

        assert msg.content == ""
        assert msg.tool_calls == [ToolCall("c1", "find_files", {"pattern": "*.py"})]


class TestToolCall:
    """Tests for ToolCall."""

    def test_default_arguments(self):
        """Test a call with no arguments."""
        call = ToolCall(id="123", name="list_directory")
        assert call.arguments == {}

    def test_function_view(self):
        """Test the provider-neutral view."""
        call = ToolCall("1", "read_file", {"path": "x"})
        assert call.function == {"name": "read_file", "arguments": {"path": "x"}}


class TestToolResultLLM:
    """Tests for ToolResult."""

    def test_to_message(self):
        """Test a result becomes a tool message."""
        msg = ToolResult(tool_call_id="c1", output="ok", name="read_file").to_message()

        assert msg == Message(role="tool", content="ok", name="read_file", tool_call_id="c1")

    def test_error_default(self):
        """Test results are not errors by default."""
        assert ToolResult(tool_call_id="c1", output="").is_error is False


class TestLLMResponse:
    """Tests for LLMResponse."""

    def test_create_response(self):
        """Test creating a basic response."""
        response = LLMResponse(content="Hello!")
        assert response.tool_calls == []
        assert response.stop_reason == "end_turn"
        assert response.raw is None
        assert response.has_tool_calls is False

    def test_response_with_tool_calls(self):
        """Test response with tool calls."""
        response = LLMResponse(content="", tool_calls=[ToolCall("1", "read_file", {})])
        assert response.has_tool_calls is True


# ============================================================================
# LLMError Tests
# ============================================================================

class TestLLMErrors:
    """Tests for LLM error classes."""

    def test_base_error(self):
        """Test base LLMError."""
        error = LLMError("Something failed", provider="test")
        assert str(error) == "[test] Something failed"

    def test_error_with_suggestion(self):
        """Test error with suggestion."""
        error = LLMError("Failed", provider="test", suggestion="Try again")
        assert "Suggestion: Try again" in str(error)

    def test_api_key_error(self):
        """Test APIKeyError."""
        error = APIKeyError("anthropic")
        assert "API key" in str(error)
        assert "ANTHROPIC_API_KEY" in str(error)

    def test_connection_error(self):
        """Test ConnectionError."""
        error = ConnectionError("test", details="Timeout")
        assert "Connection failed: Timeout" in str(error)

    def test_rate_limit_error(self):
        """Test RateLimitError."""
        error = RateLimitError("test", retry_after=30)
        assert "retry after 30s" in str(error)
        assert error.retry_after == 30

    def test_model_error(self):
        """Test ModelError."""
        assert "Model 'gpt-5' not available" in str(ModelError("test", model="gpt-5"))

    def test_context_length_error(self):
        """Test ContextLengthError."""
        assert "limit: 4096 tokens" in str(ContextLengthError("test", limit=4096))

    def test_response_parse_error(self):
        """Test ResponseParseError."""
        assert "Failed to parse response: Invalid JSON" in str(ResponseParseError("test", details="Invalid JSON"))

    def test_all_are_llm_errors(self):
        """Test every specific error can be caught as LLMError."""
        for error in (APIKeyError("x"), ConnectionError("x"), RateLimitError("x"),
                      ModelError("x", "m"), ContextLengthError("x"), ResponseParseError("x")):
            assert isinstance(error, LLMError)


# ============================================================================
# MockLLMProvider Tests
# ============================================================================

class TestMockLLMProvider:
    """Tests for MockLLMProvider."""

    def test_is_available(self):
        """Test that mock is always available."""
        assert MockLLMProvider().is_available() is True

    def test_chat_echoes_message(self):
        """Test that chat echoes the last user message when the script runs out."""
        response = MockLLMProvider().chat([Message(role="user", content="Hello there")])

        assert response.content == "[Mock] Received: Hello there"

    def test_canned_responses_in_order(self):
        """Test queued responses come back in order and calls are recorded."""
        provider = MockLLMProvider()
        provider.add_response("First")
        provider.add_response("", tool_calls=[ToolCall("1", "list_directory", {})])
        messages = [Message(role="user", content="Test")]

        assert provider.chat(messages).content == "First"
        assert provider.chat(messages).has_tool_calls is True
        assert len(provider.calls) == 2

    def test_raw_values_are_passed_through(self):
        """Test non-text items become raw responses."""
        response = MockLLMProvider([{"answer": 42}]).chat([])

        assert response.content == ""
        assert response.raw == {"answer": 42}

    def test_queued_exception_is_raised(self):
        """Test a queued error is raised."""
        with pytest.raises(ModelError):
            MockLLMProvider([ModelError("mock", "m")]).chat([])

    def test_stream_words(self):
        """Test streaming delivers the content word by word."""
        tokens = []
        calls = []
        provider = MockLLMProvider([LLMResponse(content="a b", tool_calls=[ToolCall("1", "x", {})])])

        provider.chat_stream([], callbacks=StreamCallbacks(on_token=tokens.append, on_tool_call=calls.append))

        assert tokens == ["a ", "b "]
        assert [c.id for c in calls] == ["1"]

    def test_cancelled_token(self):
        """Test a cancelled token stops the call before it is recorded."""
        token = CancellationToken()
        token.cancel()
        provider = MockLLMProvider(["x"])

        with pytest.raises(OperationCancelled):
            provider.chat([], token=token)
        assert provider.calls == []


# ============================================================================
# LLMProvider Base Tests
# ============================================================================

class FlakyProvider(MockLLMProvider):
    """Fails a set number of times before answering."""

    def __init__(self, errors):
        super().__init__(["ok"])
        self.errors = list(errors)
        self.retry_delay = 0

    def attempt(self):
        if self.errors:
            raise self.errors.pop(0)
        return "ok"


class TestLLMProviderBase:
    """Tests for LLMProvider base class functionality."""

    def test_test_connection_on_mock(self):
        """Test test_connection on mock provider."""
        success, message = MockLLMProvider().test_connection()

        assert success is True
        assert "successful" in message.lower()

    def test_default_stream_delivers_whole_response(self):
        """Test the non-streaming fallback emits one token."""
        tokens = []

        class Plain(MockLLMProvider):
            chat_stream = LLMProvider.chat_stream

        Plain(["all at once"]).chat_stream([], callbacks=StreamCallbacks(on_token=tokens.append))

        assert tokens == ["all at once"]

    def test_retry_transient_errors(self):
        """Test rate-limit and connection errors are retried."""
        provider = FlakyProvider([RateLimitError("x"), ConnectionError("x")])

        assert provider._retry_with_backoff(provider.attempt) == "ok"

    def test_retry_gives_up(self):
        """Test the last error is raised after max_retries attempts."""
        provider = FlakyProvider([ConnectionError("x", "one"), ConnectionError("x", "two"), ConnectionError("x", "three")])

        with pytest.raises(ConnectionError, match="three"):
            provider._retry_with_backoff(provider.attempt)

    def test_other_errors_not_retried(self):
        """Test non-transient errors propagate at once."""
        provider = FlakyProvider([ModelError("x", "m")])

        with pytest.raises(ModelError):
            provider._retry_with_backoff(provider.attempt)
        assert provider.errors == []

    def test_debug_logging(self, capsys):
        """Test debug logging."""
        provider = MockLLMProvider()
        provider.debug = True

        provider._log_debug("TEST", {"key": "value"})

        captured = capsys.readouterr()
        assert "[DEBUG TEST]" in captured.out
        assert '"key": "value"' in captured.out

    def test_debug_logging_disabled(self, capsys):
        """Test that debug logging is off by default."""
        MockLLMProvider()._log_debug("TEST", {"key": "value"})

        assert "DEBUG" not in capsys.readouterr().out


# ============================================================================
# Provider wire formats
# ============================================================================

def tool_history():
    call = ToolCall("c1", "read_file", {"path": "a.py"})
    other = ToolCall("c2", "list_directory", {})
    return [
        Message("system", "ignored"),
        Message("user", "look"),
        Message("assistant", "Checking", tool_calls=[call, other]),
        Message("tool", "contents", name="read_file", tool_call_id="c1"),
        Message("tool", "listing", name="list_directory", tool_call_id="c2"),
    ]


class TestAnthropicFormat:
    """Tests for the Anthropic message conversion."""

    def test_tool_use_and_grouped_results(self):
        """Test calls become tool_use blocks and results share one user turn."""
        converted = to_anthropic_messages(tool_history())

        assert [m["role"] for m in converted] == ["user", "assistant", "user"]
        assert converted[1]["content"][0] == {"type": "text", "text": "Checking"}
        assert converted[1]["content"][1] == {
            "type": "tool_use", "id": "c1", "name": "read_file", "input": {"path": "a.py"},
        }
        assert [b["tool_use_id"] for b in converted[2]["content"]] == ["c1", "c2"]

    def test_parse_response(self):
        """Test text and tool_use blocks are read back."""
        response = SimpleNamespace(
            content=[
                SimpleNamespace(type="text", text="Let me look."),
                SimpleNamespace(type="tool_use", id="t1", name="find_files", input={"pattern": "*.py"}),
            ],
            stop_reason="tool_use",
        )

        result = AnthropicProvider(api_key="k")._parse_response(response)

        assert result.content == "Let me look."
        assert result.tool_calls == [ToolCall("t1", "find_files", {"pattern": "*.py"})]
        assert result.stop_reason == "tool_use"


class TestOpenAIFormat:
    """Tests for the OpenAI message conversion."""

    def test_messages(self):
        """Test system prompt, function calls and tool messages."""
        converted = to_openai_messages(tool_history()[1:], system="sys")

        assert converted[0] == {"role": "system", "content": "sys"}
        assert converted[2]["tool_calls"][0]["function"] == {"name": "read_file", "arguments": '{"path": "a.py"}'}
        assert converted[3] == {"role": "tool", "tool_call_id": "c1", "content": "contents"}

    def test_convert_tools(self):
        """Test Anthropic schemas become function tools."""
        schema = {"name": "read_file", "description": "Read", "input_schema": {"type": "object"}}

        assert convert_tools([schema]) == [{
            "type": "function",
            "function": {"name": "read_file", "description": "Read", "parameters": {"type": "object"}},
        }]

    def test_parse_response_bad_arguments(self):
        """Test undecodable arguments become an empty dict."""
        tc = SimpleNamespace(id="c1", function=SimpleNamespace(name="read_file", arguments="{oops"))
        response = SimpleNamespace(choices=[SimpleNamespace(
            message=SimpleNamespace(content=None, tool_calls=[tc]),
            finish_reason="tool_calls",
        )])

        result = OpenAIProvider(api_key="k")._parse_response(response)

        assert result.content == ""
        assert result.tool_calls == [ToolCall("c1", "read_file", {})]


# ============================================================================
# Provider factory
# ============================================================================

class TestCreateProvider:
    """Tests for create_provider."""

    def test_anthropic(self):
        """Test the default provider with a key."""
        provider = create_provider(Config(api_key="k"))

        assert isinstance(provider, AnthropicProvider)
        assert provider.model == Config().llm_model

    def test_missing_key(self):
        """Test no provider without a key."""
        assert create_provider(Config()) is None
        assert create_provider(Config(llm_provider="openai")) is None

    def test_custom_needs_base_url(self):
        """Test custom endpoints need a URL but no key."""
        assert create_provider(Config(llm_provider="custom")) is None

        provider = create_provider(Config(llm_provider="custom", base_url="http://localhost:11434/v1"))

        assert isinstance(provider, CustomLLMProvider)
        assert provider.is_available() is True

    def test_unknown(self):
        """Test unknown provider names."""
        assert create_provider(Config(llm_provider="nope", api_key="k")) is None
