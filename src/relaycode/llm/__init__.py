"""LLM subsystem.

Provides:
- LLMProvider base class and the Anthropic / OpenAI / custom providers
- MockLLMProvider for testing
- Response normalization and the tool-call parser family
- LLMError classes for structured error handling
"""

from typing import Optional, TYPE_CHECKING

from relaycode.llm.base import (
    LLMProvider,
    LLMResponse,
    Message,
    MockLLMProvider,
    StreamCallbacks,
    ToolCall,
    ToolResult,
    # Error classes
    LLMError,
    APIKeyError,
    ConnectionError,
    RateLimitError,
    ModelError,
    ContextLengthError,
    ResponseParseError,
)
from relaycode.llm.anthropic import AnthropicProvider
from relaycode.llm.openai import OpenAIProvider, CustomLLMProvider
from relaycode.llm.normalizer import (
    NormalizedResponse,
    NormalizeOptions,
    format_normalized_response,
    is_response_complete,
    normalize,
)
from relaycode.llm.parser import ParseResult, parse_tool_calls
from relaycode.llm.response import RawResponse, to_raw_response

if TYPE_CHECKING:
    from relaycode.config import Config


PROVIDERS = ("anthropic", "openai", "custom")


def create_provider(config: "Config") -> Optional[LLMProvider]:
    """Create the provider named by the config.

    Returns None when the provider is unknown or missing the key / URL it
    needs.
    """
    provider = config.llm_provider.lower()
    ssl_verify = config.get_ssl_context()

    if provider == "anthropic":
        if not config.api_key:
            return None
        return AnthropicProvider(
            api_key=config.api_key,
            model=config.llm_model,
            debug=config.debug,
            ssl_verify=ssl_verify,
            max_tokens=config.max_tokens,
        )

    if provider == "openai":
        if not config.api_key:
            return None
        return OpenAIProvider(
            api_key=config.api_key,
            model=config.llm_model,
            base_url=config.base_url or None,
            debug=config.debug,
            ssl_verify=ssl_verify,
            max_tokens=config.max_tokens,
        )

    if provider == "custom":
        if not config.base_url:
            return None
        return CustomLLMProvider(
            base_url=config.base_url,
            model=config.llm_model,
            api_key=config.api_key or "not-needed",
            debug=config.debug,
            ssl_verify=ssl_verify,
            max_tokens=config.max_tokens,
        )

    return None


__all__ = [
    # Core classes
    "LLMProvider",
    "LLMResponse",
    "Message",
    "StreamCallbacks",
    "ToolCall",
    "ToolResult",
    # Providers
    "AnthropicProvider",
    "OpenAIProvider",
    "CustomLLMProvider",
    "MockLLMProvider",
    "PROVIDERS",
    "create_provider",
    # Errors
    "LLMError",
    "APIKeyError",
    "ConnectionError",
    "RateLimitError",
    "ModelError",
    "ContextLengthError",
    "ResponseParseError",
    # Normalization
    "NormalizedResponse",
    "NormalizeOptions",
    "normalize",
    "is_response_complete",
    "format_normalized_response",
    "ParseResult",
    "parse_tool_calls",
    "RawResponse",
    "to_raw_response",
]
