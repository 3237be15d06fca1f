"""Tests for response normalization."""

import pytest

from relaycode.llm import NormalizeOptions, ToolCall, is_response_complete, normalize
from relaycode.llm.normalizer import (
    CONFIDENCE_HIGH,
    CONFIDENCE_LOW,
    CONFIDENCE_MEDIUM,
    FORMAT_JSON,
    FORMAT_MIXED,
    FORMAT_PLAIN,
    FORMAT_XML,
    format_normalized_response,
    normalize_native,
)
from relaycode.llm.response import (
    ArrayResponse,
    EmptyResponse,
    ObjectResponse,
    ScalarResponse,
    TextResponse,
    ToolCallObjectResponse,
    format_scalar,
    to_raw_response,
)


class TestRawResponse:
    """Tests for classifying provider values."""

    @pytest.mark.parametrize("value,expected", [
        (None, EmptyResponse),
        ("hi", TextResponse),
        (True, ScalarResponse),
        (3.5, ScalarResponse),
        ([1, 2], ArrayResponse),
        ({"a": 1}, ObjectResponse),
        ({"tool_calls": []}, ToolCallObjectResponse),
        ({"function": {"name": "x"}}, ToolCallObjectResponse),
    ])
    def test_variants(self, value, expected):
        """Test each value lands in exactly one variant."""
        assert isinstance(to_raw_response(value), expected)

    def test_already_classified_is_unchanged(self):
        """Test passing a variant through is a no-op."""
        raw = TextResponse("x")
        assert to_raw_response(raw) is raw

    @pytest.mark.parametrize("value,expected", [
        (False, "false"),
        (2.0, "2"),
        (1.5, "1.5"),
        (float("inf"), "Infinity"),
        (float("nan"), "NaN"),
    ])
    def test_format_scalar(self, value, expected):
        """Test scalars print the way JSON providers print them."""
        assert format_scalar(value) == expected


class TestNormalizeScalars:
    """Tests for non-text provider values."""

    def test_number(self):
        """Test a bare number becomes its text form."""
        result = normalize(42)

        assert result.content == "42"
        assert result.tool_calls == []
        assert result.metadata.detected_format == FORMAT_PLAIN
        assert result.metadata.is_malformed is False

    def test_boolean(self):
        """Test booleans are lower-case words."""
        assert normalize(True).content == "true"

    def test_none_is_empty_and_incomplete(self):
        """Test an absent value gives empty, incomplete content."""
        result = normalize(None)

        assert result.content == ""
        assert is_response_complete(result) is False

    def test_array_joins_items(self):
        """Test arrays join their items with newlines."""
        result = normalize(["first", 2, None, {"k": "v"}])

        assert result.content == 'first\n2\n\n{"k":"v"}'
        assert result.metadata.detected_format == FORMAT_MIXED

    def test_preserve_raw_types(self):
        """Test the original value is kept when asked."""
        result = normalize([1, 2], NormalizeOptions(preserve_raw_types=True))
        assert result.metadata.raw == [1, 2]

        assert normalize([1, 2]).metadata.raw is None


class TestNormalizeToolCalls:
    """Tests for tool-call extraction through normalize()."""

    def test_whole_message_json_call(self):
        """Test a message that is a single JSON call."""
        result = normalize('{"name": "read_file", "arguments": {"path": "a.py"}}')

        assert len(result.tool_calls) == 1
        assert result.tool_calls[0].name == "read_file"
        assert result.tool_calls[0].arguments == {"path": "a.py"}
        assert result.metadata.detected_format == FORMAT_JSON
        assert result.metadata.confidence == CONFIDENCE_HIGH
        assert result.metadata.has_json_blocks is True

    def test_call_embedded_in_prose(self):
        """Test a JSON call after some narration."""
        result = normalize('Let me look.\n{"name": "read_file", "arguments": {"path": "a.py"}}')

        assert [c.name for c in result.tool_calls] == ["read_file"]
        assert result.metadata.detected_format == FORMAT_MIXED

    def test_xml_call_with_known_tools(self):
        """Test tag-shaped calls restricted to registered names."""
        options = NormalizeOptions(tool_names=frozenset({"read_file"}))
        result = normalize("<read_file>\n<path>a.py</path>\n</read_file>", options)

        assert result.metadata.detected_format == FORMAT_XML
        assert result.tool_calls[0].arguments == {"path": "a.py"}

    def test_native_tool_calls_object(self):
        """Test provider-native tool_calls with string arguments."""
        raw = {
            "tool_calls": [
                {"id": "c1", "function": {"name": "read_file", "arguments": '{"path": "a"}'}},
            ]
        }
        result = normalize(raw)

        assert result.tool_calls == [ToolCall("c1", "read_file", {"path": "a"})]
        assert result.metadata.is_malformed is False

    def test_native_call_with_bad_arguments(self):
        """Test unparsable native arguments mark the response malformed."""
        raw = {"tool_calls": [{"function": {"name": "x", "arguments": "{bad"}}]}
        result = normalize(raw)

        assert result.tool_calls == []
        assert result.metadata.is_malformed is True
        assert "not valid JSON" in result.metadata.malformed_error

    def test_plain_text(self):
        """Test ordinary prose has no calls and high confidence."""
        result = normalize("  The answer is 4.  ")

        assert result.content == "The answer is 4."
        assert result.tool_calls == []
        assert result.metadata.confidence == CONFIDENCE_HIGH
        assert is_response_complete(result) is True


class TestNormalizeMalformed:
    """Tests for near-miss call detection."""

    def test_missing_arguments(self):
        """Test a call object without arguments."""
        result = normalize('{"name":"write_file"}')

        assert result.tool_calls == []
        assert result.metadata.is_malformed is True
        assert "missing \"arguments\"" in result.metadata.malformed_error
        assert result.metadata.confidence == CONFIDENCE_MEDIUM
        assert is_response_complete(result) is False

    def test_empty_object(self):
        """Test {} is reported as an empty call."""
        result = normalize("{}")

        assert result.metadata.is_malformed is True
        assert "Empty tool call" in result.metadata.malformed_error

    def test_string_arguments(self):
        """Test arguments given as a string."""
        result = normalize('{"name": "read_file", "arguments": "a.py"}')

        assert result.metadata.is_malformed is True
        assert "must be an object, not a string" in result.metadata.malformed_error

    def test_function_equals_syntax(self):
        """Test the unsupported <function=...> syntax."""
        result = normalize("<function=read_file>")

        assert result.metadata.is_malformed is True
        assert "<function=read_file>" in result.metadata.malformed_error

    def test_malformed_in_prose_is_low_confidence(self):
        """Test a near miss inside prose gets low confidence."""
        result = normalize("I will call it now\n[tool_use: read_file]")

        assert result.metadata.is_malformed is True
        assert result.metadata.confidence == CONFIDENCE_LOW

    def test_invalid_json_object(self):
        """Test a brace-wrapped message that is not JSON."""
        result = normalize("{this is not json}")

        assert result.metadata.is_malformed is True
        assert "Invalid JSON" in result.metadata.malformed_error


class TestNormalizeNative:
    """Tests for responses whose calls came from a native tool API."""

    def test_keeps_calls_and_trims(self):
        """Test content is trimmed and calls pass through."""
        call = ToolCall("c1", "find_files", {"pattern": "*.py"})
        result = normalize_native("  searching  ", [call])

        assert result.content == "searching"
        assert result.tool_calls == [call]
        assert result.metadata.confidence == CONFIDENCE_HIGH

    def test_format_summary(self):
        """Test the debug summary lists the calls."""
        call = ToolCall("c1", "find_files", {"pattern": "*.py"})
        summary = format_normalized_response(normalize_native("", [call]))

        assert "Tool Calls: 1" in summary
        assert '  - find_files: {"pattern": "*.py"}' in summary
