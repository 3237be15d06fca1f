"""Tests for the JSON, tag and unified tool-call parsers."""

from relaycode.llm.json_parser import (
    clean_json_tool_calls,
    detect_malformed_json,
    generate_call_id,
    parse_json_tool_calls,
)
from relaycode.llm.parser import parse_tool_calls, strip_think_tags
from relaycode.llm.xml_parser import (
    XMLToolCallParser,
    clean_xml_tool_calls,
    detect_malformed_xml,
    parse_xml_tool_calls,
)


class TestJsonParser:
    """Tests for JSON call extraction."""

    def test_fenced_block(self):
        """Test a call inside a ```json fence."""
        calls = parse_json_tool_calls('```json\n{"name": "find_files", "arguments": {"pattern": "*.py"}}\n```')

        assert len(calls) == 1
        assert calls[0].name == "find_files"

    def test_multiple_embedded_calls_deduplicated(self):
        """Test repeated identical calls collapse to one."""
        call = '{"name": "read_file", "arguments": {"path": "a"}}'
        other = '{"name": "read_file", "arguments": {"path": "b"}}'
        calls = parse_json_tool_calls(f"First {call} then {call} and {other}")

        assert [c.arguments["path"] for c in calls] == ["a", "b"]

    def test_nested_arguments(self):
        """Test arguments containing nested objects and braces in strings."""
        calls = parse_json_tool_calls(
            'Write it: {"name": "write_file", "arguments": {"path": "x.json", "content": "{\\"k\\": 1}"}}'
        )

        assert calls[0].arguments["content"] == '{"k": 1}'

    def test_empty_object_gives_nothing(self):
        """Test {} is not a call."""
        assert parse_json_tool_calls("{ }") == []

    def test_call_ids_are_unique(self):
        """Test generated ids differ."""
        assert generate_call_id() != generate_call_id()

    def test_clean_removes_call_text(self):
        """Test the call JSON is cut out of the visible text."""
        content = 'Reading now. {"name": "read_file", "arguments": {"path": "a"}} Done.'
        calls = parse_json_tool_calls(content)

        assert clean_json_tool_calls(content, calls) == "Reading now. Done."

    def test_detect_missing_name(self):
        """Test an arguments-only object is reported."""
        error, examples = detect_malformed_json('{"arguments": {"path": "a"}}')

        assert 'missing "name"' in error
        assert "native tool calling" in examples

    def test_prose_mention_is_not_malformed(self):
        """Test an inline mention in the middle of a line is ignored."""
        assert detect_malformed_json('I tried {"name": "x"} earlier') is None


class TestXmlParser:
    """Tests for tag-shaped call extraction."""

    def test_parameters_decoded(self):
        """Test parameter values with JSON literals."""
        content = "<search_file_contents>\n<pattern>TODO</pattern>\n<ignore_case>true</ignore_case>\n</search_file_contents>"
        calls = parse_xml_tool_calls(content)

        assert calls[0].name == "search_file_contents"
        assert calls[0].arguments == {"pattern": "TODO", "ignore_case": True}

    def test_ordinary_markup_ignored(self):
        """Test tags without _ or - are not calls when no names are known."""
        assert XMLToolCallParser().has_tool_calls("<b>bold</b>") is False

    def test_known_names_restrict_matches(self):
        """Test only registered names count when names are given."""
        parser = XMLToolCallParser({"read_file"})

        assert parser.has_tool_calls("<read_file><path>a</path></read_file>") is True
        assert parser.has_tool_calls("<other_tool><x>1</x></other_tool>") is False

    def test_tool_call_wrapper(self):
        """Test <tool_call> wrapping a JSON object."""
        calls = parse_xml_tool_calls('<tool_call>{"name": "list_directory", "arguments": {}}</tool_call>')

        assert calls[0].name == "list_directory"

    def test_bare_text_body_is_not_a_call(self):
        """Test a tool tag with prose inside is left alone."""
        assert parse_xml_tool_calls("<read_file>just words</read_file>") == []

    def test_clean(self):
        """Test call blocks are removed from the text."""
        content = "Checking.\n\n<read_file><path>a</path></read_file>\n\n\n\nThen more."

        assert clean_xml_tool_calls(content) == "Checking.\n\nThen more."

    def test_detect_unsupported_syntax(self):
        """Test near-miss tag syntaxes name the offending tool."""
        error, _ = detect_malformed_xml("<parameter=path>a</parameter>")

        assert error == "Invalid tool call format: <parameter=path> syntax is not supported"


class TestUnifiedParser:
    """Tests for parse_tool_calls."""

    def test_strip_think_tags(self):
        """Test closed and unclosed think blocks are removed."""
        assert strip_think_tags("<think>hmm</think>Answer") == "Answer"
        assert strip_think_tags("Answer<think>still going") == "Answer"

    def test_call_inside_think_is_ignored(self):
        """Test calls the model only thought about are not run."""
        result = parse_tool_calls(
            '<think>{"name": "read_file", "arguments": {"path": "a"}}</think>plain answer'
        )

        assert result.success is True
        assert result.tool_calls == []
        assert result.cleaned_content == "plain answer"

    def test_tags_before_json(self):
        """Test tag calls win over JSON in the same message."""
        result = parse_tool_calls("<read_file><path>a</path></read_file>", ["read_file"])

        assert [c.name for c in result.tool_calls] == ["read_file"]
        assert result.cleaned_content == ""

    def test_json_call_with_cleaned_text(self):
        """Test JSON calls leave the surrounding prose."""
        result = parse_tool_calls('Sure.\n{"name": "find_files", "arguments": {"pattern": "*.md"}}')

        assert result.tool_calls[0].arguments == {"pattern": "*.md"}
        assert result.cleaned_content == "Sure."

    def test_malformed_reports_error_and_examples(self):
        """Test a near miss fails with guidance."""
        result = parse_tool_calls('{"name": "read_file", "arguments": "a"}')

        assert result.success is False
        assert result.tool_calls == []
        assert "not a string" in result.error
        assert result.examples

    def test_plain_text(self):
        """Test prose without calls succeeds with no calls."""
        result = parse_tool_calls("Nothing   to do here.   ")

        assert result.success is True
        assert result.tool_calls == []
        assert result.cleaned_content == "Nothing to do here."
