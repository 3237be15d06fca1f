"""Unified tool-call parser for free-form model output.

Tries tag-shaped calls first, then JSON, and reports near-miss syntaxes so
the model can be told how to fix them.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from relaycode.llm.base import ToolCall
from relaycode.llm.json_parser import (
    clean_json_tool_calls,
    detect_malformed_json,
    normalize_whitespace,
    parse_json_tool_calls,
)
from relaycode.llm.xml_parser import XMLToolCallParser, detect_malformed_xml


THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
THINK_UNCLOSED = re.compile(r"<think>.*$", re.DOTALL | re.IGNORECASE)
THINK_CLOSE = re.compile(r"</think>", re.IGNORECASE)


@dataclass
class ParseResult:
    """Outcome of parse_tool_calls().

    `success` is False only when a malformed call was detected; in that case
    `error` and `examples` explain the problem and `tool_calls` is empty.
    """
    success: bool
    tool_calls: list[ToolCall] = field(default_factory=list)
    cleaned_content: str = ""
    error: Optional[str] = None
    examples: Optional[str] = None


def strip_think_tags(content: str) -> str:
    """Remove chain-of-thought blocks some models emit."""
    content = THINK_BLOCK.sub("", content)
    content = THINK_UNCLOSED.sub("", content)
    return THINK_CLOSE.sub("", content)


def parse_tool_calls(content: str, tool_names: Optional[Iterable[str]] = None) -> ParseResult:
    """Extract tool calls from mixed prose, tags and JSON."""
    stripped = strip_think_tags(content)

    malformed = detect_malformed_xml(stripped)
    if malformed:
        error, examples = malformed
        return ParseResult(success=False, error=error, examples=examples)

    xml = XMLToolCallParser(tool_names)
    if xml.has_tool_calls(stripped):
        calls = xml.parse(stripped)
        if calls:
            return ParseResult(
                success=True,
                tool_calls=calls,
                cleaned_content=xml.remove_tool_calls(stripped),
            )

    calls = parse_json_tool_calls(stripped)
    if calls:
        return ParseResult(
            success=True,
            tool_calls=calls,
            cleaned_content=clean_json_tool_calls(stripped, calls),
        )

    malformed = detect_malformed_json(stripped)
    if malformed:
        error, examples = malformed
        return ParseResult(success=False, error=error, examples=examples)

    return ParseResult(success=True, cleaned_content=normalize_whitespace(stripped))
