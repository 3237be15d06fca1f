"""XML-style tool-call extraction.

Some models emit calls as tags:

    <read_file>
    <path>src/app.py</path>
    </read_file>

A tag counts as a call when its name is a registered tool, or, when no tool
names are known, when it looks like one (contains `_` or `-`). That keeps
ordinary markup such as <b> or <think> out.
"""

import json
import re
from typing import Iterable, Optional

from relaycode.llm.base import ToolCall
from relaycode.llm.json_parser import call_from_object, generate_call_id


TAG_BLOCK = re.compile(r"<([A-Za-z_][\w\-]*)>(.*?)</\1>", re.DOTALL)
PARAM_BLOCK = re.compile(r"<([A-Za-z_][\w\-]*)>(.*?)</\1>", re.DOTALL)

# Wrappers whose body is a JSON {"name", "arguments"} object
JSON_WRAPPERS = ("tool_call", "function_call")

MALFORMED_PATTERNS = [
    (
        re.compile(r"<function=(\w+)>"),
        "Invalid tool call format: <function={name}> syntax is not supported",
    ),
    (
        re.compile(r"<parameter=(\w+)>"),
        "Invalid tool call format: <parameter={name}> syntax is not supported",
    ),
    (
        re.compile(r"\[(?:tool_use|Tool):\s*(\w+)\]", re.IGNORECASE),
        "Invalid tool call format: [tool_use: {name}] syntax is not supported",
    ),
]

FORMAT_EXAMPLES = """Use one of these formats instead:

<read_file>
<path>src/app.py</path>
</read_file>

{"name": "read_file", "arguments": {"path": "src/app.py"}}"""


def _is_tool_tag(name: str, tool_names: Optional[frozenset]) -> bool:
    if name in JSON_WRAPPERS:
        return True
    if tool_names is not None:
        return name in tool_names
    return "_" in name or "-" in name


def _decode_value(raw: str):
    value = raw.strip()
    if value in ("true", "false") or value[:1] in ("{", "["):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


def _parse_block(name: str, body: str) -> Optional[ToolCall]:
    if name in JSON_WRAPPERS:
        try:
            return call_from_object(json.loads(body.strip()))
        except ValueError:
            return None

    arguments = {}
    for param in PARAM_BLOCK.finditer(body):
        arguments[param.group(1)] = _decode_value(param.group(2))

    # A tool tag wrapping bare text (no parameter tags) is not a call
    if not arguments and body.strip():
        return None

    return ToolCall(id=generate_call_id(), name=name, arguments=arguments)


class XMLToolCallParser:
    """Parse tag-shaped tool calls, optionally restricted to known tool names."""

    def __init__(self, tool_names: Optional[Iterable[str]] = None):
        self.tool_names = frozenset(tool_names) if tool_names is not None else None

    def _matches(self, content: str):
        for match in TAG_BLOCK.finditer(content):
            if _is_tool_tag(match.group(1), self.tool_names):
                yield match

    def has_tool_calls(self, content: str) -> bool:
        return any(True for _ in self._matches(content))

    def parse(self, content: str) -> list[ToolCall]:
        calls = []
        for match in self._matches(content):
            call = _parse_block(match.group(1), match.group(2))
            if call:
                calls.append(call)
        return calls

    def remove_tool_calls(self, content: str) -> str:
        """Strip matched call blocks from the text."""
        pieces = []
        last = 0
        for match in self._matches(content):
            if _parse_block(match.group(1), match.group(2)) is None:
                continue
            pieces.append(content[last:match.start()])
            last = match.end()
        pieces.append(content[last:])
        text = "".join(pieces)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()


def parse_xml_tool_calls(content: str, tool_names: Optional[Iterable[str]] = None) -> list[ToolCall]:
    return XMLToolCallParser(tool_names).parse(content)


def detect_malformed_xml(content: str) -> Optional[tuple[str, str]]:
    """Return (error, examples) for unsupported tag syntaxes, or None."""
    for pattern, template in MALFORMED_PATTERNS:
        match = pattern.search(content)
        if match:
            return template.format(name=match.group(1)), FORMAT_EXAMPLES
    return None


def clean_xml_tool_calls(content: str, tool_names: Optional[Iterable[str]] = None) -> str:
    return XMLToolCallParser(tool_names).remove_tool_calls(content)
