"""Response normalization.

Every model turn, whatever shape the provider handed back, ends up as a
NormalizedResponse: the text content, the tool calls found in it, and
metadata describing how it was classified.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from relaycode.llm.base import ToolCall
from relaycode.llm.json_parser import (
    CALL_SIGNATURE,
    generate_call_id,
    parse_json_tool_calls,
)
from relaycode.llm.parser import parse_tool_calls
from relaycode.llm.response import (
    ArrayResponse,
    ObjectResponse,
    RawResponse,
    TextResponse,
    ToolCallObjectResponse,
    original_value,
    stringify,
    to_raw_response,
)
from relaycode.llm.xml_parser import XMLToolCallParser, detect_malformed_xml


FORMAT_PLAIN = "plain"
FORMAT_JSON = "json"
FORMAT_XML = "xml"
FORMAT_MIXED = "mixed"

CONFIDENCE_HIGH = "high"
CONFIDENCE_MEDIUM = "medium"
CONFIDENCE_LOW = "low"

EMBEDDED_PATTERNS = [
    re.compile(r'\{\s*"name"\s*:\s*"[^"]+"\s*,\s*"arguments"\s*:\s*\{', re.DOTALL),
    re.compile(r"<(\w+)>(.*?)</\1>", re.DOTALL),
]

# Checked against the trimmed content as a whole
MALFORMED_JSON_PATTERNS = [
    (re.compile(r'^\s*\{\s*"name"\s*:\s*"[^"]+"\s*\}\s*$'),
     'Incomplete tool call: missing "arguments" field'),
    (re.compile(r'^\s*\{\s*"arguments"\s*:\s*\}\s*$'),
     'Incomplete tool call: missing "name" field'),
    (re.compile(r'"arguments"\s*:\s*null\s*[,}\s]*$', re.DOTALL),
     'Invalid tool call: "arguments" is null'),
    (re.compile(r'^\s*\{\s*(?:"name"\s*:\s*"[^"]*"\s*,\s*)?"arguments"\s*:\s*\[\s*\]\s*\}\s*$'),
     'Invalid tool call: "arguments" must be an object, not an array'),
    (re.compile(r'^\s*\{\s*(?:"name"\s*:\s*"[^"]*"\s*,\s*)?"arguments"\s*:\s*"[^"]*"\s*\}\s*$'),
     'Invalid tool call: "arguments" must be an object, not a string'),
]

HAS_CODE_BLOCKS = re.compile(r"```")
HAS_XML_TAGS = re.compile(r"<[^>]+>")


@dataclass
class NormalizeOptions:
    """Knobs for normalize().

    Attributes:
        allow_mixed_content: Also look for calls embedded in prose.
        preserve_raw_types: Keep the provider's original value in metadata.raw.
        tool_names: Registered tool names; narrows which tags count as calls.
    """
    allow_mixed_content: bool = True
    preserve_raw_types: bool = False
    tool_names: Optional[frozenset] = None


@dataclass
class ResponseMetadata:
    detected_format: str = FORMAT_PLAIN
    has_code_blocks: bool = False
    has_xml_tags: bool = False
    has_json_blocks: bool = False
    is_malformed: bool = False
    malformed_error: Optional[str] = None
    confidence: str = CONFIDENCE_HIGH
    raw: Any = None


@dataclass
class NormalizedResponse:
    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    metadata: ResponseMetadata = field(default_factory=ResponseMetadata)

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


def _has_embedded_calls(content: str) -> bool:
    return any(p.search(content) for p in EMBEDDED_PATTERNS)


def classify(raw: RawResponse, content: str) -> str:
    """Decide which format a response's string form looks like."""
    if isinstance(raw, (ObjectResponse, ToolCallObjectResponse)):
        return FORMAT_JSON
    if isinstance(raw, ArrayResponse):
        return FORMAT_MIXED if content else FORMAT_PLAIN
    if not isinstance(raw, TextResponse):
        return FORMAT_PLAIN

    if content.startswith("{") and content.endswith("}"):
        return FORMAT_JSON
    if content.startswith("<") and content.endswith(">"):
        return FORMAT_XML
    if _has_embedded_calls(content):
        return FORMAT_MIXED
    return FORMAT_PLAIN


def _native_call(entry: Any) -> tuple[Optional[ToolCall], Optional[str]]:
    """Convert one provider-native call ({id, function: {name, arguments}})."""
    if not isinstance(entry, dict):
        return None, "Invalid tool call: expected an object"
    function = entry.get("function") if isinstance(entry.get("function"), dict) else entry
    name = function.get("name")
    arguments = function.get("arguments", {})
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments) if arguments.strip() else {}
        except ValueError:
            return None, f"Invalid tool call: arguments for '{name}' are not valid JSON"
    if not isinstance(name, str) or not name:
        return None, 'Incomplete tool call: missing "name" field'
    if not isinstance(arguments, dict):
        return None, f"Invalid tool call: arguments for '{name}' must be an object"
    return ToolCall(id=entry.get("id") or generate_call_id(), name=name, arguments=arguments), None


def _native_calls(data: dict) -> tuple[list[ToolCall], Optional[str]]:
    if "tool_calls" in data:
        entries = data.get("tool_calls") or []
        if not isinstance(entries, list):
            entries = [entries]
    else:
        entries = [data]

    calls = []
    error = None
    for entry in entries:
        call, problem = _native_call(entry)
        if call:
            calls.append(call)
        elif error is None:
            error = problem
    return calls, error


def extract_tool_calls(
    content: str,
    detected_format: str,
    options: NormalizeOptions,
) -> tuple[list[ToolCall], Optional[str]]:
    """Run the parsers in order; the first one that finds calls wins.

    Returns (tool_calls, malformed_error).
    """
    if not content:
        return [], None

    if detected_format == FORMAT_JSON:
        calls = parse_json_tool_calls(content)
        if calls:
            return calls, None

    malformed = detect_malformed_xml(content)
    if malformed:
        return [], malformed[0]

    xml = XMLToolCallParser(options.tool_names)
    if xml.has_tool_calls(content):
        calls = xml.parse(content)
        if calls:
            return calls, None

    if options.allow_mixed_content:
        result = parse_tool_calls(content, options.tool_names)
        if result.success and result.tool_calls:
            return result.tool_calls, None
        if not result.success:
            return [], result.error

    return [], None


def find_malformed_pattern(content: str) -> Optional[str]:
    """Describe the near-miss call shape in `content`, or None."""
    trimmed = content.strip()
    if not trimmed:
        return None

    if re.sub(r"\s", "", trimmed) == "{}":
        return "Empty tool call: {} has no name or arguments"

    for pattern, error in MALFORMED_JSON_PATTERNS:
        if pattern.search(trimmed):
            return error

    malformed = detect_malformed_xml(content)
    if malformed:
        return malformed[0]

    return None


def _is_invalid_json_object(content: str) -> bool:
    trimmed = content.strip()
    if not (trimmed.startswith("{") and trimmed.endswith("}")):
        return False
    try:
        json.loads(trimmed)
    except ValueError:
        return True
    return False


def determine_confidence(
    *,
    has_calls: bool,
    is_malformed: bool,
    detected_format: str,
    has_code_blocks: bool,
) -> str:
    if is_malformed:
        if detected_format in (FORMAT_JSON, FORMAT_XML) or has_code_blocks:
            return CONFIDENCE_MEDIUM
        return CONFIDENCE_LOW
    if has_calls:
        return CONFIDENCE_HIGH
    # Structured output that carried no call
    if detected_format in (FORMAT_JSON, FORMAT_XML):
        return CONFIDENCE_MEDIUM
    return CONFIDENCE_HIGH


def normalize(response: Any, options: Optional[NormalizeOptions] = None) -> NormalizedResponse:
    """Turn any provider value into a NormalizedResponse."""
    options = options or NormalizeOptions()
    raw = to_raw_response(response)
    content = stringify(raw)
    detected_format = classify(raw, content)

    malformed_error = None
    if isinstance(raw, ToolCallObjectResponse):
        tool_calls, malformed_error = _native_calls(raw.data)
        if not tool_calls and malformed_error is None:
            tool_calls, malformed_error = extract_tool_calls(content, detected_format, options)
    else:
        tool_calls, malformed_error = extract_tool_calls(content, detected_format, options)

    is_malformed = False
    if not tool_calls:
        pattern_error = find_malformed_pattern(content)
        if pattern_error is None and detected_format == FORMAT_JSON and _is_invalid_json_object(content):
            pattern_error = "Invalid JSON: the response could not be parsed as a tool call"
        if pattern_error or malformed_error:
            is_malformed = True
            malformed_error = malformed_error or pattern_error
    else:
        malformed_error = None

    has_code_blocks = bool(HAS_CODE_BLOCKS.search(content))
    metadata = ResponseMetadata(
        detected_format=detected_format,
        has_code_blocks=has_code_blocks,
        has_xml_tags=bool(HAS_XML_TAGS.search(content)),
        has_json_blocks=bool(CALL_SIGNATURE.search(content)),
        is_malformed=is_malformed,
        malformed_error=malformed_error,
        confidence=determine_confidence(
            has_calls=bool(tool_calls),
            is_malformed=is_malformed,
            detected_format=detected_format,
            has_code_blocks=has_code_blocks,
        ),
        raw=original_value(raw) if options.preserve_raw_types else None,
    )
    return NormalizedResponse(content=content, tool_calls=tool_calls, metadata=metadata)


def normalize_native(content: str, tool_calls: Iterable[ToolCall]) -> NormalizedResponse:
    """Wrap a response whose calls came from the provider's own tool API."""
    calls = list(tool_calls)
    content = content.strip()
    return NormalizedResponse(
        content=content,
        tool_calls=calls,
        metadata=ResponseMetadata(
            detected_format=FORMAT_PLAIN,
            has_code_blocks=bool(HAS_CODE_BLOCKS.search(content)),
            has_xml_tags=bool(HAS_XML_TAGS.search(content)),
            has_json_blocks=bool(CALL_SIGNATURE.search(content)),
            confidence=CONFIDENCE_HIGH,
        ),
    )


def is_response_complete(response: NormalizedResponse) -> bool:
    """True when the response has content, is well-formed and not low confidence."""
    return (
        bool(response.content)
        and not response.metadata.is_malformed
        and response.metadata.confidence != CONFIDENCE_LOW
    )


def format_normalized_response(response: NormalizedResponse) -> str:
    """Multi-line summary used by --debug output."""
    meta = response.metadata
    preview = response.content[:500] + ("..." if len(response.content) > 500 else "")
    raw_type = type(meta.raw).__name__ if meta.raw is not None else "none"
    lines = [
        "=== Normalized Response ===",
        f"Raw Type: {raw_type}",
        f"Content Length: {len(response.content)} chars",
        f"Detected Format: {meta.detected_format}",
        f"Confidence: {meta.confidence}",
        f"Has Code Blocks: {meta.has_code_blocks}",
        f"Has XML Tags: {meta.has_xml_tags}",
        f"Has JSON Blocks: {meta.has_json_blocks}",
        f"Is Malformed: {meta.is_malformed}",
    ]
    if meta.malformed_error:
        lines.append(f"Malformed Error: {meta.malformed_error}")
    lines += [
        f"Tool Calls: {len(response.tool_calls)}",
        "",
        "Content Preview:",
        preview,
        "",
        "Tool Calls:",
    ]
    lines += [
        f"  - {tc.name}: {json.dumps(tc.arguments, default=str)}"
        for tc in response.tool_calls
    ]
    return "\n".join(lines)
