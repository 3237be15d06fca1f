"""JSON tool-call extraction.

Models without native function calling tend to print calls as JSON:
a whole-message object, a fenced ```json block, or an object embedded in
prose. All of them have the shape {"name": "...", "arguments": {...}}.
"""

import itertools
import json
import re
import time
from typing import Optional

from relaycode.llm.base import ToolCall


# Whole content wrapped in a single fenced block
WHOLE_CODE_BLOCK = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?```$", re.DOTALL)

# Any fenced block
CODE_BLOCK = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)

# Start of a candidate call object
CALL_START = re.compile(r'\{\s*"name"\s*:')

# Embedded call signature, used for format detection
CALL_SIGNATURE = re.compile(r'"name"\s*:\s*"[^"]+"\s*,\s*"arguments"\s*:\s*\{')

# Near-miss shapes, anchored to a line start so prose like
# 'I tried {"name": ...}' is not reported
MALFORMED_PATTERNS = [
    (
        re.compile(r'(?:^|\n)\s*\{\s*"name"\s*:\s*"[^"]+"\s*,?\s*\}'),
        'Incomplete tool call: missing "arguments" field',
    ),
    (
        re.compile(r'(?:^|\n)\s*\{\s*"arguments"\s*:\s*\{[^}]*\}\s*\}'),
        'Incomplete tool call: missing "name" field',
    ),
    (
        re.compile(r'(?:^|\n)\s*\{\s*"name"\s*:\s*"[^"]+"\s*,\s*"arguments"\s*:\s*"[^"]*"\s*\}'),
        'Invalid tool call: "arguments" must be an object, not a string',
    ),
]

FORMAT_EXAMPLES = (
    "Please use the native tool calling format provided by the system. "
    "The tools are already available to you - call them directly using "
    "the function calling interface."
)

_DECODER = json.JSONDecoder()
_call_counter = itertools.count()


def generate_call_id() -> str:
    """Local id for a call the provider did not assign one to."""
    return f"call_{int(time.time() * 1000)}_{next(_call_counter)}"


def call_from_object(obj) -> Optional[ToolCall]:
    """Build a ToolCall from a decoded {"name", "arguments"} object.

    Returns None unless `name` is a non-empty string and `arguments` is a
    JSON object.
    """
    if not isinstance(obj, dict):
        return None
    name = obj.get("name")
    arguments = obj.get("arguments")
    if not isinstance(name, str) or not name:
        return None
    if not isinstance(arguments, dict):
        return None
    return ToolCall(id=generate_call_id(), name=name, arguments=arguments)


def _call_key(call: ToolCall) -> tuple:
    return call.name, json.dumps(call.arguments, sort_keys=True, default=str)


def find_call_spans(content: str) -> list[tuple[int, int, ToolCall]]:
    """Locate embedded call objects in `content`.

    Returns (start, end, call) tuples in text order. Objects nested inside
    an already matched call are skipped.
    """
    spans = []
    pos = 0
    while True:
        match = CALL_START.search(content, pos)
        if not match:
            break
        start = match.start()
        try:
            obj, end = _DECODER.raw_decode(content, start)
        except ValueError:
            pos = start + 1
            continue
        call = call_from_object(obj)
        if call is None:
            pos = start + 1
            continue
        spans.append((start, end, call))
        pos = end
    return spans


def parse_json_tool_calls(content: str) -> list[ToolCall]:
    """Extract JSON tool calls from model output."""
    text = content.strip()

    block = WHOLE_CODE_BLOCK.match(text)
    if block:
        text = block.group(1).strip()

    if text.startswith("{") and text.endswith("}"):
        if re.sub(r"\s", "", text) == "{}":
            return []
        try:
            parsed = json.loads(text)
        except ValueError:
            parsed = None
        if isinstance(parsed, dict) and parsed.get("name") and "arguments" in parsed:
            # A whole-message call with bad arguments is malformed, not embedded
            call = call_from_object(parsed)
            return [call] if call else []

    calls = []
    seen = set()
    for _, _, call in find_call_spans(content):
        key = _call_key(call)
        if key in seen:
            continue
        seen.add(key)
        calls.append(call)
    return calls


def detect_malformed_json(content: str) -> Optional[tuple[str, str]]:
    """Return (error, examples) for a near-miss JSON call, or None."""
    for pattern, error in MALFORMED_PATTERNS:
        if pattern.search(content):
            return error, FORMAT_EXAMPLES
    return None


def normalize_whitespace(content: str) -> str:
    """Tidy text left behind after tool calls are cut out of it."""
    content = re.sub(r"[ \t]+$", "", content, flags=re.MULTILINE)
    content = re.sub(r"([^ \t\n]) {2,}", r"\1 ", content)
    content = re.sub(r"\n{3,}", "\n\n", content)
    return content.strip()


def _is_call_block(block: str) -> bool:
    try:
        parsed = json.loads(block.strip())
    except ValueError:
        return False
    return isinstance(parsed, dict) and bool(parsed.get("name")) and "arguments" in parsed


def clean_json_tool_calls(content: str, calls: list[ToolCall]) -> str:
    """Remove the JSON that produced `calls` from the visible text."""
    if not calls:
        return content

    cleaned = CODE_BLOCK.sub(
        lambda m: "" if _is_call_block(m.group(1)) else m.group(0),
        content,
    )

    pieces = []
    last = 0
    for start, end, _ in find_call_spans(cleaned):
        pieces.append(cleaned[last:start])
        last = end
    pieces.append(cleaned[last:])

    return normalize_whitespace("".join(pieces))
