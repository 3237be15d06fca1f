"""Raw LLM response variants.

Providers and custom endpoints can hand back text, JSON objects, arrays,
bare numbers or nothing at all. `to_raw_response()` turns such a value into
one variant of a closed set, once, at the provider boundary; everything
downstream switches on the variant instead of inspecting runtime types.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class TextResponse:
    text: str


@dataclass(frozen=True)
class ObjectResponse:
    """A plain JSON object."""
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallObjectResponse:
    """An object carrying provider-native `tool_calls` or a `function` field."""
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ArrayResponse:
    items: tuple = ()


@dataclass(frozen=True)
class ScalarResponse:
    value: Union[int, float, bool]


@dataclass(frozen=True)
class EmptyResponse:
    pass


RawResponse = Union[
    TextResponse,
    ObjectResponse,
    ToolCallObjectResponse,
    ArrayResponse,
    ScalarResponse,
    EmptyResponse,
]

RAW_RESPONSE_TYPES = (
    TextResponse,
    ObjectResponse,
    ToolCallObjectResponse,
    ArrayResponse,
    ScalarResponse,
    EmptyResponse,
)


def to_raw_response(value: Any) -> RawResponse:
    """Classify an arbitrary provider value into a RawResponse variant."""
    if isinstance(value, RAW_RESPONSE_TYPES):
        return value
    if value is None:
        return EmptyResponse()
    if isinstance(value, str):
        return TextResponse(value)
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ScalarResponse(value)
    if isinstance(value, (int, float)):
        return ScalarResponse(value)
    if isinstance(value, (list, tuple)):
        return ArrayResponse(tuple(value))
    if isinstance(value, dict):
        if "tool_calls" in value or "function" in value:
            return ToolCallObjectResponse(dict(value))
        return ObjectResponse(dict(value))
    return TextResponse(str(value))


def format_scalar(value: Union[int, float, bool]) -> str:
    """Render a scalar the way JSON-speaking providers print it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
    return str(value)


def _item_to_text(item: Any) -> str:
    if item is None:
        return ""
    if isinstance(item, str):
        return item
    if isinstance(item, (bool, int, float)):
        return format_scalar(item)
    return json.dumps(item, separators=(",", ":"), default=str)


def stringify(raw: RawResponse) -> str:
    """Canonical string form used for parsing."""
    if isinstance(raw, TextResponse):
        return raw.text.strip()
    if isinstance(raw, (ObjectResponse, ToolCallObjectResponse)):
        return json.dumps(raw.data, separators=(",", ":"), default=str)
    if isinstance(raw, ArrayResponse):
        return "\n".join(_item_to_text(item) for item in raw.items).strip()
    if isinstance(raw, ScalarResponse):
        return format_scalar(raw.value)
    return ""


def original_value(raw: RawResponse) -> Any:
    """Recover the Python value a variant was built from."""
    if isinstance(raw, TextResponse):
        return raw.text
    if isinstance(raw, (ObjectResponse, ToolCallObjectResponse)):
        return raw.data
    if isinstance(raw, ArrayResponse):
        return list(raw.items)
    if isinstance(raw, ScalarResponse):
        return raw.value
    return None
