from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, Tuple, Union

from .errors import InputParseError, UnsupportedOperationKind


class OperationKind(str, enum.Enum):
    FULL_REWRITE = "full_rewrite"
    SINGLE_REGION_REPLACE = "single_region_replace"
    MULTI_REGION_REPLACE = "multi_region_replace"


@dataclass(frozen=True)
class FullRewrite:
    target_path: str
    content: bytes

    kind = OperationKind.FULL_REWRITE
    tool_name = "Write"
    label = "write"


@dataclass(frozen=True)
class SingleRegionReplace:
    target_path: str
    old: bytes
    new: bytes

    kind = OperationKind.SINGLE_REGION_REPLACE
    tool_name = "Edit"
    label = "edit"


@dataclass(frozen=True)
class MultiRegionReplace:
    target_path: str
    # Ordered (old, new) pairs, as submitted.
    edits: Tuple[Tuple[bytes, bytes], ...]

    kind = OperationKind.MULTI_REGION_REPLACE
    tool_name = "MultiEdit"
    label = "multi-edit"


Operation = Union[FullRewrite, SingleRegionReplace, MultiRegionReplace]

SUPPORTED_TOOLS = ("Write", "Edit", "MultiEdit")


def _text_field(obj: Dict[str, Any], key: str, *, default: str | None = None) -> bytes:
    value = obj.get(key, default)
    if not isinstance(value, str):
        raise InputParseError(f"Expected string field {key!r}, got {type(value).__name__}")
    return value.encode("utf-8")


def extract_file_path(hook_input: Dict[str, Any]) -> str:
    tool_input = hook_input.get("tool_input")
    if not isinstance(tool_input, dict):
        raise InputParseError("Missing tool_input object")
    file_path = tool_input.get("file_path")
    if not isinstance(file_path, str) or not file_path.strip():
        raise InputParseError("Missing tool_input.file_path")
    return file_path


def parse_operation(hook_input: Dict[str, Any]) -> Operation:
    """Build an operation descriptor from a PreToolUse hook record.

    Supported tools:
      - Write:     tool_input.content
      - Edit:      tool_input.old_string / tool_input.new_string
      - MultiEdit: tool_input.edits = [{old_string, new_string}, ...]

    Text payloads are held as UTF-8 bytes so that size estimates are byte based.
    """

    if not isinstance(hook_input, dict):
        raise InputParseError("Hook input must be a JSON object")

    tool_name = hook_input.get("tool_name")
    if tool_name not in SUPPORTED_TOOLS:
        raise UnsupportedOperationKind(f"Unsupported tool: {tool_name!r}")

    file_path = extract_file_path(hook_input)
    tool_input = hook_input["tool_input"]

    if tool_name == "Write":
        return FullRewrite(target_path=file_path, content=_text_field(tool_input, "content"))

    if tool_name == "Edit":
        return SingleRegionReplace(
            target_path=file_path,
            old=_text_field(tool_input, "old_string"),
            new=_text_field(tool_input, "new_string", default=""),
        )

    raw_edits = tool_input.get("edits")
    if not isinstance(raw_edits, list):
        raise InputParseError("MultiEdit requires a tool_input.edits list")
    edits = []
    for i, item in enumerate(raw_edits):
        if not isinstance(item, dict):
            raise InputParseError(f"MultiEdit edit #{i} is not an object")
        edits.append((_text_field(item, "old_string"), _text_field(item, "new_string", default="")))
    return MultiRegionReplace(target_path=file_path, edits=tuple(edits))
