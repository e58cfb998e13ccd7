# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Normalization helpers for tool handler results.

Handlers may return a ready ``CallToolResult``, a string, a content block, a
mapping or an iterable of those.  Everything is coerced into a
``CallToolResult`` before it is written to the wire.
"""

from __future__ import annotations

from collections.abc import Iterable
import json
from typing import Any

from pydantic import ValidationError

from .. import types


def normalize_tool_result(value: Any) -> types.CallToolResult:
    """Coerce arbitrary tool handler output into ``CallToolResult``."""
    if isinstance(value, types.CallToolResult):
        return value

    if isinstance(value, dict) and "content" in value:
        try:
            return types.CallToolResult.model_validate(value)
        except ValidationError:
            pass

    structured = value if isinstance(value, dict) else None
    return types.CallToolResult(content=_coerce_content_blocks(value), structuredContent=structured)


def error_result(message: str) -> types.CallToolResult:
    """A single-text ``CallToolResult`` flagged as an error."""
    return types.CallToolResult(content=[types.TextContent(type="text", text=message)], isError=True)


def text_result(message: str) -> types.CallToolResult:
    return types.CallToolResult(content=[types.TextContent(type="text", text=message)])


def _coerce_content_blocks(source: Any) -> list[types.ContentBlock]:
    if source is None:
        return []

    if isinstance(source, (types.TextContent, types.ImageContent, types.EmbeddedResource)):
        return [source]

    if isinstance(source, str):
        return [types.TextContent(type="text", text=source)]

    if isinstance(source, dict):
        if source.get("type") == "text" and isinstance(source.get("text"), str):
            return [types.TextContent(type="text", text=source["text"])]
        return [_as_text_content(source)]

    if isinstance(source, Iterable):
        blocks: list[types.ContentBlock] = []
        for item in source:
            blocks.extend(_coerce_content_blocks(item))
        return blocks

    return [_as_text_content(source)]


def _as_text_content(value: Any) -> types.TextContent:
    try:
        text = json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        text = str(value)
    return types.TextContent(type="text", text=text)


__all__ = ["error_result", "normalize_tool_result", "text_result"]
