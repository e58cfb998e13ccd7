# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Tool registry.

The registry is built once at startup and handed to the router, which calls
:meth:`ToolRegistry.materialize` for every new channel.  Two kinds of entries
are kept, in registration order:

* declarative :class:`~spotify_remote_mcp.tool.ToolSpec` entries (the
  canonical style, usually produced by the ``@tool`` decorator);
* factories ``factory(channel) -> BoundTool`` for tools that need the channel
  itself at bind time.

Names are unique across the registry.  Materializing binds every entry to the
channel and replaces the channel's tool set, so calling it twice rebinds; it is
only allowed while the channel is still initializing.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from .adapters import error_result, normalize_tool_result
from .errors import DuplicateToolError
from .. import types
from ..tool import ToolSpec, extract_tool_spec


if TYPE_CHECKING:
    from .channel import Channel
    from ..context import Context


ToolInvoker = Callable[[dict[str, Any], "Context"], Awaitable[types.CallToolResult]]


@dataclass(frozen=True, slots=True)
class BoundTool:
    """A tool made callable within one channel."""

    definition: types.Tool
    invoke: ToolInvoker

    @property
    def name(self) -> str:
        return self.definition.name


ToolFactory = Callable[["Channel"], BoundTool]


class ToolRegistry:
    """Ordered collection of tool entries shared by every session."""

    def __init__(self) -> None:
        self._entries: list[ToolSpec | ToolFactory] = []
        self._names: set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def specs(self) -> list[ToolSpec]:
        return [entry for entry in self._entries if isinstance(entry, ToolSpec)]

    @property
    def tool_names(self) -> list[str]:
        return [spec.name for spec in self.specs]

    def register(self, target: ToolSpec | Callable[..., Any]) -> ToolSpec:
        spec = target if isinstance(target, ToolSpec) else extract_tool_spec(target)
        if spec is None:
            raise TypeError(f"{target!r} is neither a ToolSpec nor a function decorated with @tool")
        if spec.name in self._names:
            raise DuplicateToolError(spec.name)
        self._names.add(spec.name)
        self._entries.append(spec)
        return spec

    def register_factory(self, factory: ToolFactory) -> ToolFactory:
        """Register a factory called with the channel at materialization time."""
        self._entries.append(factory)
        return factory

    def materialize(self, channel: Channel) -> list[BoundTool]:
        """Bind every entry to *channel* and install the result as its tool set."""
        bound: list[BoundTool] = []
        seen: set[str] = set()
        for entry in self._entries:
            handle = bind_spec(entry) if isinstance(entry, ToolSpec) else entry(channel)
            if handle.name in seen:
                raise DuplicateToolError(handle.name)
            seen.add(handle.name)
            bound.append(handle)
        channel.bind_tools(bound)
        return bound


def bind_spec(spec: ToolSpec) -> BoundTool:
    """Wrap a declarative spec into a :class:`BoundTool`."""
    definition = types.Tool(
        name=spec.name,
        title=spec.title,
        description=spec.description or None,
        inputSchema=build_input_schema(spec.input_model),
        annotations=types.ToolAnnotations.model_validate(spec.annotations) if spec.annotations else None,
    )

    async def invoke(arguments: dict[str, Any], ctx: Context) -> types.CallToolResult:
        try:
            args = spec.input_model.model_validate(arguments)
        except ValidationError as exc:
            return error_result(f"Invalid arguments for tool {spec.name}: {_summarize(exc)}")
        return normalize_tool_result(await spec.handler(args, ctx))

    return BoundTool(definition=definition, invoke=invoke)


def build_input_schema(model: type[BaseModel]) -> dict[str, Any]:
    schema = model.model_json_schema()
    _prune_titles(schema)
    schema.setdefault("type", "object")
    schema.setdefault("properties", {})
    return schema


def _summarize(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ())) or "arguments"
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


def _prune_titles(schema: Any) -> None:
    if isinstance(schema, dict):
        if isinstance(schema.get("title"), str):
            schema.pop("title")
        for value in schema.values():
            _prune_titles(value)
    elif isinstance(schema, list):
        for item in schema:
            _prune_titles(item)


__all__ = ["BoundTool", "ToolFactory", "ToolRegistry", "bind_spec", "build_input_schema"]
