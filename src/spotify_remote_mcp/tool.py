# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Declarative tool definitions.

A tool is an async handler ``handler(args, ctx)`` plus the metadata clients see
in ``tools/list``.  :func:`tool` attaches a :class:`ToolSpec` to the handler;
the registry later reads it back with :func:`extract_tool_spec`.  Arguments are
described by a pydantic model whose JSON schema becomes the advertised
``inputSchema``; the handler receives the validated model instance.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict


if TYPE_CHECKING:
    from .context import Context


class NoArguments(BaseModel):
    """Input model for tools that take no arguments."""

    model_config = ConfigDict(extra="ignore")


ToolHandler = Callable[[Any, "Context"], Awaitable[Any]]


@dataclass(slots=True)
class ToolSpec:
    """In-memory representation of a tool definition."""

    name: str
    handler: ToolHandler
    description: str = ""
    input_model: type[BaseModel] = NoArguments
    title: str | None = None
    annotations: dict[str, Any] | None = None


_TOOL_ATTR = "__spotify_mcp_tool__"


def tool(
    name: str | None = None,
    *,
    description: str | None = None,
    input_model: type[BaseModel] | None = None,
    title: str | None = None,
    annotations: dict[str, Any] | None = None,
) -> Callable[[ToolHandler], ToolHandler]:
    """Mark an async handler as an MCP tool.

    The description defaults to the handler's docstring and the name to its
    ``__name__``.  Registration is explicit; see
    :meth:`spotify_remote_mcp.server.registry.ToolRegistry.register`.
    """

    def decorator(fn: ToolHandler) -> ToolHandler:
        desc = (description if description is not None else (fn.__doc__ or "")).strip()
        spec = ToolSpec(
            name=name or getattr(fn, "__name__", "anonymous"),
            handler=fn,
            description=desc,
            input_model=input_model or NoArguments,
            title=title,
            annotations=annotations,
        )
        setattr(fn, _TOOL_ATTR, spec)
        return fn

    return decorator


def extract_tool_spec(fn: Callable[..., Any]) -> ToolSpec | None:
    """Return the attached :class:`ToolSpec` for *fn*, if present."""
    spec = getattr(fn, _TOOL_ATTR, None)
    return spec if isinstance(spec, ToolSpec) else None


__all__ = ["NoArguments", "ToolHandler", "ToolSpec", "extract_tool_spec", "tool"]
