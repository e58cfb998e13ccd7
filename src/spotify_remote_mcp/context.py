# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Request context handed to tool handlers.

Each ``tools/call`` gets a fresh :class:`Context` carrying the JSON-RPC request
id, the session id and the verified bearer identity.  Log helpers send
``notifications/message`` back to the client through the owning channel, which
applies the level chosen with ``logging/setLevel``.

Handlers receive the context as their second argument; code further down the
call stack can fetch it with :func:`get_context`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from mcp.types import LoggingLevel, RequestId


if TYPE_CHECKING:
    from .server.authorization import AuthorizationContext


LogSink = Callable[[LoggingLevel, Any, "str | None"], None]

_CURRENT_CONTEXT: ContextVar[Context | None] = ContextVar("spotify_mcp_current_context", default=None)


def get_context() -> Context:
    """Return the :class:`Context` of the tool call being executed.

    Raises:
        LookupError: If called outside of a tool handler.
    """
    ctx = _CURRENT_CONTEXT.get()
    if ctx is None:
        raise LookupError("No active context; get_context() only works inside a tool handler")
    return ctx


def _discard(level: LoggingLevel, data: Any, logger: str | None) -> None:
    return None


@dataclass(slots=True)
class Context:
    request_id: RequestId
    session_id: str | None = None
    auth: AuthorizationContext | None = None
    _sink: LogSink = field(default=_discard, repr=False)

    @property
    def access_token(self) -> str | None:
        """Bearer token of the caller, or ``None`` when unauthenticated."""
        return None if self.auth is None else self.auth.token

    # ------------------------------------------------------------------
    # Logging conveniences
    # ------------------------------------------------------------------

    async def log(
        self,
        level: LoggingLevel,
        message: str,
        *,
        logger: str | None = None,
        data: Mapping[str, Any] | None = None,
    ) -> None:
        """Send a log message to the client.

        Args:
            level: Severity level defined by the MCP logging capability.
            message: Human-readable message describing the event.
            logger: Optional logger name for client-side routing.
            data: Optional structured payload merged into the log body.
        """
        payload: dict[str, Any] = {"msg": message}
        if data:
            payload.update(dict(data))
        self._sink(level, payload, logger)

    async def debug(self, message: str, *, logger: str | None = None, data: Mapping[str, Any] | None = None) -> None:
        await self.log("debug", message, logger=logger, data=data)

    async def info(self, message: str, *, logger: str | None = None, data: Mapping[str, Any] | None = None) -> None:
        await self.log("info", message, logger=logger, data=data)

    async def warning(self, message: str, *, logger: str | None = None, data: Mapping[str, Any] | None = None) -> None:
        await self.log("warning", message, logger=logger, data=data)

    async def error(self, message: str, *, logger: str | None = None, data: Mapping[str, Any] | None = None) -> None:
        await self.log("error", message, logger=logger, data=data)


@contextmanager
def context_scope(ctx: Context) -> Iterator[Context]:
    """Make *ctx* visible to :func:`get_context` for the duration of the block."""
    token = _CURRENT_CONTEXT.set(ctx)
    try:
        yield ctx
    finally:
        _CURRENT_CONTEXT.reset(token)


__all__ = ["Context", "LogSink", "context_scope", "get_context"]
