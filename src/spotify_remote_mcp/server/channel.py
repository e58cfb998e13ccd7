# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Per-session channel.

A :class:`Channel` owns everything one client conversation needs: the bound
tool set, the outbound :class:`~spotify_remote_mcp.server.event_log.EventLog`,
the JSON-RPC dispatch for the methods this server implements and the lifecycle
state machine::

    initializing -> active -> closing -> closed
    initializing -> closing                       (failed bootstrap)

The channel is connected to its tools before it has a session id.  The id is
minted while the ``initialize`` request is handled, after its parameters
validate, and published by moving to ``active``: the listener passed to the
constructor (the session store) is told synchronously, before the initialize
response leaves the channel.  A client can therefore never hold an id that the
store does not know yet.  If publication fails the id is dropped and the
initialize request gets an internal error instead.

Failures inside a tool are isolated to the call that raised them: the client
receives one ``CallToolResult`` flagged ``isError`` and the session stays
usable.  Closing is idempotent and lets in-flight requests drain for a grace
period before the remaining work is cancelled.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import Any, Protocol
import uuid

import anyio
from pydantic import ValidationError

from .adapters import error_result
from .errors import ChannelClosedError, SessionConflictError, StreamConflictError
from .event_log import STANDALONE_STREAM, EventLog, Subscription
from .registry import BoundTool
from .. import types
from ..context import Context, context_scope
from ..types import ChannelState, ReplayPolicy
from ..utils import get_logger


_TRANSITIONS: dict[ChannelState, frozenset[ChannelState]] = {
    ChannelState.INITIALIZING: frozenset({ChannelState.ACTIVE, ChannelState.CLOSING}),
    ChannelState.ACTIVE: frozenset({ChannelState.CLOSING}),
    ChannelState.CLOSING: frozenset({ChannelState.CLOSED}),
    ChannelState.CLOSED: frozenset(),
}

# RFC 5424 severities, lowest first.
_LOG_LEVELS: tuple[str, ...] = ("debug", "info", "notice", "warning", "error", "critical", "alert", "emergency")


class ChannelListener(Protocol):
    """Receives every state transition of a channel as it happens."""

    def channel_transitioned(self, channel: Channel, previous: ChannelState, current: ChannelState) -> None: ...


def generate_session_id() -> str:
    return str(uuid.uuid4())


class Channel:
    """State machine and JSON-RPC dispatcher for one session."""

    def __init__(
        self,
        *,
        server_info: types.Implementation,
        listener: ChannelListener | None = None,
        instructions: str | None = None,
        event_log_size: int = 1000,
        replay_policy: ReplayPolicy = ReplayPolicy.REPLAY_ALL,
        tool_timeout: float | None = None,
        close_grace_period: float = 5.0,
        session_id_factory: Callable[[], str] = generate_session_id,
    ) -> None:
        self._server_info = server_info
        self._listener = listener
        self._instructions = instructions
        self._tool_timeout = tool_timeout
        self._close_grace_period = close_grace_period
        self._session_id_factory = session_id_factory

        self._state = ChannelState.INITIALIZING
        self._session_id: str | None = None
        self._tools: dict[str, BoundTool] = {}
        self._protocol_version: str | None = None
        self._client_info: types.Implementation | None = None
        self._client_initialized = False
        self._log_level = "info"

        self._in_flight = 0
        self._drained: anyio.Event | None = None
        self._cancel_scopes: dict[types.RequestId, anyio.CancelScope] = {}

        self.event_log = EventLog(event_log_size, replay_policy=replay_policy)
        self._logger = get_logger("spotify_remote_mcp.channel")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def session_id(self) -> str | None:
        return self._session_id

    @property
    def protocol_version(self) -> str | None:
        return self._protocol_version

    @property
    def client_info(self) -> types.Implementation | None:
        return self._client_info

    @property
    def client_initialized(self) -> bool:
        return self._client_initialized

    @property
    def log_level(self) -> str:
        return self._log_level

    @property
    def tools(self) -> list[BoundTool]:
        return list(self._tools.values())

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def has_stream(self) -> bool:
        return self.event_log.subscriber_count(STANDALONE_STREAM) > 0

    @property
    def busy(self) -> bool:
        return self._in_flight > 0 or self.event_log.subscriber_count() > 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def bind_tools(self, tools: Iterable[BoundTool]) -> None:
        if self._state is not ChannelState.INITIALIZING:
            raise RuntimeError(f"tools can only be bound while initializing (state is {self._state.value})")
        self._tools = {bound.name: bound for bound in tools}

    def _transition(self, target: ChannelState) -> None:
        previous = self._state
        if target not in _TRANSITIONS[previous]:
            raise RuntimeError(f"invalid channel transition {previous.value} -> {target.value}")
        self._state = target
        if self._listener is None:
            return
        try:
            self._listener.channel_transitioned(self, previous, target)
        except Exception:
            if target is ChannelState.ACTIVE:
                self._state = previous
            raise

    async def close(self) -> bool:
        """Drive the channel to ``closed``.

        Returns ``True`` for the call that performed the close and ``False``
        for every later (or concurrent) call.
        """
        if self._state in (ChannelState.CLOSING, ChannelState.CLOSED):
            return False
        self._transition(ChannelState.CLOSING)
        try:
            if self._in_flight:
                self._drained = anyio.Event()
                with anyio.move_on_after(self._close_grace_period, shield=True):
                    await self._drained.wait()
            for scope in list(self._cancel_scopes.values()):
                scope.cancel()
        finally:
            self.event_log.close()
            self._tools.clear()
            self._transition(ChannelState.CLOSED)
        return True

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    def open_stream(self, last_event_id: str | None = None) -> Subscription:
        """Attach a GET stream, replaying from *last_event_id* when given.

        A marker that belongs to the SSE response of an earlier POST resumes
        that stream; anything else resumes (or opens) the standalone stream,
        of which there is at most one.
        """
        self._ensure_open()
        stream = STANDALONE_STREAM
        if last_event_id is not None and self.event_log.is_known(last_event_id):
            stream = self.event_log.stream_of(last_event_id)
        if stream == STANDALONE_STREAM and self.has_stream:
            raise StreamConflictError()
        subscription = self.event_log.subscribe(stream, last_event_id=last_event_id)
        self._logger.info(
            "stream resumed" if last_event_id is not None else "stream opened",
            extra={
                "event": "stream.resumed" if last_event_id is not None else "stream.opened",
                "session_id": self._session_id,
                "replayed": subscription.replayed,
            },
        )
        return subscription

    def open_post_stream(self, stream: str) -> Subscription:
        """Subscribe to the SSE response of one POST before its messages run."""
        self._ensure_open(allow_initializing=True)
        return self.event_log.subscribe(stream)

    def notify(self, method: str, params: dict[str, Any] | None = None, *, stream: str = STANDALONE_STREAM) -> None:
        """Queue a server notification for delivery."""
        message: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        if not self.event_log.closed:
            self.event_log.append(message, stream=stream)

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------

    async def handle_post(
        self,
        messages: Sequence[types.JSONRPCMessage],
        *,
        auth: Any = None,
        stream: str | None = None,
    ) -> list[dict[str, Any]]:
        """Process the messages of one POST body and return the responses.

        Notifications and client responses produce nothing.  When *stream* is
        set the responses are also appended to the event log under that stream,
        which is closed once every response has been written.
        """
        self._ensure_open(allow_initializing=True)
        self._in_flight += 1
        try:
            responses: list[dict[str, Any]] = []
            for message in messages:
                root = message.root
                if isinstance(root, types.JSONRPCRequest):
                    response = await self._handle_request(root, auth, stream)
                    responses.append(response)
                    if stream is not None and not self.event_log.closed:
                        self.event_log.append(response, stream=stream)
                elif isinstance(root, types.JSONRPCNotification):
                    self._handle_notification(root)
                else:
                    self._logger.debug(
                        "ignoring client response", extra={"event": "channel.response", "session_id": self._session_id}
                    )
            return responses
        finally:
            if stream is not None:
                self.event_log.close_stream(stream)
            self._in_flight -= 1
            if self._in_flight == 0 and self._drained is not None:
                self._drained.set()

    def _ensure_open(self, *, allow_initializing: bool = False) -> None:
        if self._state is ChannelState.ACTIVE:
            return
        if allow_initializing and self._state is ChannelState.INITIALIZING:
            return
        raise ChannelClosedError()

    async def _handle_request(self, request: types.JSONRPCRequest, auth: Any, stream: str | None) -> dict[str, Any]:
        params = request.params or {}
        try:
            if request.method == "initialize":
                return self._initialize(request.id, params)
            if request.method == "ping":
                return _result(request.id, types.EmptyResult())
            if self._state is ChannelState.INITIALIZING:
                return _error(request.id, types.INVALID_REQUEST, "Session is not initialized")
            if request.method == "tools/list":
                return _result(request.id, types.ListToolsResult(tools=[bound.definition for bound in self.tools]))
            if request.method == "tools/call":
                call = types.CallToolRequestParams.model_validate(params)
                result = await self._call_tool(request.id, call, auth, stream)
                return _result(request.id, result)
            if request.method == "logging/setLevel":
                level = types.SetLevelRequestParams.model_validate(params).level
                self._log_level = level
                return _result(request.id, types.EmptyResult())
            return _error(request.id, types.METHOD_NOT_FOUND, f"Method not found: {request.method}")
        except ValidationError:
            return _error(request.id, types.INVALID_PARAMS, f"Invalid params for {request.method}")
        except Exception:
            self._logger.exception(
                "request failed",
                extra={"event": "channel.request_failed", "session_id": self._session_id, "method": request.method},
            )
            return _error(request.id, types.INTERNAL_ERROR, "Internal error")

    def _initialize(self, request_id: types.RequestId, params: dict[str, Any]) -> dict[str, Any]:
        if self._state is not ChannelState.INITIALIZING or self._session_id is not None:
            return _error(request_id, types.INVALID_REQUEST, "Session is already initialized")

        init = types.InitializeRequestParams.model_validate(params)
        requested = str(init.protocolVersion)
        version = requested if requested in types.SUPPORTED_PROTOCOL_VERSIONS else types.LATEST_PROTOCOL_VERSION

        result = types.InitializeResult(
            protocolVersion=version,
            capabilities=types.ServerCapabilities(
                tools=types.ToolsCapability(listChanged=False),
                logging=types.LoggingCapability(),
            ),
            serverInfo=self._server_info,
            instructions=self._instructions,
        )
        response = _result(request_id, result)

        # Publication is the last step; nothing after it may fail.
        self._session_id = self._session_id_factory()
        try:
            self._transition(ChannelState.ACTIVE)
        except SessionConflictError:
            self._logger.error(
                "could not publish session id",
                extra={"event": "session.rejected", "session_id": self._session_id},
            )
            self._session_id = None
            return _error(request_id, types.INTERNAL_ERROR, "Internal error")

        self._protocol_version = version
        self._client_info = init.clientInfo
        return response


    def _handle_notification(self, notification: types.JSONRPCNotification) -> None:
        if notification.method == "notifications/initialized":
            self._client_initialized = True
        elif notification.method == "notifications/cancelled":
            request_id = (notification.params or {}).get("requestId")
            scope = self._cancel_scopes.get(request_id) if request_id is not None else None
            if scope is not None:
                scope.cancel()
        else:
            self._logger.debug(
                "unhandled notification",
                extra={"event": "channel.notification", "session_id": self._session_id, "method": notification.method},
            )

    async def _call_tool(
        self,
        request_id: types.RequestId,
        call: types.CallToolRequestParams,
        auth: Any,
        stream: str | None,
    ) -> types.CallToolResult:
        bound = self._tools.get(call.name)
        if bound is None:
            return error_result(f"Unknown tool: {call.name}")

        target = STANDALONE_STREAM if stream is None else stream
        ctx = Context(
            request_id=request_id,
            session_id=self._session_id,
            auth=auth,
            _sink=lambda level, data, logger: self._emit_log(level, data, logger, target),
        )
        scope = anyio.CancelScope()
        self._cancel_scopes[request_id] = scope
        try:
            with scope, context_scope(ctx):
                with anyio.fail_after(self._tool_timeout):
                    return await bound.invoke(dict(call.arguments or {}), ctx)
            return error_result(f"Tool call {call.name} was cancelled")
        except TimeoutError:
            self._logger.warning(
                "tool timed out",
                extra={"event": "tool.failed", "session_id": self._session_id, "tool": call.name, "reason": "timeout"},
            )
            return error_result(f"Tool {call.name} timed out after {self._tool_timeout} seconds")
        except Exception as exc:
            self._logger.warning(
                "tool raised",
                exc_info=True,
                extra={"event": "tool.failed", "session_id": self._session_id, "tool": call.name},
            )
            return error_result(str(exc) or type(exc).__name__)
        finally:
            self._cancel_scopes.pop(request_id, None)

    def _emit_log(self, level: str, data: Any, logger: str | None, stream: str) -> None:
        if _LOG_LEVELS.index(level) < _LOG_LEVELS.index(self._log_level):
            return
        params: dict[str, Any] = {"level": level, "data": data}
        if logger is not None:
            params["logger"] = logger
        self.notify("notifications/message", params, stream=stream)


def _result(request_id: types.RequestId, result: Any) -> dict[str, Any]:
    payload = result.model_dump(by_alias=True, mode="json", exclude_none=True)
    return {"jsonrpc": "2.0", "id": request_id, "result": payload}


def _error(request_id: types.RequestId, code: int, message: str) -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}


__all__ = ["Channel", "ChannelListener", "generate_session_id"]
