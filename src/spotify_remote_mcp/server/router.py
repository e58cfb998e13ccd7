# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Session-addressed request router for ``/mcp``.

Every request is classified before anything is created:

1. a known, live ``Mcp-Session-Id`` → the body goes to that session's channel;
2. no session id and a lone ``initialize`` request → a new channel is built,
   the tool registry is materialized onto it and the initialize body is handed
   to it; the channel mints and publishes the session id itself;
3. a session id the store does not know → ``400`` with the session error
   envelope and no side effects;
4. no session id and anything else → ``400``.

``GET`` opens (or resumes, with ``Last-Event-ID``) the server-to-client event
stream of a session and ``DELETE`` terminates it.  Both answer ``404`` for a
session that does not exist.  The router never calls tools itself; everything
goes through the channel so ordering and replay stay the channel's business.

Expected rejections are :class:`~spotify_remote_mcp.server.errors.ProtocolError`
subclasses and map to the JSON-RPC error envelope.  Anything else is logged and
answered with a generic ``500``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
import json
import re
from typing import Any
import uuid

import anyio
from pydantic import ValidationError
from sse_starlette import EventSourceResponse
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import Receive, Scope, Send

from .authorization import AUTH_SCOPE_KEY
from .channel import Channel, generate_session_id
from .config import ServerConfig
from .errors import MissingSessionError, ProtocolError, SessionNotFoundError
from .event_log import Subscription
from .registry import ToolRegistry
from .sessions import Session, SessionStore
from .. import types
from ..types import ChannelState
from ..utils import get_logger


_VISIBLE_ASCII = re.compile(r"^[\x21-\x7E]+$")
_ALLOWED_METHODS = "GET, POST, DELETE"


class RequestRouter:
    """ASGI entry point that maps ``/mcp`` requests onto session channels."""

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        config: ServerConfig | None = None,
        server_info: types.Implementation | None = None,
        instructions: str | None = None,
        store: SessionStore | None = None,
        session_id_factory: Callable[[], str] = generate_session_id,
    ) -> None:
        self.registry = registry
        self.config = config or ServerConfig()
        self.store = store or SessionStore()
        self._server_info = server_info or types.Implementation(name="spotify-unofficial", version="0.1.0")
        self._instructions = instructions
        self._session_id_factory = session_id_factory
        self._running = False
        self._logger = get_logger("spotify_remote_mcp.router")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """Own the background work of the router for the life of the app.

        Runs the idle-session sweeper when an idle timeout is configured and
        closes every session on the way out.
        """
        if self._running:
            raise RuntimeError("RequestRouter.run() is already active")
        self._running = True
        try:
            async with anyio.create_task_group() as tg:
                if self.config.session_idle_timeout is not None:
                    tg.start_soon(self._sweep_idle_sessions, self.config.session_idle_timeout)
                try:
                    yield
                finally:
                    with anyio.CancelScope(shield=True):
                        await self.store.close_all()
                    tg.cancel_scope.cancel()
        finally:
            self._running = False

    async def evict_idle(self, timeout: float, *, now: float | None = None) -> list[str]:
        evicted: list[str] = []
        for session in self.store.idle_sessions(timeout, now=now):
            self._logger.info(
                "evicting idle session",
                extra={"event": "session.evicted", "session_id": session.session_id, "idle_timeout": timeout},
            )
            try:
                await session.channel.close()
            finally:
                self.store.discard(session.session_id)
            evicted.append(session.session_id)
        return evicted

    async def _sweep_idle_sessions(self, timeout: float) -> None:
        while True:
            await anyio.sleep(min(self.config.sweep_interval, timeout))
            await self.evict_idle(timeout)

    # ------------------------------------------------------------------
    # ASGI
    # ------------------------------------------------------------------

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        try:
            response = await self._dispatch(request)
        except ProtocolError as exc:
            self._logger.info(
                "request rejected",
                extra={
                    "event": "session.rejected" if isinstance(exc, SessionNotFoundError) else "request.rejected",
                    "method": request.method,
                    "status": exc.status_code,
                    "reason": exc.message,
                },
            )
            response = JSONResponse(exc.to_envelope(), status_code=exc.status_code)
        except Exception:
            self._logger.exception(
                "error handling MCP request", extra={"event": "request.failed", "method": request.method}
            )
            response = _internal_error()
        await response(scope, receive, send)

    async def _dispatch(self, request: Request) -> Response:
        if request.method == "POST":
            return await self._handle_post(request)
        if request.method == "GET":
            return await self._handle_get(request)
        if request.method == "DELETE":
            return await self._handle_delete(request)
        envelope = ProtocolError("Method Not Allowed", status_code=405).to_envelope()
        return JSONResponse(envelope, status_code=405, headers={"Allow": _ALLOWED_METHODS})

    # ------------------------------------------------------------------
    # POST
    # ------------------------------------------------------------------

    async def _handle_post(self, request: Request) -> Response:
        content_type = request.headers.get("content-type", "")
        if not content_type.lower().startswith(types.CONTENT_TYPE_JSON):
            raise ProtocolError("Unsupported Media Type: Content-Type must be application/json", status_code=415)

        session_id = request.headers.get(types.MCP_SESSION_ID_HEADER)
        session = None
        if session_id is not None:
            session = self._resolve(session_id, SessionNotFoundError())
            self._check_protocol_version(request)

        messages, is_batch = _parse_body(await request.body())
        auth = request.scope.get(AUTH_SCOPE_KEY)

        if session is None:
            if len(messages) == 1 and _is_initialize(messages[0]):
                return await self._create_session(messages[0], auth)
            if any(_is_initialize(message) for message in messages):
                raise ProtocolError(
                    "Invalid Request: initialize must be sent on its own", code=types.INVALID_REQUEST
                )
            raise MissingSessionError()

        channel = session.channel
        headers = {types.MCP_SESSION_ID_HEADER: session.session_id}
        if not any(isinstance(message.root, types.JSONRPCRequest) for message in messages):
            await channel.handle_post(messages, auth=auth)
            return Response(status_code=202, headers=headers)

        if self.config.json_response:
            responses = await channel.handle_post(messages, auth=auth)
            return JSONResponse(responses if is_batch else responses[0], headers=headers)

        stream = _new_stream_name()
        subscription = channel.open_post_stream(stream)

        async def process() -> None:
            try:
                await channel.handle_post(messages, auth=auth, stream=stream)
            except ProtocolError:
                subscription.detach()
            except Exception:
                self._logger.exception(
                    "error handling MCP request", extra={"event": "request.failed", "session_id": session.session_id}
                )
                subscription.detach()

        return EventSourceResponse(_sse_events(subscription), data_sender_callable=process, headers=headers)

    async def _create_session(self, message: types.JSONRPCMessage, auth: Any) -> Response:
        channel = Channel(
            server_info=self._server_info,
            listener=self.store,
            instructions=self._instructions,
            event_log_size=self.config.event_log_size,
            replay_policy=self.config.replay_policy,
            tool_timeout=self.config.tool_timeout,
            close_grace_period=self.config.close_grace_period,
            session_id_factory=self._session_id_factory,
        )
        try:
            self.registry.materialize(channel)
        except Exception:
            self._logger.exception("could not bind tools to new session", extra={"event": "session.rejected"})
            await channel.close()
            return _internal_error()

        stream = None if self.config.json_response else _new_stream_name()
        subscription = None if stream is None else channel.open_post_stream(stream)
        try:
            responses = await channel.handle_post([message], auth=auth, stream=stream)
        except BaseException:
            if subscription is not None:
                subscription.detach()
            with anyio.CancelScope(shield=True):
                await channel.close()
            raise

        response = responses[0]
        if channel.state is not ChannelState.ACTIVE:
            if subscription is not None:
                subscription.detach()
            await channel.close()
            failed_internally = response.get("error", {}).get("code") == types.INTERNAL_ERROR
            return JSONResponse(response, status_code=500 if failed_internally else 400)

        assert channel.session_id is not None
        headers = {types.MCP_SESSION_ID_HEADER: channel.session_id}
        if subscription is None:
            return JSONResponse(response, headers=headers)
        return EventSourceResponse(_sse_events(subscription), headers=headers)

    # ------------------------------------------------------------------
    # GET / DELETE
    # ------------------------------------------------------------------

    async def _handle_get(self, request: Request) -> Response:
        if types.CONTENT_TYPE_SSE not in request.headers.get("accept", ""):
            raise ProtocolError("Not Acceptable: Client must accept text/event-stream", status_code=406)
        session = self._resolve(self._required_session_id(request), _session_not_found())
        self._check_protocol_version(request)

        last_event_id = request.headers.get(types.LAST_EVENT_ID_HEADER)
        subscription = session.channel.open_stream(last_event_id)
        headers = {types.MCP_SESSION_ID_HEADER: session.session_id}
        return EventSourceResponse(_sse_events(subscription), headers=headers)

    async def _handle_delete(self, request: Request) -> Response:
        session = self._resolve(self._required_session_id(request), _session_not_found())
        self._check_protocol_version(request)
        try:
            await session.channel.close()
        finally:
            self.store.discard(session.session_id)
        self._logger.info("session terminated", extra={"event": "session.terminated", "session_id": session.session_id})
        return Response(status_code=200)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve(self, session_id: str, not_found: ProtocolError) -> Session:
        if not _VISIBLE_ASCII.match(session_id):
            raise not_found
        session = self.store.get(session_id)
        if session is None or session.channel.state is not ChannelState.ACTIVE:
            raise not_found
        session.touch()
        return session

    def _required_session_id(self, request: Request) -> str:
        session_id = request.headers.get(types.MCP_SESSION_ID_HEADER)
        if session_id is None:
            raise MissingSessionError("Bad Request: Mcp-Session-Id header is required")
        return session_id

    def _check_protocol_version(self, request: Request) -> None:
        version = request.headers.get(types.MCP_PROTOCOL_VERSION_HEADER)
        if version is not None and version not in types.SUPPORTED_PROTOCOL_VERSIONS:
            supported = ", ".join(types.SUPPORTED_PROTOCOL_VERSIONS)
            raise ProtocolError(f"Bad Request: Unsupported protocol version: {version}. Supported versions: {supported}")


def _session_not_found() -> SessionNotFoundError:
    return SessionNotFoundError("Session not found", status_code=404)


def _internal_error() -> JSONResponse:
    envelope = ProtocolError("Internal server error", code=types.INTERNAL_ERROR).to_envelope()
    return JSONResponse(envelope, status_code=500)


def _parse_body(body: bytes) -> tuple[list[types.JSONRPCMessage], bool]:
    try:
        raw = json.loads(body)
    except ValueError as exc:
        raise ProtocolError("Parse error: Invalid JSON", code=types.PARSE_ERROR) from exc

    is_batch = isinstance(raw, list)
    items = raw if is_batch else [raw]
    if not items:
        raise ProtocolError("Invalid Request: empty batch", code=types.INVALID_REQUEST)
    try:
        return [types.JSONRPCMessage.model_validate(item) for item in items], is_batch
    except ValidationError as exc:
        raise ProtocolError("Invalid Request: body is not a JSON-RPC message", code=types.INVALID_REQUEST) from exc


def _is_initialize(message: types.JSONRPCMessage) -> bool:
    return isinstance(message.root, types.JSONRPCRequest) and message.root.method == "initialize"


def _new_stream_name() -> str:
    return f"post-{uuid.uuid4().hex}"


async def _sse_events(subscription: Subscription) -> AsyncIterator[dict[str, str]]:
    async with subscription:
        async for event in subscription:
            yield {"id": event.event_id, "event": "message", "data": json.dumps(event.message)}


__all__ = ["RequestRouter"]
