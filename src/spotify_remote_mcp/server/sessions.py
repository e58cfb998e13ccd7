# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""In-memory session store.

The store maps a published session id to the :class:`Session` entry owning its
channel.  It is the authority for "does this session exist": ids only enter
the map when their channel reports the ``active`` transition and leave it when
the channel reports ``closed`` (or the router discards them after a failed
termination).  All mutations are synchronous, so on a single event loop a
lookup never observes a half-inserted or half-removed entry.

Closed ids are remembered in a bounded retirement list and can never be
published again, which keeps a stale client from resurrecting a session even
if a generator were ever to repeat itself.

Eviction policy: sessions never expire on their own.  When the router is
configured with an idle timeout it asks :meth:`SessionStore.idle_sessions`
for candidates and closes them; sessions with an open event stream or work in
flight are never idle.
"""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Iterator
from dataclasses import dataclass, field
import time
from typing import TYPE_CHECKING

import anyio

from .errors import SessionConflictError
from ..types import ChannelState, SessionState
from ..utils import get_logger


if TYPE_CHECKING:
    from .channel import Channel


DEFAULT_RETIRED_LIMIT = 10_000


@dataclass(slots=True)
class Session:
    """A published session and the channel that owns it."""

    session_id: str
    channel: Channel
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.monotonic)

    @property
    def state(self) -> SessionState:
        channel_state = self.channel.state
        if channel_state is ChannelState.INITIALIZING:
            return SessionState.PENDING
        if channel_state is ChannelState.ACTIVE:
            return SessionState.ACTIVE
        return SessionState.CLOSED

    def touch(self) -> None:
        self.last_activity = time.monotonic()


class SessionStore:
    """Session id → :class:`Session` map, driven by channel transitions."""

    def __init__(self, *, retired_limit: int = DEFAULT_RETIRED_LIMIT) -> None:
        self._sessions: dict[str, Session] = {}
        self._retired: OrderedDict[str, None] = OrderedDict()
        self._retired_limit = retired_limit
        self._logger = get_logger("spotify_remote_mcp.sessions")

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __iter__(self) -> Iterator[Session]:
        return iter(list(self._sessions.values()))

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def is_retired(self, session_id: str) -> bool:
        return session_id in self._retired

    # ------------------------------------------------------------------
    # Channel listener
    # ------------------------------------------------------------------

    def channel_transitioned(self, channel: Channel, previous: ChannelState, current: ChannelState) -> None:
        if current is ChannelState.ACTIVE:
            self.publish(channel)
        elif current is ChannelState.CLOSED and channel.session_id is not None:
            self.discard(channel.session_id)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def publish(self, channel: Channel) -> Session:
        session_id = channel.session_id
        if session_id is None:
            raise ValueError("cannot publish a channel without a session id")
        if session_id in self._sessions or session_id in self._retired:
            raise SessionConflictError(session_id)
        session = Session(session_id=session_id, channel=channel)
        self._sessions[session_id] = session
        self._logger.info(
            "session created",
            extra={"event": "session.created", "session_id": session_id, "sessions": len(self._sessions)},
        )
        return session

    def discard(self, session_id: str) -> bool:
        """Remove *session_id* and retire it; returns ``False`` if it was not live."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        self._retire(session_id)
        self._logger.info(
            "session closed",
            extra={
                "event": "session.closed",
                "session_id": session_id,
                "duration": round(time.time() - session.created_at, 3),
                "sessions": len(self._sessions),
            },
        )
        return True

    def touch(self, session_id: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.touch()

    def idle_sessions(self, timeout: float, *, now: float | None = None) -> list[Session]:
        cutoff = (time.monotonic() if now is None else now) - timeout
        return [
            session
            for session in self._sessions.values()
            if session.last_activity <= cutoff and not session.channel.busy
        ]

    async def close_all(self) -> None:
        """Close every live session concurrently."""
        async with anyio.create_task_group() as tg:
            for session in list(self._sessions.values()):
                tg.start_soon(self._close_session, session)

    async def _close_session(self, session: Session) -> None:
        try:
            await session.channel.close()
        finally:
            self.discard(session.session_id)

    def _retire(self, session_id: str) -> None:
        self._retired[session_id] = None
        self._retired.move_to_end(session_id)
        while len(self._retired) > self._retired_limit:
            self._retired.popitem(last=False)


__all__ = ["DEFAULT_RETIRED_LIMIT", "Session", "SessionStore"]
