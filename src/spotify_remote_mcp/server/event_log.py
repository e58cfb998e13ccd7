# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/openmcp-python/LICENSE
# ==============================================================================

"""Per-session outbound event log with resumable delivery.

Every message a channel sends to its client is appended here under a
monotonically increasing sequence number; the decimal sequence doubles as the
SSE event id.  Events are tagged with the stream they belong to: the
standalone GET stream, or the SSE response stream of one POST.

A client that reconnects with ``Last-Event-ID`` receives the retained events
of the same stream strictly after that marker, then live events.  The replay
snapshot and the live registration happen in one synchronous step, so nothing
appended in between can be lost or delivered twice.

The log is bounded.  A marker ``m`` is *known* when
``first_retained - 1 <= m <= last``; anything else (truncated, from the
future, not a number) is handled by :class:`~spotify_remote_mcp.types.ReplayPolicy`.
"""

from __future__ import annotations

from collections import deque
from collections.abc import AsyncIterator
from dataclasses import dataclass
import itertools
import math
from typing import Any

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from .errors import UnknownEventError
from ..types import ReplayPolicy
from ..utils import get_logger


STANDALONE_STREAM = "_standalone"


@dataclass(frozen=True, slots=True)
class Event:
    sequence: int
    stream: str
    message: dict[str, Any]

    @property
    def event_id(self) -> str:
        return str(self.sequence)


class Subscription:
    """Receiving end of a subscriber registered with :class:`EventLog`.

    Iterate it to receive replayed then live events.  Iteration ends when the
    log closes or the subscription is detached.
    """

    def __init__(
        self,
        log: EventLog,
        key: int,
        stream: str,
        receive: MemoryObjectReceiveStream[Event],
        replayed: int,
    ) -> None:
        self._log = log
        self._key = key
        self.stream = stream
        self.replayed = replayed
        self._receive = receive

    def __aiter__(self) -> AsyncIterator[Event]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Event]:
        async with self._receive:
            async for event in self._receive:
                yield event

    def detach(self) -> None:
        self._log._unsubscribe(self._key)
        self._receive.close()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.detach()


class EventLog:
    """Bounded, append-only log feeding any number of live subscribers."""

    def __init__(self, max_events: int = 1000, *, replay_policy: ReplayPolicy = ReplayPolicy.REPLAY_ALL) -> None:
        if max_events <= 0:
            raise ValueError("max_events must be positive")
        self.replay_policy = replay_policy
        self._events: deque[Event] = deque(maxlen=max_events)
        self._sequence = 0
        self._keys = itertools.count(1)
        self._subscribers: dict[int, tuple[str, MemoryObjectSendStream[Event]]] = {}
        self._closed = False
        self._logger = get_logger("spotify_remote_mcp.event_log")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_sequence(self) -> int:
        return self._sequence

    @property
    def first_retained(self) -> int:
        return self._events[0].sequence if self._events else self._sequence + 1

    def __len__(self) -> int:
        return len(self._events)

    def events(self) -> list[Event]:
        return list(self._events)

    def subscriber_count(self, stream: str | None = None) -> int:
        return sum(1 for name, _ in self._subscribers.values() if stream is None or name == stream)

    def is_known(self, marker: str | int | None) -> bool:
        sequence = _parse_marker(marker)
        return sequence is not None and self.first_retained - 1 <= sequence <= self._sequence

    def stream_of(self, marker: str | int) -> str:
        """Return the stream a known marker belongs to.

        A marker just below the retained window no longer has an event to
        look at; it is treated as a standalone stream marker.
        """
        sequence = _parse_marker(marker)
        for event in self._events:
            if event.sequence == sequence:
                return event.stream
        return STANDALONE_STREAM

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def append(self, message: dict[str, Any], *, stream: str = STANDALONE_STREAM) -> Event:
        if self._closed:
            raise RuntimeError("event log is closed")
        self._sequence += 1
        event = Event(sequence=self._sequence, stream=stream, message=message)
        self._events.append(event)

        for key, (name, send) in list(self._subscribers.items()):
            if name != stream:
                continue
            try:
                send.send_nowait(event)
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                self._unsubscribe(key)
        return event

    def replay_after(self, marker: str | int | None, *, stream: str = STANDALONE_STREAM) -> list[Event]:
        """Return retained events of *stream* strictly after *marker*.

        ``None`` means no replay.  Unknown markers follow the replay policy.
        """
        if marker is None:
            return []
        if self.is_known(marker):
            sequence = _parse_marker(marker)
            assert sequence is not None
            return [event for event in self._events if event.sequence > sequence and event.stream == stream]
        if self.replay_policy is ReplayPolicy.REJECT:
            raise UnknownEventError(str(marker))
        self._logger.warning(
            "unknown resume marker; replaying all retained events",
            extra={"event": "stream.replay_all", "marker": str(marker), "retained": len(self._events)},
        )
        return [event for event in self._events if event.stream == stream]

    def subscribe(self, stream: str = STANDALONE_STREAM, *, last_event_id: str | None = None) -> Subscription:
        """Register a live subscriber, pre-loaded with the replay for *last_event_id*."""
        if self._closed:
            raise RuntimeError("event log is closed")
        backlog = self.replay_after(last_event_id, stream=stream)
        send, receive = anyio.create_memory_object_stream(math.inf)
        for event in backlog:
            send.send_nowait(event)
        key = next(self._keys)
        self._subscribers[key] = (stream, send)
        return Subscription(self, key, stream, receive, replayed=len(backlog))

    def close_stream(self, stream: str) -> None:
        """End delivery to every subscriber of *stream*."""
        for key, (name, _) in list(self._subscribers.items()):
            if name == stream:
                self._unsubscribe(key)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for key in list(self._subscribers):
            self._unsubscribe(key)

    def _unsubscribe(self, key: int) -> None:
        entry = self._subscribers.pop(key, None)
        if entry is not None:
            entry[1].close()


def _parse_marker(marker: str | int | None) -> int | None:
    if marker is None:
        return None
    if isinstance(marker, int):
        return marker
    text = marker.strip()
    if not text.isdigit():
        return None
    return int(text)


__all__ = ["STANDALONE_STREAM", "Event", "EventLog", "Subscription"]
