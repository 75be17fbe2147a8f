"""Tracking events and the subscription stream that carries them."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import cast

from ..errors import RunCancelledError, TrackingError
from ..models import RunSnapshot


class EventKind(str, Enum):
    SNAPSHOT = "snapshot"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass(frozen=True, slots=True)
class TrackingEvent:
    """One entry of a tracked run's event stream.

    ``snapshot`` events may repeat; exactly one terminal event ends the stream.
    """

    key: str
    run_id: str
    kind: EventKind
    snapshot: RunSnapshot | None = None
    error: BaseException | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind is not EventKind.SNAPSHOT

    def unwrap(self) -> RunSnapshot:
        """Return the completed snapshot or raise the failure this event carries."""

        if self.kind is EventKind.COMPLETED and self.snapshot is not None:
            return self.snapshot
        if self.kind is EventKind.SNAPSHOT:
            raise TrackingError(f"Event for run {self.run_id} is not terminal")
        if self.error is not None:
            raise self.error
        raise RunCancelledError(self.run_id)


_CLOSED = object()


class RunSubscription:
    """Async stream of :class:`TrackingEvent` for one tracked key.

    Each event is handed to one consumer. Use :meth:`Tracker.subscribe` for
    another independent stream; concurrent readers of the same subscription
    all stop once the terminal event has been taken.
    """

    def __init__(self, key: str, run_id: str) -> None:
        self.key = key
        self.run_id = run_id
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._exhausted = False
        self._terminal: TrackingEvent | None = None
        self._latest: RunSnapshot | None = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def latest_snapshot(self) -> RunSnapshot | None:
        return self._latest

    @property
    def terminal_event(self) -> TrackingEvent | None:
        return self._terminal

    def _deliver(self, event: TrackingEvent) -> None:
        if self._closed or self._terminal is not None:
            return
        if event.snapshot is not None:
            self._latest = event.snapshot
        if event.is_terminal:
            self._terminal = event
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Stop receiving events; later deliveries are dropped."""

        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "RunSubscription":
        return self

    async def __anext__(self) -> TrackingEvent:
        if self._exhausted:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._finish_stream()
            raise StopAsyncIteration
        event = cast(TrackingEvent, item)
        if event.is_terminal:
            self._finish_stream()
        return event

    def _finish_stream(self) -> None:
        self._exhausted = True
        # Wake any other reader still waiting on the queue.
        self._queue.put_nowait(_CLOSED)

    async def result(self) -> RunSnapshot:
        """Wait for the terminal event and unwrap it."""

        async for _event in self:
            pass
        if self._terminal is None:
            raise RunCancelledError(self.run_id)
        return self._terminal.unwrap()


__all__ = ["EventKind", "RunSubscription", "TrackingEvent"]
