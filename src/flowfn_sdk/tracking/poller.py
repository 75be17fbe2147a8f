"""Per-run polling state machine."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Awaitable, Callable

from ..client.fetcher import StatusFetcher
from ..errors import FetchError, RunCancelledError, RunTimeoutError, TrackingError
from ..models import PollOptions, RunSnapshot
from .events import EventKind, TrackingEvent

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
EventCallback = Callable[[TrackingEvent], None]


class LoopState(str, Enum):
    INITIAL = "initial"
    WAITING = "waiting"
    QUERYING = "querying"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"
    ERRORED = "errored"
    CANCELLED = "cancelled"


class PollLoop:
    """Drive one run to a terminal outcome on a fixed cadence and deadline.

    The loop waits one interval before its first query, checks the deadline
    before every query and treats a not-found response as a run that is not
    visible yet. Any other fetch failure ends the loop. Cancelling the task
    running :meth:`run` stops the loop while it waits or queries; a query that
    is already in flight finishes in the background and its result is dropped.
    """

    def __init__(
        self,
        key: str,
        run_id: str,
        fetcher: StatusFetcher,
        options: PollOptions | None = None,
        *,
        on_event: EventCallback | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._key = key
        self._run_id = run_id
        self._fetcher = fetcher
        self._options = options or PollOptions()
        self._on_event = on_event
        self._clock = clock
        self._sleep = sleep
        self._state = LoopState.INITIAL
        self._started_at: float | None = None
        self._fetch_count = 0

    @property
    def key(self) -> str:
        return self._key

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def options(self) -> PollOptions:
        return self._options

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def fetch_count(self) -> int:
        return self._fetch_count

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    def cancelled_event(self) -> TrackingEvent:
        return TrackingEvent(
            key=self._key,
            run_id=self._run_id,
            kind=EventKind.CANCELLED,
            error=RunCancelledError(self._run_id),
        )

    async def run(self) -> TrackingEvent:
        """Poll until the run ends and return the terminal event."""

        if self._state is not LoopState.INITIAL:
            raise TrackingError(f"Poll loop for run {self._run_id} has already been started")

        self._started_at = self._clock()
        logger.debug(
            "Started polling run",
            extra={
                "key": self._key,
                "run_id": self._run_id,
                "poll_interval_seconds": self._options.poll_interval_seconds,
                "max_timeout_seconds": self._options.max_timeout_seconds,
            },
        )
        try:
            outcome = await self._poll()
        except asyncio.CancelledError:
            self._state = LoopState.CANCELLED
            logger.info(
                "Polling cancelled",
                extra={"key": self._key, "run_id": self._run_id, "fetches": self._fetch_count},
            )
            raise

        logger.info(
            "Polling finished",
            extra={
                "key": self._key,
                "run_id": self._run_id,
                "outcome": outcome.kind.value,
                "fetches": self._fetch_count,
                "elapsed_seconds": round(self.elapsed(), 3),
            },
        )
        return outcome

    async def _poll(self) -> TrackingEvent:
        await self._wait()
        while True:
            if self.elapsed() >= self._options.max_timeout_seconds:
                self._state = LoopState.TIMED_OUT
                return self._terminal(
                    EventKind.TIMED_OUT,
                    error=RunTimeoutError(self._run_id, self._options.max_timeout_seconds),
                )

            try:
                snapshot = await self._query()
            except FetchError as exc:
                if exc.is_transient:
                    logger.debug(
                        "Run not visible yet; retrying",
                        extra={"key": self._key, "run_id": self._run_id},
                    )
                    await self._wait()
                    continue
                self._state = LoopState.ERRORED
                logger.warning(
                    "Status fetch failed",
                    extra={
                        "key": self._key,
                        "run_id": self._run_id,
                        "kind": exc.kind.value,
                        "status_code": exc.status_code,
                    },
                )
                return self._terminal(EventKind.ERRORED, error=exc)
            except Exception as exc:
                self._state = LoopState.ERRORED
                logger.exception(
                    "Unexpected error while fetching run status",
                    extra={"key": self._key, "run_id": self._run_id},
                )
                return self._terminal(EventKind.ERRORED, error=exc)

            self._emit(
                TrackingEvent(
                    key=self._key,
                    run_id=self._run_id,
                    kind=EventKind.SNAPSHOT,
                    snapshot=snapshot,
                )
            )
            if snapshot.state.is_active:
                await self._wait()
                continue

            if not snapshot.state.is_complete:
                # Unrecognised and non-standard states end polling as-is.
                logger.info(
                    "Run reported a non-standard terminal state",
                    extra={
                        "key": self._key,
                        "run_id": self._run_id,
                        "state": snapshot.raw_state or snapshot.state.value,
                    },
                )
            self._state = LoopState.COMPLETED
            return self._terminal(EventKind.COMPLETED, snapshot=snapshot)

    async def _wait(self) -> None:
        self._state = LoopState.WAITING
        await self._sleep(self._options.poll_interval_seconds)

    async def _query(self) -> RunSnapshot:
        self._state = LoopState.QUERYING
        self._fetch_count += 1
        pending = asyncio.ensure_future(self._fetcher.fetch_status(self._run_id))
        try:
            return await asyncio.shield(pending)
        except asyncio.CancelledError:
            pending.add_done_callback(self._discard_abandoned)
            raise

    def _discard_abandoned(self, future: asyncio.Future) -> None:
        error = None if future.cancelled() else future.exception()
        logger.debug(
            "Discarded status query finished after cancellation",
            extra={"key": self._key, "run_id": self._run_id, "error": repr(error) if error else None},
        )

    def _emit(self, event: TrackingEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)

    def _terminal(
        self,
        kind: EventKind,
        *,
        snapshot: RunSnapshot | None = None,
        error: BaseException | None = None,
    ) -> TrackingEvent:
        return TrackingEvent(
            key=self._key, run_id=self._run_id, kind=kind, snapshot=snapshot, error=error
        )


async def await_run(
    fetcher: StatusFetcher,
    run_id: str,
    options: PollOptions | None = None,
    *,
    clock: Clock = time.monotonic,
    sleep: Sleep = asyncio.sleep,
) -> RunSnapshot:
    """Poll a single run without a tracker.

    Returns the terminal snapshot, or raises :class:`RunTimeoutError` or the
    fatal :class:`FetchError`.
    """

    loop = PollLoop(run_id, run_id, fetcher, options, clock=clock, sleep=sleep)
    outcome = await loop.run()
    return outcome.unwrap()


__all__ = ["LoopState", "PollLoop", "await_run"]
