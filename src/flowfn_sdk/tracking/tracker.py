"""Multiplexer that keeps at most one poll loop per tracking key."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from functools import partial

from ..client.fetcher import StatusFetcher
from ..config import DEFAULT_REGISTRY_PREFIX
from ..errors import TrackingError
from ..models import PollOptions
from ..storage.registry import RunRegistry
from .events import RunSubscription, TrackingEvent
from .poller import Clock, PollLoop, Sleep

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _TrackedRun:
    loop: PollLoop
    subscribers: list[RunSubscription] = field(default_factory=list)
    task: asyncio.Task | None = None
    finished: bool = False


class Tracker:
    """Track workflow runs by key until each reaches a terminal outcome.

    Every ``track`` call persists ``key -> run_id`` in the registry before its
    loop starts, and the entry is removed once the loop ends, so entries left
    behind by a crashed process can be picked up again with :meth:`resume`.
    """

    def __init__(
        self,
        fetcher: StatusFetcher,
        registry: RunRegistry,
        *,
        options: PollOptions | None = None,
        key_prefix: str = DEFAULT_REGISTRY_PREFIX,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._registry = registry
        self._options = options or PollOptions()
        self._prefix = key_prefix
        self._clock = clock
        self._sleep = sleep
        self._runs: dict[str, _TrackedRun] = {}
        self._lock = asyncio.Lock()

    @property
    def options(self) -> PollOptions:
        return self._options

    def _storage_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def track(
        self,
        key: str,
        run_id: str,
        *,
        poll_interval_seconds: float | None = None,
        max_timeout_seconds: float | None = None,
    ) -> RunSubscription:
        """Start polling ``run_id`` under ``key``, replacing any loop already tracking it."""

        if not key:
            raise TrackingError("Tracking key must not be empty")
        if not run_id:
            raise TrackingError("Run id must not be empty")
        options = self._options.merged(
            poll_interval_seconds=poll_interval_seconds,
            max_timeout_seconds=max_timeout_seconds,
        )

        async with self._lock:
            previous = self._runs.pop(key, None)
            if previous is not None:
                logger.info(
                    "Replacing active run for key",
                    extra={"key": key, "previous_run_id": previous.loop.run_id, "run_id": run_id},
                )
                await self._stop(previous)

            self._registry.put(self._storage_key(key), run_id)
            subscription = RunSubscription(key, run_id)
            subscribers = [subscription]
            loop = PollLoop(
                key,
                run_id,
                self._fetcher,
                options,
                on_event=partial(self._fan_out, subscribers),
                clock=self._clock,
                sleep=self._sleep,
            )
            run = _TrackedRun(loop=loop, subscribers=subscribers)
            self._runs[key] = run
            run.task = asyncio.create_task(self._drive(run), name=f"flowfn-poll:{key}")

        logger.info("Tracking run", extra={"key": key, "run_id": run_id})
        return subscription

    def subscribe(self, key: str) -> RunSubscription:
        """Attach another consumer to the loop currently tracking ``key``."""

        run = self._runs.get(key)
        if run is None:
            raise TrackingError(f"No active run is being tracked for key '{key}'")
        subscription = RunSubscription(key, run.loop.run_id)
        run.subscribers.append(subscription)
        return subscription

    def is_tracking(self, key: str) -> bool:
        return self._registry.get(self._storage_key(key)) is not None

    def tracked_run_id(self, key: str) -> str | None:
        return self._registry.get(self._storage_key(key))

    def list_tracked_keys(self) -> set[str]:
        offset = len(self._prefix)
        return {stored[offset:] for stored in self._registry.list_keys(self._prefix)}

    def active_keys(self) -> set[str]:
        return set(self._runs)

    async def cancel(self, key: str) -> None:
        """Stop tracking ``key``. Calling it for an unknown key is a no-op."""

        async with self._lock:
            run = self._runs.pop(key, None)
            self._registry.delete(self._storage_key(key))
            if run is not None:
                await self._stop(run)
                logger.info("Cancelled tracking", extra={"key": key, "run_id": run.loop.run_id})

    async def cancel_all(self) -> None:
        """Cancel every loop and clear every registry entry under this tracker's prefix."""

        async with self._lock:
            runs = list(self._runs.values())
            self._runs.clear()
            for stored in self._registry.list_keys(self._prefix):
                self._registry.delete(stored)

            tasks = [run.task for run in runs if run.task is not None and not run.task.done()]
            for task in tasks:
                task.cancel()
            if tasks:
                await asyncio.wait(tasks)
            for run in runs:
                self._finish(run, run.loop.cancelled_event())

        if runs:
            logger.info("Cancelled all tracked runs", extra={"count": len(runs)})

    async def resume(
        self,
        *,
        poll_interval_seconds: float | None = None,
        max_timeout_seconds: float | None = None,
    ) -> dict[str, RunSubscription]:
        """Restart polling for registry entries that have no loop in this process."""

        resumed: dict[str, RunSubscription] = {}
        for key in sorted(self.list_tracked_keys()):
            if key in self._runs:
                continue
            run_id = self.tracked_run_id(key)
            if run_id is None:
                continue
            resumed[key] = await self.track(
                key,
                run_id,
                poll_interval_seconds=poll_interval_seconds,
                max_timeout_seconds=max_timeout_seconds,
            )
            logger.info("Resumed tracking persisted run", extra={"key": key, "run_id": run_id})
        return resumed

    async def _drive(self, run: _TrackedRun) -> None:
        try:
            outcome = await run.loop.run()
        except asyncio.CancelledError:
            self._finish(run, run.loop.cancelled_event())
            raise
        self._finish(run, outcome)

    async def _stop(self, run: _TrackedRun) -> None:
        task = run.task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
        self._finish(run, run.loop.cancelled_event())

    def _finish(self, run: _TrackedRun, outcome: TrackingEvent) -> None:
        if run.finished:
            return
        run.finished = True
        key = run.loop.key
        if self._runs.get(key) is run:
            del self._runs[key]
            try:
                self._registry.delete(self._storage_key(key))
            except Exception:
                logger.exception(
                    "Failed to remove registry entry for finished run",
                    extra={"key": key, "run_id": run.loop.run_id},
                )
        self._fan_out(run.subscribers, outcome)

    @staticmethod
    def _fan_out(subscribers: list[RunSubscription], event: TrackingEvent) -> None:
        subscribers[:] = [subscription for subscription in subscribers if not subscription.closed]
        for subscription in subscribers:
            subscription._deliver(event)

    async def __aenter__(self) -> "Tracker":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.cancel_all()


__all__ = ["Tracker"]
