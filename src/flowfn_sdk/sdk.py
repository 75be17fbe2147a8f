"""High-level entry point wiring the HTTP client, registry and tracker together."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Mapping, Optional

from .client import HttpMethod, StatusFetcher, WorkflowApiClient
from .config import FlowFnSettings, get_settings
from .errors import FetchError, FetchErrorKind
from .models import RunSnapshot, WorkflowRun, WorkflowTriggerResponse
from .storage import ChromaRunRegistry, InMemoryRunRegistry, RunRegistry
from .tracking import RunSubscription, Tracker, await_run
from .tracking.poller import Clock, Sleep

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging for applications using the SDK."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_registry(settings: FlowFnSettings) -> RunRegistry:
    """Build the run registry selected by ``FLOWFN_REGISTRY_BACKEND``."""

    if settings.registry_backend == "chroma":
        registry = ChromaRunRegistry(settings.registry_path)
        registry.ping()
        return registry
    return InMemoryRunRegistry()


class FlowFn:
    """Trigger workflows and follow their runs to completion."""

    def __init__(
        self,
        settings: Optional[FlowFnSettings] = None,
        *,
        api_client: WorkflowApiClient | None = None,
        registry: RunRegistry | None = None,
        fetcher: StatusFetcher | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._settings = settings or get_settings()
        self._owns_api = api_client is None
        self._api = api_client or WorkflowApiClient(
            self._settings.base_url,
            app_code=self._settings.app_code,
            api_key=self._settings.api_key,
            timeout=self._settings.request_timeout_seconds,
        )
        self._registry = registry if registry is not None else create_registry(self._settings)
        self._fetcher: StatusFetcher = fetcher or self._api
        self._clock = clock
        self._sleep = sleep
        self._tracker = Tracker(
            self._fetcher,
            self._registry,
            options=self._settings.poll_options(),
            key_prefix=self._settings.registry_prefix,
            clock=clock,
            sleep=sleep,
        )

    @property
    def settings(self) -> FlowFnSettings:
        return self._settings

    @property
    def api(self) -> WorkflowApiClient:
        return self._api

    @property
    def registry(self) -> RunRegistry:
        return self._registry

    @property
    def tracker(self) -> Tracker:
        return self._tracker

    async def trigger_workflow(
        self,
        workflow_code: str,
        *,
        method: HttpMethod = HttpMethod.POST,
        inputs: Mapping[str, Any] | None = None,
    ) -> WorkflowRun | WorkflowTriggerResponse:
        return await self._api.trigger_workflow(workflow_code, method=method, inputs=inputs)

    async def trigger_and_track(
        self,
        workflow_code: str,
        *,
        key: str | None = None,
        method: HttpMethod = HttpMethod.POST,
        inputs: Mapping[str, Any] | None = None,
        poll_interval_seconds: float | None = None,
        max_timeout_seconds: float | None = None,
    ) -> WorkflowRun | RunSubscription:
        """Trigger a workflow and track its run under ``key`` (the workflow code by default).

        Synchronous workflows already carry their finished run and are returned
        directly without tracking.
        """

        response = await self.trigger_workflow(workflow_code, method=method, inputs=inputs)
        if isinstance(response, WorkflowRun):
            return response

        run_id = response.tracking_id
        if not run_id:
            raise FetchError(
                f"Trigger response for workflow '{workflow_code}' did not include a run id",
                FetchErrorKind.MALFORMED,
            )
        return await self._tracker.track(
            key or workflow_code,
            run_id,
            poll_interval_seconds=poll_interval_seconds,
            max_timeout_seconds=max_timeout_seconds,
        )

    async def await_workflow_result(
        self,
        run_id: str,
        *,
        poll_interval_seconds: float | None = None,
        max_timeout_seconds: float | None = None,
    ) -> RunSnapshot:
        options = self._settings.poll_options().merged(
            poll_interval_seconds=poll_interval_seconds,
            max_timeout_seconds=max_timeout_seconds,
        )
        return await await_run(self._fetcher, run_id, options, clock=self._clock, sleep=self._sleep)

    async def resume(self) -> dict[str, RunSubscription]:
        """Resume polling for runs persisted by a previous process."""

        resumed = await self._tracker.resume()
        if resumed:
            logger.info(
                "Resumed persisted runs",
                extra={"count": len(resumed), "keys": sorted(resumed)},
            )
        return resumed

    async def aclose(self) -> None:
        await self._tracker.cancel_all()
        if self._owns_api:
            await self._api.aclose()

    async def __aenter__(self) -> "FlowFn":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()


__all__ = ["FlowFn", "configure_logging", "create_registry"]
