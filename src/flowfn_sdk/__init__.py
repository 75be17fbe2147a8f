"""Python SDK for the FlowFn workflow engine."""

__version__ = "0.1.0"

from .client import FakeStatusFetcher, HttpMethod, StatusFetcher, WorkflowApiClient
from .config import FlowFnSettings, get_settings
from .errors import (
    FetchError,
    FetchErrorKind,
    FlowFnError,
    RunCancelledError,
    RunTimeoutError,
    TrackingError,
)
from .models import (
    PollOptions,
    RunSnapshot,
    RunState,
    WorkflowRun,
    WorkflowTriggerResponse,
)
from .sdk import FlowFn, configure_logging, create_registry
from .storage import (
    ChromaRunRegistry,
    InMemoryRunRegistry,
    RegistryUnavailableError,
    RunRegistry,
)
from .tracking import EventKind, PollLoop, RunSubscription, Tracker, TrackingEvent, await_run

__all__ = [
    "ChromaRunRegistry",
    "EventKind",
    "FakeStatusFetcher",
    "FetchError",
    "FetchErrorKind",
    "FlowFn",
    "FlowFnError",
    "FlowFnSettings",
    "HttpMethod",
    "InMemoryRunRegistry",
    "PollLoop",
    "PollOptions",
    "RegistryUnavailableError",
    "RunCancelledError",
    "RunRegistry",
    "RunSnapshot",
    "RunState",
    "RunSubscription",
    "RunTimeoutError",
    "StatusFetcher",
    "Tracker",
    "TrackingError",
    "TrackingEvent",
    "WorkflowApiClient",
    "WorkflowRun",
    "WorkflowTriggerResponse",
    "__version__",
    "await_run",
    "configure_logging",
    "create_registry",
    "get_settings",
]
