"""Exception hierarchy shared by the FlowFn client and run tracker."""

from __future__ import annotations

from enum import Enum


class FlowFnError(RuntimeError):
    """Base class for FlowFn SDK errors."""


class FetchErrorKind(str, Enum):
    """Classification of a failed request, decided from structured facts only."""

    NOT_FOUND = "not_found"
    NETWORK = "network"
    SERVER = "server"
    MALFORMED = "malformed"


class FetchError(FlowFnError):
    """Raised when a request to the workflow engine does not yield a usable result."""

    def __init__(
        self,
        message: str,
        kind: FetchErrorKind,
        *,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """Not-found responses may precede server-side visibility of a new run."""

        return self.kind is FetchErrorKind.NOT_FOUND

    def __str__(self) -> str:
        if self.status_code is None:
            return f"{self.message} ({self.kind.value})"
        return f"{self.message} ({self.kind.value}, status: {self.status_code})"


class RunTimeoutError(FlowFnError, TimeoutError):
    """Raised when a run does not reach a terminal state before its deadline."""

    def __init__(self, run_id: str, max_timeout_seconds: float) -> None:
        super().__init__(
            f"Workflow run {run_id} did not complete within {max_timeout_seconds:g} seconds"
        )
        self.run_id = run_id
        self.max_timeout_seconds = max_timeout_seconds


class RunCancelledError(FlowFnError):
    """Raised when tracking of a run was cancelled by its owner."""

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Tracking of workflow run {run_id} was cancelled")
        self.run_id = run_id


class TrackingError(FlowFnError):
    """Raised on invalid use of the run tracker."""


__all__ = [
    "FetchError",
    "FetchErrorKind",
    "FlowFnError",
    "RunCancelledError",
    "RunTimeoutError",
    "TrackingError",
]
