"""Run models for the FlowFn workflow engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_TIMEOUT_SECONDS = 120.0


class RunState(str, Enum):
    """Status of a workflow run as reported by the engine."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    RETRIED = "retried"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "RunState":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                return cls.UNKNOWN
        return cls.UNKNOWN

    @property
    def is_active(self) -> bool:
        return self in (RunState.QUEUED, RunState.RUNNING)

    @property
    def is_complete(self) -> bool:
        return self in (RunState.SUCCEEDED, RunState.FAILED)


class RunTaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunLogLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class RunSnapshot:
    """Result of a single status query for a run."""

    run_id: str
    state: RunState
    payload: Mapping[str, Any] = field(default_factory=dict)
    raw_state: str | None = None

    @property
    def is_terminal(self) -> bool:
        """Anything outside queued/running ends polling, including unrecognised states."""

        return not self.state.is_active


class PollOptions(BaseModel):
    """Cadence and deadline for tracking one run."""

    model_config = ConfigDict(frozen=True)

    poll_interval_seconds: float = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        gt=0,
        description="Delay before the first query and between subsequent queries.",
    )
    max_timeout_seconds: float = Field(
        default=DEFAULT_MAX_TIMEOUT_SECONDS,
        gt=0,
        description="Deadline measured from the moment tracking starts.",
    )

    def merged(
        self,
        *,
        poll_interval_seconds: float | None = None,
        max_timeout_seconds: float | None = None,
    ) -> "PollOptions":
        """Return options with the given overrides applied and validated."""

        return PollOptions(
            poll_interval_seconds=(
                self.poll_interval_seconds
                if poll_interval_seconds is None
                else poll_interval_seconds
            ),
            max_timeout_seconds=(
                self.max_timeout_seconds if max_timeout_seconds is None else max_timeout_seconds
            ),
        )


class WorkflowRunLog(BaseModel):
    model_config = ConfigDict(extra="ignore")

    level: RunLogLevel = Field(default=RunLogLevel.INFO)
    message: str
    details: Any = None
    timestamp: str

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, value: Any) -> RunLogLevel:
        try:
            return RunLogLevel(value)
        except ValueError:
            return RunLogLevel.INFO


class WorkflowRunTrigger(BaseModel):
    model_config = ConfigDict(extra="ignore")

    trigger_id: str | None = None
    type: str
    inputs: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    initiated_by: str | None = None

    @field_validator("inputs", "metadata", mode="before")
    @classmethod
    def _default_mapping(cls, value: Any) -> Any:
        return {} if value is None else value


class WorkflowRunTask(BaseModel):
    """One task execution inside a workflow run."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., alias="_id")
    task_id: str
    title: str = ""
    reference_code: str = ""
    type: str
    status: RunTaskState = Field(default=RunTaskState.PENDING)
    attempt: int = 0
    started_at: str | None = None
    finished_at: str | None = None
    duration_ms: int = -1
    settings: dict[str, Any] = Field(default_factory=dict)
    inputs: dict[str, Any] = Field(default_factory=dict)
    outputs: Any = None
    error: Any = None
    logs: list[WorkflowRunLog] = Field(default_factory=list)
    artifacts: list[dict[str, str]] = Field(default_factory=list)

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> RunTaskState:
        try:
            return RunTaskState(value)
        except ValueError:
            return RunTaskState.PENDING

    @field_validator("settings", "inputs", "logs", "artifacts", mode="before")
    @classmethod
    def _default_collection(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return [] if info.field_name in {"logs", "artifacts"} else {}
        return value


class WorkflowRun(BaseModel):
    """Full run document returned by the engine."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., alias="_id")
    code: str
    workflow_id: str
    team_id: str
    workflow_version: int = 1
    status: RunState
    raw_status: str | None = Field(default=None, exclude=True)
    trigger: WorkflowRunTrigger
    queued_at: str
    started_at: str | None = None
    finished_at: str | None = None
    duration_ms: int = -1
    server_usage_gb_hours: float = 0.0
    memory_gb_avg: float = 0.0
    ai_tokens_used: int = 0
    platform_call_count: int = 0
    user_tokens_consumed: int | None = None
    tasks: list[WorkflowRunTask] = Field(default_factory=list)
    logs: list[WorkflowRunLog] = Field(default_factory=list)
    result: Any = None
    error: Any = None
    context: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None
    updated_by: str | None = None
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")

    @model_validator(mode="before")
    @classmethod
    def _capture_raw_status(cls, data: Any) -> Any:
        if isinstance(data, dict) and "raw_status" not in data:
            raw = data.get("status")
            data = {**data, "raw_status": raw if isinstance(raw, str) else None}
        return data

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value: Any) -> RunState:
        return RunState.parse(value)

    @field_validator("tasks", "logs", mode="before")
    @classmethod
    def _default_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("context", "metadata", mode="before")
    @classmethod
    def _default_mapping(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def is_complete(self) -> bool:
        return self.status.is_complete

    @property
    def is_running(self) -> bool:
        return self.status is RunState.RUNNING

    @property
    def is_queued(self) -> bool:
        return self.status is RunState.QUEUED

    def to_snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            run_id=self.id,
            state=self.status,
            payload={
                "code": self.code,
                "result": self.result,
                "error": self.error,
                "context": self.context,
            },
            raw_state=self.raw_status,
        )


class WorkflowTriggerResponse(BaseModel):
    """Acknowledgement returned when an asynchronous workflow is triggered."""

    model_config = ConfigDict(extra="ignore")

    message: str = "Workflow trigger accepted"
    workflow_id: str
    trigger_id: str
    run_id: str | None = None
    run_code: str | None = None

    @field_validator("message", mode="before")
    @classmethod
    def _default_message(cls, value: Any) -> Any:
        return "Workflow trigger accepted" if value is None else value

    @property
    def tracking_id(self) -> str | None:
        """Identifier to poll with; the run id when present, otherwise the run code."""

        return self.run_id or self.run_code


__all__ = [
    "DEFAULT_MAX_TIMEOUT_SECONDS",
    "DEFAULT_POLL_INTERVAL_SECONDS",
    "PollOptions",
    "RunLogLevel",
    "RunSnapshot",
    "RunState",
    "RunTaskState",
    "WorkflowRun",
    "WorkflowRunLog",
    "WorkflowRunTask",
    "WorkflowRunTrigger",
    "WorkflowTriggerResponse",
]
