from __future__ import annotations

import pytest
from pydantic import ValidationError

from flowfn_sdk.models import (
    PollOptions,
    RunLogLevel,
    RunSnapshot,
    RunState,
    RunTaskState,
    WorkflowRun,
    WorkflowTriggerResponse,
)


def test_run_state_parse_maps_unrecognised_values_to_unknown() -> None:
    assert RunState.parse("succeeded") is RunState.SUCCEEDED
    assert RunState.parse(" Timed_Out ") is RunState.TIMED_OUT
    assert RunState.parse("paused") is RunState.UNKNOWN
    assert RunState.parse(None) is RunState.UNKNOWN


def test_only_queued_and_running_are_active() -> None:
    active = {state for state in RunState if state.is_active}
    assert active == {RunState.QUEUED, RunState.RUNNING}
    assert RunSnapshot(run_id="r", state=RunState.RETRIED).is_terminal
    assert not RunSnapshot(run_id="r", state=RunState.QUEUED).is_terminal


def test_workflow_run_parses_engine_document(run_document) -> None:
    run = WorkflowRun.model_validate(
        run_document(
            "succeeded",
            tasks=[
                {
                    "_id": "t-1",
                    "task_id": "fetch",
                    "type": "http",
                    "status": "mystery",
                    "logs": [{"level": "verbose", "message": "hi", "timestamp": "now"}],
                }
            ],
            logs=None,
        )
    )

    assert run.id == "run-1"
    assert run.is_complete
    assert run.created_at == "2025-01-01T00:00:00Z"
    assert run.trigger.inputs == {"name": "demo"}
    assert run.tasks[0].status is RunTaskState.PENDING
    assert run.tasks[0].logs[0].level is RunLogLevel.INFO
    assert run.logs == []


def test_workflow_run_snapshot_keeps_raw_unknown_status(run_document) -> None:
    run = WorkflowRun.model_validate(run_document("paused"))

    snapshot = run.to_snapshot()

    assert snapshot.state is RunState.UNKNOWN
    assert snapshot.raw_state == "paused"
    assert snapshot.payload["result"] == {"answer": 42}
    assert snapshot.payload["context"] == {"region": "eu"}
    assert "raw_status" not in run.model_dump()


def test_workflow_run_requires_identifiers(run_document) -> None:
    document = run_document()
    del document["_id"]

    with pytest.raises(ValidationError):
        WorkflowRun.model_validate(document)


def test_trigger_response_tracking_id_prefers_run_id() -> None:
    response = WorkflowTriggerResponse.model_validate(
        {"message": None, "workflow_id": "wf", "trigger_id": "trg", "run_code": "RUN-9"}
    )

    assert response.message == "Workflow trigger accepted"
    assert response.tracking_id == "RUN-9"

    with_id = WorkflowTriggerResponse(workflow_id="wf", trigger_id="trg", run_id="r-1", run_code="RUN-9")
    assert with_id.tracking_id == "r-1"


@pytest.mark.parametrize(
    "overrides",
    [
        {"poll_interval_seconds": 0},
        {"poll_interval_seconds": -1},
        {"max_timeout_seconds": 0},
    ],
)
def test_poll_options_reject_non_positive_values(overrides) -> None:
    with pytest.raises(ValidationError):
        PollOptions(**overrides)


def test_poll_options_merged_applies_overrides() -> None:
    options = PollOptions()

    merged = options.merged(max_timeout_seconds=30)

    assert options.poll_interval_seconds == 2
    assert options.max_timeout_seconds == 120
    assert merged.poll_interval_seconds == 2
    assert merged.max_timeout_seconds == 30
    with pytest.raises(ValueError):
        options.merged(poll_interval_seconds=0)
