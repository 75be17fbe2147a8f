from __future__ import annotations

import asyncio
from typing import Any

import pytest


class VirtualClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def virtual_clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def run_document():
    def _build(status: str = "running", **overrides: Any) -> dict[str, Any]:
        document: dict[str, Any] = {
            "_id": "run-1",
            "code": "RUN-0001",
            "workflow_id": "wf-1",
            "team_id": "team-1",
            "workflow_version": 3,
            "status": status,
            "trigger": {"trigger_id": "trg-1", "type": "api", "inputs": {"name": "demo"}},
            "queued_at": "2025-01-01T00:00:00Z",
            "result": {"answer": 42},
            "context": {"region": "eu"},
            "createdAt": "2025-01-01T00:00:00Z",
            "updatedAt": "2025-01-01T00:00:05Z",
        }
        document.update(overrides)
        return document

    return _build
