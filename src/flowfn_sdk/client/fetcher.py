"""Status fetcher interface consumed by the run tracker."""

from __future__ import annotations

from typing import Iterable, Protocol, Union

from ..errors import FetchError
from ..models import RunSnapshot, RunState

FakeResponse = Union[RunSnapshot, RunState, FetchError]


class StatusFetcher(Protocol):
    """Performs a single status query for a run.

    Implementations raise :class:`FetchError` with a structured ``kind`` on
    failure and must not retry internally.
    """

    async def fetch_status(self, run_id: str) -> RunSnapshot:
        ...


class FakeStatusFetcher:
    """Test double that replays scripted status responses."""

    def __init__(
        self,
        responses: Iterable[FakeResponse] | None = None,
        *,
        default: FakeResponse = RunState.RUNNING,
    ) -> None:
        self._responses = list(responses or [])
        self._default = default
        self._invocations: list[str] = []

    async def fetch_status(self, run_id: str) -> RunSnapshot:
        self._invocations.append(run_id)
        response = self._responses.pop(0) if self._responses else self._default
        if isinstance(response, FetchError):
            raise response
        if isinstance(response, RunState):
            return RunSnapshot(run_id=run_id, state=response, raw_state=response.value)
        return response

    @property
    def invocations(self) -> list[str]:
        return self._invocations


__all__ = ["FakeStatusFetcher", "StatusFetcher"]
