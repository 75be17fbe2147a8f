"""HTTP client for the FlowFn workflow engine API."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, TypeVar

import httpx
from pydantic import ValidationError

from ..errors import FetchError, FetchErrorKind
from ..models import RunSnapshot, WorkflowRun, WorkflowTriggerResponse

if TYPE_CHECKING:
    from .fetcher import StatusFetcher

logger = logging.getLogger(__name__)

T = TypeVar("T")


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class WorkflowApiClient:
    """Asynchronous client that wraps the FlowFn workflow and run endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        app_code: str | None = None,
        api_key: str | None = None,
        timeout: float = 30.0,
        headers: Mapping[str, str] | None = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._default_headers: dict[str, str] = {"Content-Type": "application/json"}
        if app_code:
            self._default_headers["x-app-code"] = app_code
        if api_key:
            self._default_headers["x-api-key"] = api_key
        if headers:
            self._default_headers.update(headers)
        self._client = client or httpx.AsyncClient(base_url=self._base_url, timeout=timeout)
        self._owns_client = client is None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def default_headers(self) -> dict[str, str]:
        return dict(self._default_headers)

    def set_user_auth(self, token: str) -> None:
        """Attach a user bearer token to subsequent requests."""

        self._default_headers["Authorization"] = f"Bearer {token}"

    def clear_user_auth(self) -> None:
        self._default_headers.pop("Authorization", None)

    async def trigger_workflow(
        self,
        workflow_code: str,
        *,
        method: HttpMethod = HttpMethod.POST,
        inputs: Mapping[str, Any] | None = None,
    ) -> WorkflowRun | WorkflowTriggerResponse:
        """Trigger a workflow by code.

        Synchronous workflows answer with an ``item`` envelope holding the
        finished run; asynchronous ones answer with a trigger acknowledgement
        carrying the run id to track.
        """

        method = HttpMethod(method)
        body = {"code": workflow_code, **(inputs or {})}
        response = await self._request(
            method,
            "/app/workflow/api",
            json=body if method is not HttpMethod.GET else None,
            params={"code": workflow_code} if method is HttpMethod.GET else None,
        )

        def parse(data: dict[str, Any]) -> WorkflowRun | WorkflowTriggerResponse:
            item = data.get("item")
            if isinstance(item, dict):
                return WorkflowRun.model_validate(item)
            return WorkflowTriggerResponse.model_validate(data)

        return self._handle_response(response, parse)

    async def get_workflow_run(self, run_id: str) -> WorkflowRun:
        """Fetch a workflow run by id or code."""

        response = await self._request(HttpMethod.GET, f"/app/runs/{run_id}")

        def parse(data: dict[str, Any]) -> WorkflowRun:
            item = data.get("item")
            if not isinstance(item, dict):
                raise ValueError("Run response is missing the 'item' object")
            return WorkflowRun.model_validate(item)

        return self._handle_response(response, parse)

    async def fetch_status(self, run_id: str) -> RunSnapshot:
        run = await self.get_workflow_run(run_id)
        return run.to_snapshot()

    async def _request(
        self,
        method: HttpMethod,
        path: str,
        *,
        json: Mapping[str, Any] | None = None,
        params: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        normalized_path = path if path.startswith("/") else f"/{path}"
        logger.debug(
            "Sending request",
            extra={"method": method.value, "path": normalized_path, "base_url": self._base_url},
        )
        try:
            response = await self._client.request(
                method.value,
                normalized_path,
                json=json,
                params=params,
                headers=self._default_headers,
            )
        except httpx.TimeoutException as exc:
            raise FetchError(
                "Request timeout: server did not respond in time", FetchErrorKind.NETWORK
            ) from exc
        except httpx.TransportError as exc:
            raise FetchError(
                f"Cannot reach server at {self._base_url}: {exc}", FetchErrorKind.NETWORK
            ) from exc
        logger.debug(
            "Received response",
            extra={"path": normalized_path, "status_code": response.status_code},
        )
        return response

    @staticmethod
    def _handle_response(response: httpx.Response, parser: Callable[[dict[str, Any]], T]) -> T:
        status_code = response.status_code
        if not response.is_success:
            message = "Request failed"
            try:
                data = response.json()
            except ValueError:
                data = None
            if isinstance(data, dict) and isinstance(data.get("message"), str):
                message = data["message"]
            elif data is None and response.text:
                message = response.text
            kind = FetchErrorKind.NOT_FOUND if status_code == 404 else FetchErrorKind.SERVER
            raise FetchError(message, kind, status_code=status_code)

        try:
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError("Response body is not a JSON object")
            return parser(data)
        except (ValueError, ValidationError) as exc:
            raise FetchError(
                "Invalid JSON response", FetchErrorKind.MALFORMED, status_code=status_code
            ) from exc

    async def aclose(self) -> None:
        """Close the underlying HTTP client when this instance owns it."""

        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "WorkflowApiClient":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.aclose()


if TYPE_CHECKING:
    # Static interface check
    _: StatusFetcher = WorkflowApiClient(base_url="http://localhost")


__all__ = ["HttpMethod", "WorkflowApiClient"]
