"""Workflow engine HTTP client and status fetcher interface."""

from .api import HttpMethod, WorkflowApiClient
from .fetcher import FakeStatusFetcher, StatusFetcher

__all__ = [
    "FakeStatusFetcher",
    "HttpMethod",
    "StatusFetcher",
    "WorkflowApiClient",
]
