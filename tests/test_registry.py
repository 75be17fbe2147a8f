from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from flowfn_sdk.storage import ChromaRunRegistry, InMemoryRunRegistry, RegistryUnavailableError


@dataclass
class _Record:
    document: str
    metadata: dict[str, Any]
    id: str


class StubCollection:
    def __init__(self) -> None:
        self.records: dict[str, _Record] = {}

    def upsert(self, *, documents, metadatas, ids) -> None:  # type: ignore[override]
        for document, metadata, record_id in zip(documents, metadatas, ids):
            self.records[record_id] = _Record(document=document, metadata=dict(metadata), id=record_id)

    def get(self, *, ids=None, where=None, limit=None):  # type: ignore[override]
        filtered = list(self.records.values())
        if ids is not None:
            filtered = [record for record in filtered if record.id in ids]
        if where:
            for key, value in where.items():
                filtered = [record for record in filtered if record.metadata.get(key) == value]
        if limit is not None:
            filtered = filtered[:limit]
        return {
            "ids": [record.id for record in filtered],
            "documents": [record.document for record in filtered],
            "metadatas": [record.metadata for record in filtered],
        }

    def delete(self, *, ids) -> None:  # type: ignore[override]
        for record_id in ids:
            self.records.pop(record_id, None)


class StubClient:
    def __init__(self) -> None:
        self.collections = defaultdict(StubCollection)

    def get_or_create_collection(self, name: str) -> StubCollection:
        return self.collections[name]


def _chroma_registry(tmp_path: Path, client: StubClient | None = None) -> ChromaRunRegistry:
    stub = client or StubClient()
    return ChromaRunRegistry(
        tmp_path,
        client_factory=lambda: stub,
        clock=lambda: datetime.fromisoformat("2025-01-01T00:00:00+00:00"),
    )


def test_in_memory_registry_put_get_delete() -> None:
    registry = InMemoryRunRegistry()

    registry.put("flowfn_workflow_run_report", "run-1")
    registry.put("flowfn_workflow_run_report", "run-2")
    registry.put("other_key", "run-3")

    assert registry.get("flowfn_workflow_run_report") == "run-2"
    assert registry.list_keys("flowfn_workflow_run_") == {"flowfn_workflow_run_report"}
    assert registry.list_keys() == {"flowfn_workflow_run_report", "other_key"}

    registry.delete("flowfn_workflow_run_report")
    registry.delete("flowfn_workflow_run_report")

    assert registry.get("flowfn_workflow_run_report") is None
    assert [entry.key for entry in registry.list_entries()] == ["other_key"]


def test_chroma_registry_upserts_by_key(tmp_path: Path) -> None:
    client = StubClient()
    registry = _chroma_registry(tmp_path, client)

    registry.put("flowfn_workflow_run_report", "run-1")
    registry.put("flowfn_workflow_run_report", "run-2")

    assert registry.get("flowfn_workflow_run_report") == "run-2"
    records = client.collections["flowfn_runs"].records
    assert len(records) == 1
    document = json.loads(records["flowfn_workflow_run_report"].document)
    assert document == {
        "key": "flowfn_workflow_run_report",
        "run_id": "run-2",
        "updated_at": "2025-01-01T00:00:00+00:00",
    }


def test_chroma_registry_lists_by_prefix(tmp_path: Path) -> None:
    registry = _chroma_registry(tmp_path)

    registry.put("flowfn_workflow_run_b", "run-b")
    registry.put("flowfn_workflow_run_a", "run-a")
    registry.put("elsewhere", "run-x")

    assert registry.list_keys("flowfn_workflow_run_") == {
        "flowfn_workflow_run_a",
        "flowfn_workflow_run_b",
    }
    entries = registry.list_entries("flowfn_workflow_run_")
    assert [entry.run_id for entry in entries] == ["run-a", "run-b"]
    assert entries[0].updated_at == datetime.fromisoformat("2025-01-01T00:00:00+00:00")


def test_chroma_registry_delete_is_idempotent(tmp_path: Path) -> None:
    registry = _chroma_registry(tmp_path)

    registry.put("flowfn_workflow_run_a", "run-a")
    registry.delete("flowfn_workflow_run_a")
    registry.delete("flowfn_workflow_run_a")

    assert registry.get("flowfn_workflow_run_a") is None
    assert registry.list_keys() == set()


def test_chroma_registry_survives_new_instance(tmp_path: Path) -> None:
    client = StubClient()
    _chroma_registry(tmp_path, client).put("flowfn_workflow_run_a", "run-a")

    reopened = _chroma_registry(tmp_path, client)

    assert reopened.get("flowfn_workflow_run_a") == "run-a"


def test_chroma_registry_reports_unavailable_client(tmp_path: Path) -> None:
    def failing_factory():
        raise RegistryUnavailableError("chromadb missing")

    registry = ChromaRunRegistry(tmp_path, client_factory=failing_factory)

    with pytest.raises(RegistryUnavailableError):
        registry.ping()
