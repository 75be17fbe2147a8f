"""Chroma-based run registry."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from .models import RegistryEntry

logger = logging.getLogger(__name__)

_RECORD_TYPE = "run_registry"


class RegistryUnavailableError(RuntimeError):
    """Raised when the Chroma client cannot be constructed."""


class CollectionProtocol(Protocol):
    """Protocol for the minimal Chroma collection API used by the registry."""

    def upsert(
        self,
        *,
        documents: Iterable[str],
        metadatas: Iterable[dict[str, Any]],
        ids: Iterable[str],
    ) -> None:
        ...

    def get(
        self,
        *,
        ids: Iterable[str] | None = None,
        where: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> dict[str, list[Any]]:
        ...

    def delete(self, *, ids: Iterable[str]) -> None:
        ...


class ClientProtocol(Protocol):
    """Protocol for the minimal Chroma client API used by the registry."""

    def get_or_create_collection(self, name: str) -> CollectionProtocol:
        ...


class ChromaRunRegistry:
    """Persist tracking key to run id mappings in a ChromaDB collection."""

    def __init__(
        self,
        path: Path,
        *,
        collection_name: str = "flowfn_runs",
        client_factory: Callable[[], ClientProtocol] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._path = Path(path)
        self._collection_name = collection_name
        self._client_factory = client_factory or self._default_client_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._client: ClientProtocol | None = None
        self._collection: CollectionProtocol | None = None

    def _default_client_factory(self) -> ClientProtocol:
        try:
            import chromadb
        except ImportError as exc:  # pragma: no cover - depends on environment
            raise RegistryUnavailableError(
                "chromadb package is not installed; install flowfn-sdk with persistence extras"
            ) from exc

        return chromadb.PersistentClient(path=str(self._path))

    def _ensure_collection(self) -> CollectionProtocol:
        if self._collection is None:
            client = self._client or self._client_factory()
            self._client = client
            self._collection = client.get_or_create_collection(self._collection_name)
        return self._collection

    def _convert_result(self, result: dict[str, list[Any]]) -> list[RegistryEntry]:
        entries: list[RegistryEntry] = []
        ids = result.get("ids") or []
        metadatas = result.get("metadatas") or []
        for key, metadata in zip(ids, metadatas):
            metadata = metadata or {}
            run_id = metadata.get("run_id")
            if not isinstance(run_id, str):
                continue
            timestamp_raw = metadata.get("updated_at")
            updated_at = (
                datetime.fromisoformat(timestamp_raw) if isinstance(timestamp_raw, str) else None
            )
            entries.append(RegistryEntry(key=key, run_id=run_id, updated_at=updated_at))
        return entries

    def ping(self) -> bool:
        """Verify that the underlying collection can be obtained."""

        self._ensure_collection()
        return True

    def put(self, key: str, run_id: str) -> None:
        collection = self._ensure_collection()
        timestamp = self._clock().isoformat()
        document = json.dumps({"key": key, "run_id": run_id, "updated_at": timestamp})
        collection.upsert(
            documents=[document],
            metadatas=[{"record_type": _RECORD_TYPE, "run_id": run_id, "updated_at": timestamp}],
            ids=[key],
        )
        logger.debug("Persisted tracked run", extra={"key": key, "run_id": run_id})

    def get(self, key: str) -> str | None:
        collection = self._ensure_collection()
        entries = self._convert_result(collection.get(ids=[key]))
        return entries[0].run_id if entries else None

    def delete(self, key: str) -> None:
        collection = self._ensure_collection()
        collection.delete(ids=[key])
        logger.debug("Removed tracked run", extra={"key": key})

    def list_entries(self, prefix: str = "") -> list[RegistryEntry]:
        collection = self._ensure_collection()
        result = collection.get(where={"record_type": _RECORD_TYPE})
        entries = [entry for entry in self._convert_result(result) if entry.key.startswith(prefix)]
        return sorted(entries, key=lambda entry: entry.key)

    def list_keys(self, prefix: str = "") -> set[str]:
        return {entry.key for entry in self.list_entries(prefix)}


__all__ = ["ChromaRunRegistry", "RegistryUnavailableError"]
