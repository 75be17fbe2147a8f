"""Run registry interface and in-memory implementation."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Callable, Protocol

from .models import RegistryEntry


class RunRegistry(Protocol):
    """Durable mapping from a tracking key to the run id being awaited.

    A ``put`` that returns must already be durable.
    """

    def put(self, key: str, run_id: str) -> None:
        ...

    def get(self, key: str) -> str | None:
        ...

    def delete(self, key: str) -> None:
        ...

    def list_keys(self, prefix: str = "") -> set[str]:
        ...


class InMemoryRunRegistry:
    """Process-local registry; entries do not survive a restart."""

    def __init__(self, *, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: dict[str, RegistryEntry] = {}
        self._lock = threading.Lock()

    def put(self, key: str, run_id: str) -> None:
        with self._lock:
            self._entries[key] = RegistryEntry(key=key, run_id=run_id, updated_at=self._clock())

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
        return entry.run_id if entry else None

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def list_keys(self, prefix: str = "") -> set[str]:
        with self._lock:
            return {key for key in self._entries if key.startswith(prefix)}

    def list_entries(self, prefix: str = "") -> list[RegistryEntry]:
        with self._lock:
            entries = [entry for key, entry in self._entries.items() if key.startswith(prefix)]
        return sorted(entries, key=lambda entry: entry.key)


__all__ = ["InMemoryRunRegistry", "RunRegistry"]
