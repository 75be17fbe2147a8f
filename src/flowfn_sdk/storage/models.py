"""Data models for persistent run tracking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(slots=True)
class RegistryEntry:
    key: str
    run_id: str
    updated_at: datetime | None


__all__ = ["RegistryEntry"]
