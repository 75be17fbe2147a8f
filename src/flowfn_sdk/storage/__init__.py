"""Storage abstractions for tracked runs."""

from .chroma import ChromaRunRegistry, RegistryUnavailableError
from .models import RegistryEntry
from .registry import InMemoryRunRegistry, RunRegistry

__all__ = [
    "ChromaRunRegistry",
    "InMemoryRunRegistry",
    "RegistryEntry",
    "RegistryUnavailableError",
    "RunRegistry",
]
