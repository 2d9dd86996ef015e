"""Snapshot persistence for fieldnet."""

from .codec import snapshot_from_payload, snapshot_to_payload
from .saver import BackgroundSaver
from .stores import DEFAULT_STORAGE_KEY, JsonFileStore, MemoryStore, PersistenceAdapter

__all__ = [
    "BackgroundSaver",
    "DEFAULT_STORAGE_KEY",
    "JsonFileStore",
    "MemoryStore",
    "PersistenceAdapter",
    "snapshot_from_payload",
    "snapshot_to_payload",
]
