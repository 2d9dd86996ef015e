"""Snapshot storage adapters."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Optional, Protocol

from ..core.errors import IncompatibleSnapshotVersion, PersistenceFailure
from ..core.types import WeightSnapshot
from .codec import snapshot_from_payload, snapshot_to_payload

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "neural_weights"


class PersistenceAdapter(Protocol):
    """Boundary collaborator that holds the serialized weights."""

    def load(self, version: int) -> Optional[WeightSnapshot]:
        """Return the user snapshot, ``None`` when absent.

        Raises :class:`IncompatibleSnapshotVersion` when the stored version
        differs from ``version`` and :class:`PersistenceFailure` on I/O errors.
        """

    def load_baseline(self) -> Optional[WeightSnapshot]:
        """Return the bundled read-only baseline, ``None`` when absent."""

    def save(self, snapshot: WeightSnapshot) -> None:
        """Overwrite the stored snapshot."""

    def clear(self) -> None:
        """Remove the stored snapshot."""


def _decode(payload: Mapping[str, Any], version: int | None) -> WeightSnapshot:
    found = payload.get("version")
    if version is not None and found != version:
        raise IncompatibleSnapshotVersion(found, version)
    return snapshot_from_payload(payload)


@dataclass
class MemoryStore:
    """Dict-backed store; payloads are kept in wire form."""

    key: str = DEFAULT_STORAGE_KEY
    baseline: Optional[Mapping[str, Any]] = None
    data: MutableMapping[str, Dict[str, Any]] = field(default_factory=dict)
    saves: int = field(default=0, init=False)

    def load(self, version: int) -> Optional[WeightSnapshot]:
        payload = self.data.get(self.key)
        if payload is None:
            return None
        return _decode(payload, version)

    def load_baseline(self) -> Optional[WeightSnapshot]:
        if self.baseline is None:
            return None
        return snapshot_from_payload(self.baseline)

    def save(self, snapshot: WeightSnapshot) -> None:
        self.data[self.key] = snapshot_to_payload(snapshot)
        self.saves += 1

    def clear(self) -> None:
        self.data.pop(self.key, None)


class JsonFileStore:
    """Store one snapshot per JSON file, written atomically."""

    def __init__(self, path: str | Path, baseline_path: str | Path | None = None) -> None:
        self.path = Path(path)
        self.baseline_path = Path(baseline_path) if baseline_path is not None else None

    def load(self, version: int) -> Optional[WeightSnapshot]:
        payload = self._read(self.path)
        if payload is None:
            return None
        return _decode(payload, version)

    def load_baseline(self) -> Optional[WeightSnapshot]:
        if self.baseline_path is None:
            return None
        payload = self._read(self.baseline_path)
        if payload is None:
            return None
        return snapshot_from_payload(payload)

    def save(self, snapshot: WeightSnapshot) -> None:
        text = json.dumps(snapshot_to_payload(snapshot))
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceFailure(f"Failed to write {self.path}: {exc}") from exc
        logger.debug("Saved snapshot v%d (%d samples) to %s", snapshot.version, snapshot.update_count, self.path)

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceFailure(f"Failed to remove {self.path}: {exc}") from exc

    @staticmethod
    def _read(path: Path) -> Optional[Mapping[str, Any]]:
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise PersistenceFailure(f"Failed to read {path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise PersistenceFailure(f"{path} must decode to a mapping")
        return data


__all__ = ["DEFAULT_STORAGE_KEY", "JsonFileStore", "MemoryStore", "PersistenceAdapter"]
