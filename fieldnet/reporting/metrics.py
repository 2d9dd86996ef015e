"""Sinks that record per-update training metrics."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Dict, Mapping


def _numeric(metrics: Mapping[str, object]) -> Dict[str, float]:
    return {k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))}


class JsonlSink:
    """One JSON object per ``train_one`` call, truncated on open."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        model_version: int | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.model_version = model_version

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        record: Dict[str, object] = {
            "step": int(step),
            "split": self.split,
            "model_version": self.model_version,
        }
        record.update(_numeric(metrics))
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_step


class CsvSink:
    """Append step rows to CSV; the header is the sorted first-row keys."""

    def __init__(self, path: str | Path, *, split: str = "train") -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.split = split
        self._columns: list[str] | None = None

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        row: Dict[str, object] = {"step": int(step), "split": self.split, **_numeric(metrics)}
        if self._columns is None:
            self._columns = sorted(row)
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self._columns, extrasaction="ignore")
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)

    __call__ = on_step


__all__ = ["CsvSink", "JsonlSink"]
