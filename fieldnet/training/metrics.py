"""Metric helpers for evaluating a classifier on labelled samples."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

import numpy as np

from ..core.types import Array


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(num_classes: int | None = None) -> List[str]:
    metrics = ["accuracy", "mean_confidence"]
    if num_classes and num_classes <= 100:
        metrics.append("macro_f1")
    return metrics


def compute_metric(
    name: str,
    predicted: Array,
    targets: Array,
    *,
    confidences: Array | None = None,
    num_classes: int | None = None,
) -> MetricResult:
    key = name.lower()
    pred_idx = np.asarray(predicted).reshape(-1).astype(int)
    targ_idx = np.asarray(targets).reshape(-1).astype(int)
    if key == "accuracy":
        value = float(np.mean(pred_idx == targ_idx)) if pred_idx.size else 0.0
    elif key == "mean_confidence":
        if confidences is None:
            raise ValueError("mean_confidence requires confidences")
        conf = np.asarray(confidences, dtype=np.float64)
        value = float(conf.mean()) if conf.size else 0.0
    elif key == "macro_f1":
        if num_classes is None:
            raise ValueError("macro_f1 requires num_classes")
        # Only classes that occur in either vector contribute.
        present = np.union1d(pred_idx, targ_idx)
        present = present[(present >= 0) & (present < num_classes)]
        f1_scores = []
        for cls in present:
            tp = np.sum((pred_idx == cls) & (targ_idx == cls))
            fp = np.sum((pred_idx == cls) & (targ_idx != cls))
            fn = np.sum((pred_idx != cls) & (targ_idx == cls))
            precision = tp / (tp + fp + 1e-9)
            recall = tp / (tp + fn + 1e-9)
            f1_scores.append(2 * precision * recall / (precision + recall + 1e-9))
        value = float(np.mean(f1_scores)) if f1_scores else 0.0
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(
    names: Iterable[str],
    predicted: Array,
    targets: Array,
    *,
    confidences: Array | None = None,
    num_classes: int | None = None,
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(
            name, predicted, targets, confidences=confidences, num_classes=num_classes
        )
        results[metric.name] = metric.value
    return results


__all__ = ["MetricResult", "compute_metrics", "default_metrics"]
