"""Int8 quantisation and magnitude pruning helpers."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .types import Array, QuantizedTensor

QMAX = 127
PRUNE_THRESHOLD = 0.01


def quantize(weights: Array) -> QuantizedTensor:
    """Symmetric int8 quantisation with ``scale = absmax / 127``."""

    weights = np.asarray(weights, dtype=np.float64)
    if weights.size == 0:
        return QuantizedTensor(codes=np.zeros(weights.shape, dtype=np.int8), scale=0.0)
    abs_max = max(abs(float(weights.min())), abs(float(weights.max())))
    scale = abs_max / QMAX
    if scale == 0.0:
        return QuantizedTensor(codes=np.zeros(weights.shape, dtype=np.int8), scale=0.0)
    codes = np.clip(np.round(weights / scale), -QMAX, QMAX).astype(np.int8)
    return QuantizedTensor(codes=codes, scale=float(scale))


def dequantize(codes: Array, scale: float) -> Array:
    """Map int8 ``codes`` back to floats."""

    return np.asarray(codes, dtype=np.float64) * float(scale)


def prune(weights: Array, threshold: float = PRUNE_THRESHOLD) -> Tuple[Array, float]:
    """Zero every entry with ``|w| < threshold``; return ``(pruned, sparsity)``."""

    weights = np.asarray(weights, dtype=np.float64)
    mask = np.abs(weights) < threshold
    pruned = np.where(mask, 0.0, weights)
    sparsity = float(mask.sum()) / weights.size if weights.size else 0.0
    return pruned, sparsity


__all__ = ["PRUNE_THRESHOLD", "QMAX", "dequantize", "prune", "quantize"]
