"""Softmax cross-entropy for single-sample training."""

from __future__ import annotations

import numpy as np

from ..core.types import Array

EPS = 1e-9


def one_hot(index: int, num_classes: int) -> Array:
    out = np.zeros(num_classes, dtype=np.float64)
    out[index] = 1.0
    return out


def cross_entropy(probabilities: Array, target: int) -> tuple[float, Array]:
    """Return the loss and the combined softmax + CE gradient w.r.t. logits."""

    probs = np.asarray(probabilities, dtype=np.float64)
    loss = float(-np.log(probs[target] + EPS))
    grad = probs - one_hot(target, probs.shape[0])
    return loss, grad


__all__ = ["cross_entropy", "one_hot"]
