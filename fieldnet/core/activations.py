"""Activation utilities for fieldnet."""

from __future__ import annotations

import numpy as np

from .types import Array

LEAKY_ALPHA = 0.01


def leaky_relu(x: Array, alpha: float = LEAKY_ALPHA) -> Array:
    """Return the Leaky-ReLU activation."""

    x = np.asarray(x, dtype=np.float64)
    return np.where(x > 0.0, x, alpha * x)


def leaky_relu_deriv(z: Array, alpha: float = LEAKY_ALPHA) -> Array:
    """Derivative of :func:`leaky_relu` evaluated on pre-activations ``z``."""

    z = np.asarray(z, dtype=np.float64)
    return np.where(z > 0.0, 1.0, alpha)


def softmax(logits: Array, temperature: float = 1.0) -> Array:
    """Numerically stable softmax over the last axis."""

    if temperature <= 0.0:
        raise ValueError("temperature must be positive")
    logits = np.asarray(logits, dtype=np.float64)
    shifted = (logits - np.max(logits, axis=-1, keepdims=True)) / temperature
    exp = np.exp(shifted)
    return exp / np.sum(exp, axis=-1, keepdims=True)


__all__ = ["LEAKY_ALPHA", "leaky_relu", "leaky_relu_deriv", "softmax"]
