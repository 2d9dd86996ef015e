"""Online, single-sample SGD training for fieldnet networks."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from ..core.activations import LEAKY_ALPHA, leaky_relu_deriv
from ..core.errors import UnknownLabel
from ..core.types import Array, Network, StepResult
from ..inference.engine import as_features, forward
from .losses import cross_entropy

logger = logging.getLogger(__name__)


@dataclass
class LearningRateSchedule:
    """Exponential decay ``base_rate * exp(-decay * update_count)``."""

    base_rate: float = 0.05
    decay: float = 1e-4

    def rate(self, update_count: int) -> float:
        return self.base_rate * math.exp(-self.decay * update_count)


class InvertedDropout:
    """Zero activations with probability ``rate`` and rescale survivors."""

    def __init__(self, rate: float, rng: np.random.Generator) -> None:
        if not 0.0 <= rate < 1.0:
            raise ValueError("dropout rate must be in [0, 1)")
        self.rate = rate
        self.rng = rng

    def __call__(self, activations: Array) -> Array:
        if self.rate == 0.0:
            return activations
        keep = self.rng.random(activations.shape) >= self.rate
        return activations * keep / (1.0 - self.rate)


class TrainingEngine:
    """Backpropagation with L2 weight decay and a decaying learning rate."""

    def __init__(
        self,
        schedule: LearningRateSchedule | None = None,
        *,
        l2_lambda: float = 0.01,
        dropout_rate: float = 0.25,
        alpha: float = LEAKY_ALPHA,
        temperature: float = 1.0,
        seed: int | None = None,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.schedule = schedule or LearningRateSchedule()
        self.l2_lambda = l2_lambda
        self.alpha = alpha
        self.temperature = temperature
        self.dropout = InvertedDropout(dropout_rate, np.random.default_rng(seed))
        self.callbacks = list(callbacks or [])
        self.dropout_active = False

    def effective_rate(self, update_count: int) -> float:
        return self.schedule.rate(update_count)

    def train_one(
        self,
        network: Network,
        features: Sequence[float],
        target_label: int,
        learning_rate: float | None = None,
    ) -> StepResult:
        """Apply one SGD step for ``(features, target_label)`` in place.

        ``learning_rate`` overrides the decayed schedule for this call only.
        Validation happens before any mutation.
        """

        x = as_features(network, features)
        if not _is_label(target_label) or not 0 <= int(target_label) < network.output_size:
            raise UnknownLabel(target_label, network.output_size)
        target = int(target_label)

        self.dropout_active = self.dropout.rate > 0.0
        try:
            state = forward(
                network,
                x,
                alpha=self.alpha,
                temperature=self.temperature,
                dropout=self.dropout if self.dropout_active else None,
            )
        finally:
            self.dropout_active = False

        if learning_rate is None:
            learning_rate = self.effective_rate(network.update_count)
        loss, delta = cross_entropy(state.probabilities, target)

        deltas = self._backward(network, state.pre_activations, delta)
        self._apply(network, state.layer_inputs, deltas, learning_rate)

        network.update_count += 1
        network.touch()
        result = StepResult(
            loss=loss, learning_rate=float(learning_rate), update_count=network.update_count
        )
        logger.debug(
            "Trained on label %d (lr=%.6f, loss=%.4f, samples=%d)",
            target,
            learning_rate,
            loss,
            network.update_count,
        )
        self._emit_step(result)
        return result

    # ------------------------------------------------------------------
    # Internal helpers

    def _backward(self, network: Network, pre_activations: Sequence[Array], delta: Array) -> list[Array]:
        # Every delta is derived from the weights as they were before this step.
        deltas: list[Array] = [np.zeros(0)] * network.depth
        deltas[-1] = delta
        for idx in reversed(range(network.depth - 1)):
            upstream = network.layers[idx + 1].weights @ deltas[idx + 1]
            deltas[idx] = upstream * leaky_relu_deriv(pre_activations[idx], self.alpha)
        return deltas

    def _apply(
        self,
        network: Network,
        layer_inputs: Sequence[Array],
        deltas: Sequence[Array],
        learning_rate: float,
    ) -> None:
        for idx in reversed(range(network.depth)):
            layer = network.layers[idx]
            grad = np.outer(layer_inputs[idx], deltas[idx]) + self.l2_lambda * layer.weights
            layer.weights -= learning_rate * grad
            layer.bias -= learning_rate * deltas[idx]

    def _emit_step(self, result: StepResult) -> None:
        metrics: Mapping[str, float] = {
            "loss": result.loss,
            "learning_rate": result.learning_rate,
        }
        for callback in self.callbacks:
            if hasattr(callback, "on_step"):
                callback.on_step(result.update_count, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(result.update_count, metrics)


def _is_label(value: object) -> bool:
    return isinstance(value, (int, np.integer)) and not isinstance(value, bool)


__all__ = ["InvertedDropout", "LearningRateSchedule", "TrainingEngine"]
