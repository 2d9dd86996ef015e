"""Forward pass and prediction over a :class:`Network`."""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import numpy as np

from ..core.activations import LEAKY_ALPHA, leaky_relu, softmax
from ..core.errors import DimensionMismatch
from ..core.strategies import DenseExecution, ExecutionStrategy
from ..core.types import Array, ForwardState, Network, Prediction

Dropout = Callable[[Array], Array]


def as_features(network: Network, features: Sequence[float]) -> Array:
    """Return ``features`` as a float vector, enforcing the input size."""

    x = np.asarray(features, dtype=np.float64).reshape(-1)
    if x.shape[0] != network.input_size:
        raise DimensionMismatch(network.input_size, int(x.shape[0]))
    return x


def forward(
    network: Network,
    features: Sequence[float],
    *,
    execution: Optional[ExecutionStrategy] = None,
    alpha: float = LEAKY_ALPHA,
    temperature: float = 1.0,
    dropout: Optional[Dropout] = None,
) -> ForwardState:
    """Run ``features`` through every layer.

    Hidden layers apply Leaky-ReLU and then ``dropout`` when given; the last
    layer feeds softmax directly.
    """

    execution = execution or DenseExecution()
    x = as_features(network, features)
    layer_inputs: list[Array] = [x]
    pre_activations: list[Array] = []
    last = network.depth - 1
    logits = x
    for idx in range(network.depth):
        z = execution.affine(network, idx, x)
        if idx < last:
            pre_activations.append(z)
            x = leaky_relu(z, alpha)
            if dropout is not None:
                x = dropout(x)
            layer_inputs.append(x)
        else:
            logits = z
    return ForwardState(
        layer_inputs=layer_inputs,
        pre_activations=pre_activations,
        logits=logits,
        probabilities=softmax(logits, temperature),
    )


class InferenceEngine:
    """Dropout-free prediction through a configured execution strategy."""

    def __init__(
        self,
        execution: Optional[ExecutionStrategy] = None,
        *,
        alpha: float = LEAKY_ALPHA,
        temperature: float = 1.0,
    ) -> None:
        self.execution = execution or DenseExecution()
        self.alpha = alpha
        self.temperature = temperature

    @property
    def mode(self) -> str:
        return self.execution.name

    def probabilities(self, network: Network, features: Sequence[float]) -> Array:
        state = forward(
            network,
            features,
            execution=self.execution,
            alpha=self.alpha,
            temperature=self.temperature,
        )
        return state.probabilities

    def predict(self, network: Network, features: Sequence[float]) -> Prediction:
        probs = self.probabilities(network, features)
        index = int(np.argmax(probs))
        return Prediction(label_index=index, confidence=float(probs[index]), probabilities=probs)

    def stats(self, network: Network) -> dict:
        return dict(self.execution.stats(network))


__all__ = ["InferenceEngine", "as_features", "forward"]
