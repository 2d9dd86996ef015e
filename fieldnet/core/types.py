"""Core typing contracts for fieldnet."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

Array = np.ndarray


@dataclass
class Layer:
    """One dense affine transform; ``weights`` is ``(in_dim, out_dim)``."""

    weights: Array
    bias: Array

    @property
    def in_dim(self) -> int:
        return int(self.weights.shape[0])

    @property
    def out_dim(self) -> int:
        return int(self.weights.shape[1])

    def copy(self) -> "Layer":
        return Layer(weights=self.weights.copy(), bias=self.bias.copy())


@dataclass
class Network:
    """Ordered dense layers plus versioned shape metadata."""

    layers: List[Layer]
    layer_sizes: List[int]
    version: int
    update_count: int = 0
    revision: int = field(default=0, compare=False)

    @property
    def depth(self) -> int:
        return len(self.layers)

    @property
    def input_size(self) -> int:
        return int(self.layer_sizes[0])

    @property
    def output_size(self) -> int:
        return int(self.layer_sizes[-1])

    def touch(self) -> None:
        """Record a weight mutation so derived caches can detect staleness."""

        self.revision += 1

    def parameter_count(self) -> int:
        return int(sum(layer.weights.size + layer.bias.size for layer in self.layers))

    def copy(self) -> "Network":
        return Network(
            layers=[layer.copy() for layer in self.layers],
            layer_sizes=list(self.layer_sizes),
            version=self.version,
            update_count=self.update_count,
            revision=self.revision,
        )


@dataclass(frozen=True)
class Prediction:
    """Result of a single forward pass."""

    label_index: int
    confidence: float
    probabilities: Array = field(repr=False, compare=False)
    label: Optional[str] = None
    confident: bool = True


@dataclass
class ForwardState:
    """Intermediate values captured during the forward pass.

    ``layer_inputs[i]`` is what layer ``i`` consumed (after activation and
    dropout of the previous layer); ``pre_activations[i]`` is the hidden
    layer's ``z`` before activation and dropout.
    """

    layer_inputs: List[Array]
    pre_activations: List[Array]
    logits: Array
    probabilities: Array


@dataclass(frozen=True)
class TrainingSample:
    """One labelled feature vector, as read from a training file."""

    features: Sequence[float]
    target_label: int


@dataclass(frozen=True)
class StepResult:
    """Summary of one ``train_one`` call."""

    loss: float
    learning_rate: float
    update_count: int


@dataclass(frozen=True)
class CSRMatrix:
    """Compressed sparse row layout of a ``rows x cols`` matrix."""

    values: Array
    col_indices: Array
    row_pointers: Array
    cols: int

    @property
    def rows(self) -> int:
        return int(len(self.row_pointers) - 1)

    @property
    def nnz(self) -> int:
        return int(len(self.values))


@dataclass(frozen=True)
class QuantizedTensor:
    """Symmetric int8 codes where ``value ~= code * scale``."""

    codes: Array
    scale: float


@dataclass
class CompressedLayer:
    """Pruned (and optionally quantized or CSR) copy of one layer.

    ``pruned`` is laid out ``(out_dim, in_dim)`` so rows match output units.
    """

    pruned: Array
    bias: Array
    sparsity: float
    csr: Optional[CSRMatrix] = None
    quantized: Optional[QuantizedTensor] = None

    @property
    def rows(self) -> int:
        return int(self.pruned.shape[0])

    @property
    def cols(self) -> int:
        return int(self.pruned.shape[1])


@dataclass
class WeightSnapshot:
    """Persisted form of a :class:`Network`."""

    version: int
    layers: List[Layer]
    update_count: int
    timestamp: int

    @property
    def layer_sizes(self) -> List[int]:
        if not self.layers:
            return []
        return [self.layers[0].in_dim] + [layer.out_dim for layer in self.layers]

    def parameter_count(self) -> int:
        return int(sum(layer.weights.size + layer.bias.size for layer in self.layers))


__all__ = [
    "Array",
    "CSRMatrix",
    "CompressedLayer",
    "ForwardState",
    "Layer",
    "Network",
    "Prediction",
    "QuantizedTensor",
    "StepResult",
    "TrainingSample",
    "WeightSnapshot",
]
