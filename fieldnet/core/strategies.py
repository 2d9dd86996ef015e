"""Execution strategies used by the inference engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Protocol

import numpy as np

from .kernel import dense_matvec, quantized_matvec, sparse_matvec, to_csr
from .quant import PRUNE_THRESHOLD, dequantize, prune
from .quant import quantize as quantize_weights
from .types import Array, CompressedLayer, Network


class ExecutionStrategy(Protocol):
    """Protocol implemented by dense and compressed layer execution."""

    name: str

    def affine(self, network: Network, index: int, inputs: Array) -> Array:
        """Return the pre-activation of layer ``index`` for ``inputs``."""

    def stats(self, network: Network) -> Dict[str, float]:
        """Return memory statistics for ``network``."""


@dataclass
class DenseExecution:
    """Run every layer on the full-precision weights."""

    name: str = "dense"

    def affine(self, network: Network, index: int, inputs: Array) -> Array:
        layer = network.layers[index]
        return dense_matvec(layer.weights.T, inputs, layer.bias, layer.out_dim, layer.in_dim)

    def stats(self, network: Network) -> Dict[str, float]:
        return {"sparsity": 0.0, "memory_reduction": 0.0}


@dataclass
class CompressedExecution:
    """Run layers on pruned, optionally quantised or CSR, weight caches.

    Caches are tied to the network object and its ``revision`` and are
    rebuilt before use whenever the weights have changed.
    """

    prune_threshold: float = PRUNE_THRESHOLD
    quantize: bool = False
    sparse_threshold: float = 0.5
    name: str = "compressed"
    _layers: List[CompressedLayer] = field(default_factory=list, init=False, repr=False)
    _owner: Network | None = field(default=None, init=False, repr=False)
    _revision: int = field(default=-1, init=False, repr=False)

    def compress(self, network: Network) -> List[CompressedLayer]:
        stale = self._owner is not network or self._revision != network.revision
        if stale or len(self._layers) != network.depth:
            self._layers = [self._compress_layer(layer.weights, layer.bias) for layer in network.layers]
            self._owner = network
            self._revision = network.revision
        return self._layers

    def invalidate(self) -> None:
        self._layers = []
        self._owner = None
        self._revision = -1

    def _compress_layer(self, weights: Array, bias: Array) -> CompressedLayer:
        pruned, sparsity = prune(np.ascontiguousarray(weights.T), self.prune_threshold)
        rows, cols = pruned.shape
        quantized = quantize_weights(pruned) if self.quantize else None
        csr = None
        if sparsity >= self.sparse_threshold:
            source = dequantize(quantized.codes, quantized.scale) if quantized else pruned
            csr = to_csr(source, rows, cols)
        return CompressedLayer(
            pruned=pruned,
            bias=np.array(bias, dtype=np.float64),
            sparsity=sparsity,
            csr=csr,
            quantized=quantized,
        )

    def affine(self, network: Network, index: int, inputs: Array) -> Array:
        layer = self.compress(network)[index]
        if layer.csr is not None:
            return sparse_matvec(layer.csr, inputs, layer.bias)
        if layer.quantized is not None:
            q = layer.quantized
            return quantized_matvec(q.codes, q.scale, inputs, layer.bias, layer.rows, layer.cols)
        return dense_matvec(layer.pruned, inputs, layer.bias, layer.rows, layer.cols)

    def stats(self, network: Network) -> Dict[str, float]:
        layers = self.compress(network)
        if not layers:
            return {"sparsity": 0.0, "memory_reduction": 0.0}
        original = sum(layer.pruned.size for layer in layers) * 4
        compressed = 0
        for layer in layers:
            if layer.csr is not None:
                value_bytes = 1 if layer.quantized is not None else 4
                compressed += layer.csr.nnz * (value_bytes + 2) + (layer.rows + 1) * 2
            elif layer.quantized is not None:
                compressed += layer.pruned.size
            else:
                compressed += layer.pruned.size * 4
        total = sum(layer.pruned.size for layer in layers)
        sparsity = sum(layer.sparsity * layer.pruned.size for layer in layers) / total
        return {
            "sparsity": float(sparsity),
            "memory_reduction": float((original - compressed) / original * 100.0),
        }


def make_execution(
    name: str,
    *,
    prune_threshold: float = PRUNE_THRESHOLD,
    quantize: bool = False,
    sparse_threshold: float = 0.5,
) -> ExecutionStrategy:
    """Build the execution strategy named in configuration."""

    if name == "dense":
        return DenseExecution()
    if name == "compressed":
        return CompressedExecution(
            prune_threshold=prune_threshold,
            quantize=quantize,
            sparse_threshold=sparse_threshold,
        )
    raise ValueError(f"Unknown execution mode: {name!r}")


__all__ = [
    "CompressedExecution",
    "DenseExecution",
    "ExecutionStrategy",
    "make_execution",
]
