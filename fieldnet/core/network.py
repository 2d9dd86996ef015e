"""Construction, validation and snapshot conversion for :class:`Network`."""

from __future__ import annotations

import time
from typing import Sequence

import numpy as np

from .errors import IncompatibleSnapshotVersion
from .types import Layer, Network, WeightSnapshot


def _check_sizes(layer_sizes: Sequence[int]) -> list[int]:
    sizes = [int(s) for s in layer_sizes]
    if len(sizes) < 2:
        raise ValueError("layer_sizes needs at least an input and an output size")
    if any(s <= 0 for s in sizes):
        raise ValueError(f"layer_sizes must be positive, got {sizes}")
    return sizes


def init_network(
    layer_sizes: Sequence[int],
    version: int,
    rng: np.random.Generator | None = None,
) -> Network:
    """Randomly initialise a network.

    Hidden layers use He scaling ``sqrt(2 / fan_in)``, the softmax layer uses
    Xavier scaling ``sqrt(1 / fan_in)``; weights are drawn uniformly from
    ``[-scale, scale]`` and biases start at zero.
    """

    sizes = _check_sizes(layer_sizes)
    rng = rng or np.random.default_rng()
    layers: list[Layer] = []
    last = len(sizes) - 2
    for idx, (in_dim, out_dim) in enumerate(zip(sizes[:-1], sizes[1:])):
        scale = np.sqrt((1.0 if idx == last else 2.0) / in_dim)
        weights = rng.uniform(-scale, scale, size=(in_dim, out_dim))
        layers.append(Layer(weights=weights, bias=np.zeros(out_dim, dtype=np.float64)))
    return Network(layers=layers, layer_sizes=sizes, version=int(version))


def validate_network(network: Network) -> None:
    """Raise ``ValueError`` if any layer breaks the shape invariant."""

    sizes = network.layer_sizes
    if len(sizes) != network.depth + 1:
        raise ValueError(
            f"layer_sizes has {len(sizes)} entries for a depth-{network.depth} network"
        )
    for idx, layer in enumerate(network.layers):
        expected = (sizes[idx], sizes[idx + 1])
        if layer.weights.shape != expected:
            raise ValueError(f"Layer {idx} weights {layer.weights.shape} != {expected}")
        if layer.bias.shape != (sizes[idx + 1],):
            raise ValueError(f"Layer {idx} bias {layer.bias.shape} != {(sizes[idx + 1],)}")


def to_snapshot(network: Network, timestamp: int | None = None) -> WeightSnapshot:
    """Deep-copy ``network`` into a snapshot."""

    if timestamp is None:
        timestamp = int(time.time() * 1000)
    return WeightSnapshot(
        version=network.version,
        layers=[layer.copy() for layer in network.layers],
        update_count=network.update_count,
        timestamp=int(timestamp),
    )


def from_snapshot(
    snapshot: WeightSnapshot,
    layer_sizes: Sequence[int],
    version: int,
    *,
    keep_update_count: bool = True,
) -> Network:
    """Adopt ``snapshot`` if it matches ``version`` and ``layer_sizes`` exactly.

    Mismatches raise :class:`IncompatibleSnapshotVersion`; weights from a
    different version are never partially reused.
    """

    sizes = _check_sizes(layer_sizes)
    if snapshot.version != version:
        raise IncompatibleSnapshotVersion(snapshot.version, version)
    if snapshot.layer_sizes != sizes:
        raise IncompatibleSnapshotVersion(
            snapshot.version,
            version,
            reason=f"layer sizes {snapshot.layer_sizes} != {sizes}",
        )
    network = Network(
        layers=[
            Layer(
                weights=np.array(layer.weights, dtype=np.float64),
                bias=np.array(layer.bias, dtype=np.float64),
            )
            for layer in snapshot.layers
        ],
        layer_sizes=sizes,
        version=int(version),
        update_count=int(snapshot.update_count) if keep_update_count else 0,
    )
    try:
        validate_network(network)
    except ValueError as exc:
        raise IncompatibleSnapshotVersion(snapshot.version, version, reason=str(exc)) from exc
    return network


__all__ = ["from_snapshot", "init_network", "to_snapshot", "validate_network"]
