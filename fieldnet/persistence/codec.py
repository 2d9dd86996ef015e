"""JSON wire format for :class:`WeightSnapshot`.

Layout::

    {"version": 3, "W1": [[...]], "b1": [...], ..., "Wn": ..., "bn": ...,
     "totalSamples": 120, "timestamp": 1700000000000}

``Wi`` is ``(in_dim, out_dim)`` as nested lists.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

import numpy as np

from ..core.errors import IncompatibleSnapshotVersion
from ..core.types import Layer, WeightSnapshot


def snapshot_to_payload(snapshot: WeightSnapshot) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"version": int(snapshot.version)}
    for idx, layer in enumerate(snapshot.layers, start=1):
        payload[f"W{idx}"] = np.asarray(layer.weights, dtype=np.float64).tolist()
        payload[f"b{idx}"] = np.asarray(layer.bias, dtype=np.float64).tolist()
    payload["totalSamples"] = int(snapshot.update_count)
    payload["timestamp"] = int(snapshot.timestamp)
    return payload


def payload_depth(payload: Mapping[str, Any]) -> int:
    depth = 0
    while f"W{depth + 1}" in payload:
        depth += 1
    return depth


def snapshot_from_payload(payload: Mapping[str, Any]) -> WeightSnapshot:
    """Decode ``payload``; malformed layers raise ``IncompatibleSnapshotVersion``."""

    version = payload.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise IncompatibleSnapshotVersion(version, "int", reason="missing version field")
    depth = payload_depth(payload)
    if depth == 0:
        raise IncompatibleSnapshotVersion(version, version, reason="no weight matrices")
    layers = []
    for idx in range(1, depth + 1):
        if f"b{idx}" not in payload:
            raise IncompatibleSnapshotVersion(version, version, reason=f"missing b{idx}")
        try:
            weights = np.asarray(payload[f"W{idx}"], dtype=np.float64)
            bias = np.asarray(payload[f"b{idx}"], dtype=np.float64)
        except (TypeError, ValueError) as exc:
            raise IncompatibleSnapshotVersion(version, version, reason=f"layer {idx}: {exc}") from exc
        if weights.ndim != 2 or bias.ndim != 1 or bias.shape[0] != weights.shape[1]:
            raise IncompatibleSnapshotVersion(
                version, version, reason=f"layer {idx} has inconsistent shapes"
            )
        layers.append(Layer(weights=weights, bias=bias))
    for idx in range(1, depth):
        if layers[idx].in_dim != layers[idx - 1].out_dim:
            raise IncompatibleSnapshotVersion(
                version, version, reason=f"W{idx + 1} does not chain onto W{idx}"
            )
    try:
        update_count = int(payload.get("totalSamples", 0) or 0)
        timestamp = int(payload.get("timestamp", 0) or 0)
    except (TypeError, ValueError, OverflowError) as exc:
        raise IncompatibleSnapshotVersion(version, version, reason=f"bad metadata: {exc}") from exc
    return WeightSnapshot(
        version=version,
        layers=layers,
        update_count=update_count,
        timestamp=timestamp,
    )


__all__ = ["payload_depth", "snapshot_from_payload", "snapshot_to_payload"]
