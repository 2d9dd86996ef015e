"""Matrix-vector kernels over flat, row-major numeric buffers."""

from __future__ import annotations

import time
from typing import Callable, Dict, List, Sequence

import numpy as np

from .types import Array, CSRMatrix


def dense_matvec(matrix: Array, vector: Array, bias: Array, rows: int, cols: int) -> Array:
    """Return ``bias[i] + sum_j matrix[i*cols + j] * vector[j]``.

    ``matrix`` may be flat or already shaped ``(rows, cols)``.
    """

    mat = np.asarray(matrix, dtype=np.float64).reshape(rows, cols)
    vec = np.asarray(vector, dtype=np.float64).reshape(cols)
    return mat @ vec + np.asarray(bias, dtype=np.float64).reshape(rows)


def quantized_matvec(
    codes: Array, scale: float, vector: Array, bias: Array, rows: int, cols: int
) -> Array:
    """Dense mat-vec on int8 ``codes`` with a single rescale per row sum."""

    mat = np.asarray(codes).reshape(rows, cols).astype(np.float64)
    vec = np.asarray(vector, dtype=np.float64).reshape(cols)
    return scale * (mat @ vec) + np.asarray(bias, dtype=np.float64).reshape(rows)


def sparse_matvec(csr: CSRMatrix, vector: Array, bias: Array) -> Array:
    """CSR mat-vec with the same semantics as :func:`dense_matvec`."""

    rows = csr.rows
    vec = np.asarray(vector, dtype=np.float64)
    out = np.asarray(bias, dtype=np.float64).reshape(rows).copy()
    if csr.nnz == 0:
        return out
    products = csr.values * vec[csr.col_indices]
    counts = np.diff(csr.row_pointers)
    row_ids = np.repeat(np.arange(rows), counts)
    np.add.at(out, row_ids, products)
    return out


def to_csr(pruned: Array, rows: int, cols: int) -> CSRMatrix:
    """Row-major scan of ``pruned`` keeping only non-zero entries."""

    mat = np.asarray(pruned, dtype=np.float64).reshape(rows, cols)
    row_idx, col_idx = np.nonzero(mat)
    counts = np.bincount(row_idx, minlength=rows)
    row_pointers = np.zeros(rows + 1, dtype=np.int64)
    np.cumsum(counts, out=row_pointers[1:])
    return CSRMatrix(
        values=mat[row_idx, col_idx],
        col_indices=col_idx.astype(np.int64),
        row_pointers=row_pointers,
        cols=cols,
    )


def flatten_2d(matrix: Sequence[Sequence[float]]) -> Array:
    """Flatten a nested list into a row-major float buffer."""

    arr = np.asarray(matrix, dtype=np.float64)
    if arr.ndim != 2:
        raise ValueError(f"Expected a 2-D matrix, got {arr.ndim} dimensions")
    return arr.reshape(-1).copy()


def unflatten_2d(flat: Array, rows: int, cols: int) -> List[List[float]]:
    return np.asarray(flat, dtype=np.float64).reshape(rows, cols).tolist()


def benchmark(fn: Callable[[], object], iterations: int = 100, warmup: int = 10) -> Dict[str, float]:
    """Time ``fn`` and return average/min/max wall time in milliseconds."""

    for _ in range(warmup):
        fn()
    times: list[float] = []
    for _ in range(max(1, iterations)):
        start = time.perf_counter()
        fn()
        times.append((time.perf_counter() - start) * 1000.0)
    return {
        "avg_ms": float(np.mean(times)),
        "min_ms": float(np.min(times)),
        "max_ms": float(np.max(times)),
    }


__all__ = [
    "benchmark",
    "dense_matvec",
    "flatten_2d",
    "quantized_matvec",
    "sparse_matvec",
    "to_csr",
    "unflatten_2d",
]
