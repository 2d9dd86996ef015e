import numpy as np
import pytest

from fieldnet.core.activations import leaky_relu, leaky_relu_deriv, softmax
from fieldnet.core.kernel import (
    benchmark,
    dense_matvec,
    flatten_2d,
    quantized_matvec,
    sparse_matvec,
    to_csr,
    unflatten_2d,
)
from fieldnet.core.quant import dequantize, prune, quantize


def test_dense_matvec_matches_definition():
    rng = np.random.default_rng(0)
    rows, cols = 5, 7
    matrix = rng.standard_normal(rows * cols)
    vector = rng.standard_normal(cols)
    bias = rng.standard_normal(rows)
    out = dense_matvec(matrix, vector, bias, rows, cols)
    expected = [
        bias[i] + sum(matrix[i * cols + j] * vector[j] for j in range(cols))
        for i in range(rows)
    ]
    assert np.allclose(out, expected, rtol=1e-5)


def test_to_csr_layout():
    pruned = np.array([[0.0, 2.0, 0.0], [0.0, 0.0, 0.0], [3.0, 0.0, 4.0]])
    csr = to_csr(pruned, 3, 3)
    assert csr.values.tolist() == [2.0, 3.0, 4.0]
    assert csr.col_indices.tolist() == [1, 0, 2]
    assert csr.row_pointers.tolist() == [0, 1, 1, 3]
    assert csr.rows == 3 and csr.nnz == 3


def test_csr_matvec_matches_dense_on_pruned_weights():
    rng = np.random.default_rng(1)
    rows, cols = 12, 9
    weights = rng.standard_normal((rows, cols)) * 0.5
    pruned, sparsity = prune(weights, 0.3)
    assert 0.0 < sparsity < 1.0
    vector = rng.standard_normal(cols)
    bias = rng.standard_normal(rows)
    sparse = sparse_matvec(to_csr(pruned, rows, cols), vector, bias)
    dense = dense_matvec(pruned, vector, bias, rows, cols)
    assert np.allclose(sparse, dense, rtol=1e-5, atol=1e-9)


def test_sparse_matvec_all_zero_returns_bias():
    csr = to_csr(np.zeros((3, 4)), 3, 4)
    bias = np.array([1.0, -2.0, 0.5])
    assert np.array_equal(sparse_matvec(csr, np.ones(4), bias), bias)


def test_quantize_round_trip_within_half_scale():
    rng = np.random.default_rng(2)
    weights = rng.standard_normal(200) * 0.7
    q = quantize(weights)
    assert q.codes.dtype == np.int8
    assert np.all(np.abs(q.codes) <= 127)
    assert q.scale == pytest.approx(np.max(np.abs(weights)) / 127)
    restored = dequantize(q.codes, q.scale)
    assert np.all(np.abs(restored - weights) <= q.scale / 2 + 1e-12)


def test_quantize_all_zero_tensor():
    q = quantize(np.zeros(5))
    assert q.scale == 0.0
    assert np.array_equal(dequantize(q.codes, q.scale), np.zeros(5))


def test_quantized_matvec_close_to_dense():
    rng = np.random.default_rng(3)
    weights = rng.standard_normal((4, 6))
    q = quantize(weights)
    vector = rng.standard_normal(6)
    bias = np.zeros(4)
    out = quantized_matvec(q.codes, q.scale, vector, bias, 4, 6)
    bound = q.scale / 2 * np.sum(np.abs(vector))
    assert np.all(np.abs(out - weights @ vector) <= bound + 1e-9)


def test_prune_zeroes_small_weights():
    weights = np.array([0.005, -0.02, 0.009, 0.5, -0.001])
    pruned, sparsity = prune(weights, 0.01)
    assert pruned.tolist() == [0.0, -0.02, 0.0, 0.5, 0.0]
    assert sparsity == pytest.approx(3 / 5)


def test_softmax_is_a_distribution():
    rng = np.random.default_rng(4)
    for logits in (rng.standard_normal(88) * 10, np.array([1000.0, 999.0, -1000.0])):
        probs = softmax(logits)
        assert np.all(probs >= 0.0)
        assert abs(probs.sum() - 1.0) <= 1e-6
    hot = softmax(np.array([1.0, 2.0]), temperature=0.1)
    flat = softmax(np.array([1.0, 2.0]), temperature=10.0)
    assert hot[1] > flat[1]
    with pytest.raises(ValueError):
        softmax(np.array([1.0]), temperature=0.0)


def test_leaky_relu_and_derivative():
    z = np.array([-2.0, 0.0, 3.0])
    assert np.allclose(leaky_relu(z), [-0.02, 0.0, 3.0])
    assert np.allclose(leaky_relu_deriv(z), [0.01, 0.01, 1.0])
    assert np.allclose(leaky_relu(z, alpha=0.1), [-0.2, 0.0, 3.0])


def test_flatten_helpers_and_benchmark():
    nested = [[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]]
    flat = flatten_2d(nested)
    assert flat.tolist() == [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
    assert unflatten_2d(flat, 3, 2) == nested
    with pytest.raises(ValueError):
        flatten_2d([1.0, 2.0])
    timing = benchmark(lambda: None, iterations=3, warmup=1)
    assert set(timing) == {"avg_ms", "min_ms", "max_ms"}
    assert timing["min_ms"] <= timing["avg_ms"] <= timing["max_ms"]
