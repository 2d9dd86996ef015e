import math

import numpy as np
import pytest

from fieldnet.core.activations import leaky_relu_deriv
from fieldnet.core.errors import DimensionMismatch, UnknownLabel
from fieldnet.core.network import init_network
from fieldnet.core.types import Layer, Network
from fieldnet.inference.engine import InferenceEngine, forward
from fieldnet.training.losses import cross_entropy, one_hot
from fieldnet.training.metrics import compute_metrics, default_metrics
from fieldnet.training.trainer import InvertedDropout, LearningRateSchedule, TrainingEngine

W1 = [[0.1, -0.2, 0.3], [0.0, 0.1, 0.0], [0.2, 0.2, 0.2], [-0.1, 0.0, 0.1]]
W2 = [[0.5, -0.5], [0.3, 0.2], [-0.4, 0.1]]


def _tiny_network():
    layers = [
        Layer(weights=np.array(W1), bias=np.zeros(3)),
        Layer(weights=np.array(W2), bias=np.zeros(2)),
    ]
    return Network(layers=layers, layer_sizes=[4, 3, 2], version=1)


def _reference_step(network, x, target, lr, lam):
    """Scalar-loop backprop over a copy, weights read before any update."""

    net = network.copy()
    state = forward(net, x)
    deltas = [None] * net.depth
    deltas[-1] = state.probabilities - one_hot(target, net.output_size)
    for idx in reversed(range(net.depth - 1)):
        w_next = net.layers[idx + 1].weights
        deriv = leaky_relu_deriv(state.pre_activations[idx])
        deltas[idx] = np.array(
            [
                sum(w_next[j, k] * deltas[idx + 1][k] for k in range(w_next.shape[1])) * deriv[j]
                for j in range(w_next.shape[0])
            ]
        )
    for idx, layer in enumerate(net.layers):
        inputs = state.layer_inputs[idx]
        for i in range(layer.in_dim):
            for j in range(layer.out_dim):
                grad = inputs[i] * deltas[idx][j] + lam * layer.weights[i, j]
                layer.weights[i, j] -= lr * grad
        layer.bias -= lr * deltas[idx]
    return net


def test_hand_computed_step():
    network = _tiny_network()
    engine = TrainingEngine(l2_lambda=0.01, dropout_rate=0.0)
    result = engine.train_one(network, [1.0, 0.0, 0.0, 0.0], 0, learning_rate=0.1)

    assert result.update_count == 1
    assert result.learning_rate == pytest.approx(0.1)
    assert result.loss == pytest.approx(-math.log(0.48745264), rel=1e-6)

    w2 = network.layers[1].weights
    assert np.allclose(
        w2,
        [
            [0.5046254736, -0.5046254736],
            [0.299597491, 0.1999025095],
            [-0.3842235792, 0.0845235792],
        ],
        atol=1e-6,
    )
    assert np.allclose(network.layers[1].bias, [0.051254736, -0.051254736], atol=1e-6)

    w1 = network.layers[0].weights
    assert np.allclose(w1[0], [0.151154736, -0.199748745, 0.274072632], atol=1e-6)
    # Rows fed by zero inputs only see weight decay.
    assert np.allclose(w1[1:], np.array(W1)[1:] * (1 - 0.1 * 0.01), atol=1e-12)


def test_matches_scalar_reference_on_deeper_network():
    rng = np.random.default_rng(7)
    network = init_network([6, 5, 4, 3], version=1, rng=rng)
    x = rng.standard_normal(6)
    expected = _reference_step(network, x, 2, lr=0.05, lam=0.01)

    TrainingEngine(l2_lambda=0.01, dropout_rate=0.0).train_one(network, x, 2, learning_rate=0.05)
    for got, want in zip(network.layers, expected.layers):
        assert np.allclose(got.weights, want.weights, atol=1e-10)
        assert np.allclose(got.bias, want.bias, atol=1e-10)


def test_unknown_label_leaves_weights_untouched():
    network = init_network([84, 32, 16, 88], version=3, rng=np.random.default_rng(0))
    before = network.copy()
    engine = TrainingEngine(dropout_rate=0.0)
    for bad in (9999, -1, 88, True, 1.5):
        with pytest.raises(UnknownLabel):
            engine.train_one(network, np.ones(84), bad)
    with pytest.raises(DimensionMismatch):
        engine.train_one(network, np.ones(10), 0)
    assert network.update_count == 0
    for got, want in zip(network.layers, before.layers):
        assert np.array_equal(got.weights, want.weights)
        assert np.array_equal(got.bias, want.bias)


def test_learning_rate_decays_with_update_count():
    schedule = LearningRateSchedule(base_rate=0.05, decay=1e-4)
    assert schedule.rate(0) == pytest.approx(0.05)
    assert schedule.rate(1000) == pytest.approx(0.05 * math.exp(-0.1))

    network = init_network([4, 3, 2], version=1, rng=np.random.default_rng(1))
    engine = TrainingEngine(schedule, dropout_rate=0.0)
    rates = [engine.train_one(network, np.ones(4), 1).learning_rate for _ in range(3)]
    assert rates[0] == pytest.approx(0.05)
    assert rates[0] > rates[1] > rates[2]


def test_repeated_training_raises_target_probability():
    rng = np.random.default_rng(2)
    network = init_network([8, 6, 4], version=1, rng=rng)
    x = rng.random(8)
    engine = TrainingEngine(dropout_rate=0.0)
    inference = InferenceEngine()
    before = inference.probabilities(network, x)[3]
    for _ in range(25):
        engine.train_one(network, x, 3)
    after = inference.probabilities(network, x)[3]
    assert after > before
    assert network.update_count == 25


def test_training_with_dropout_is_reproducible_with_seed():
    rng = np.random.default_rng(3)
    base = init_network([8, 6, 4], version=1, rng=rng)
    x = rng.random(8)
    first, second = base.copy(), base.copy()
    TrainingEngine(seed=11).train_one(first, x, 1)
    TrainingEngine(seed=11).train_one(second, x, 1)
    assert np.array_equal(first.layers[0].weights, second.layers[0].weights)


def test_inverted_dropout_scaling():
    dropout = InvertedDropout(0.5, np.random.default_rng(4))
    out = dropout(np.ones(20000))
    assert set(np.unique(out).tolist()) <= {0.0, 2.0}
    assert abs(out.mean() - 1.0) < 0.05
    assert np.array_equal(InvertedDropout(0.0, np.random.default_rng(0))(np.ones(3)), np.ones(3))
    with pytest.raises(ValueError):
        InvertedDropout(1.0, np.random.default_rng(0))


def test_step_callbacks_receive_metrics():
    seen = []

    class Sink:
        def on_step(self, step, metrics):
            seen.append(("sink", step, metrics["loss"]))

    network = init_network([4, 3, 2], version=1, rng=np.random.default_rng(5))
    engine = TrainingEngine(
        dropout_rate=0.0,
        callbacks=[Sink(), lambda step, metrics: seen.append(("fn", step, metrics["learning_rate"]))],
    )
    engine.train_one(network, np.ones(4), 0)
    assert [entry[:2] for entry in seen] == [("sink", 1), ("fn", 1)]


def test_cross_entropy_gradient():
    probs = np.array([0.2, 0.5, 0.3])
    loss, grad = cross_entropy(probs, 1)
    assert loss == pytest.approx(-math.log(0.5), rel=1e-6)
    assert np.allclose(grad, [0.2, -0.5, 0.3])


def test_compute_metrics():
    predicted = np.array([0, 1, 1, 2])
    targets = np.array([0, 1, 2, 2])
    names = default_metrics(3)
    assert names == ["accuracy", "mean_confidence", "macro_f1"]
    metrics = compute_metrics(
        names, predicted, targets, confidences=np.array([0.9, 0.8, 0.4, 0.7]), num_classes=3
    )
    assert metrics["accuracy"] == pytest.approx(0.75)
    assert metrics["mean_confidence"] == pytest.approx(0.7)
    assert 0.0 < metrics["macro_f1"] < 1.0
    assert "macro_f1" not in default_metrics(500)


def test_dropout_hook_runs_only_while_flagged():
    network = init_network([6, 5, 4, 3], version=1, rng=np.random.default_rng(6))
    engine = TrainingEngine(dropout_rate=0.25, seed=0)
    observed = []

    class RecordingDropout:
        rate = 0.25

        def __call__(self, activations):
            observed.append(engine.dropout_active)
            return activations

    engine.dropout = RecordingDropout()
    engine.train_one(network, np.ones(6), 0)
    assert observed == [True, True]
    assert engine.dropout_active is False

    quiet = TrainingEngine(dropout_rate=0.0)
    quiet.dropout = RecordingDropout()
    quiet.dropout.rate = 0.0
    observed.clear()
    quiet.train_one(network, np.ones(6), 0)
    assert observed == []
