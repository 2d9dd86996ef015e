import numpy as np
import pytest

from fieldnet.core.activations import leaky_relu, softmax
from fieldnet.core.errors import DimensionMismatch
from fieldnet.core.network import init_network
from fieldnet.core.strategies import CompressedExecution, DenseExecution, make_execution
from fieldnet.inference.engine import InferenceEngine, forward
from fieldnet.training.trainer import TrainingEngine


def _network(sizes=(8, 6, 5, 4), seed=0):
    return init_network(list(sizes), version=1, rng=np.random.default_rng(seed))


def test_predict_rejects_wrong_dimension():
    network = init_network([84, 32, 88], version=2, rng=np.random.default_rng(0))
    engine = InferenceEngine()
    with pytest.raises(DimensionMismatch) as info:
        engine.predict(network, [1, 2])
    assert info.value.expected == 84 and info.value.got == 2


def test_predict_matches_manual_forward():
    network = _network()
    x = np.random.default_rng(1).random(8)
    h = x
    for layer in network.layers[:-1]:
        h = leaky_relu(h @ layer.weights + layer.bias)
    last = network.layers[-1]
    probs = softmax(h @ last.weights + last.bias)

    prediction = InferenceEngine().predict(network, x)
    assert prediction.label_index == int(np.argmax(probs))
    assert prediction.confidence == pytest.approx(float(probs.max()))
    assert np.allclose(prediction.probabilities, probs)


def test_forward_keeps_pre_activations():
    network = _network()
    state = forward(network, np.ones(8))
    assert len(state.pre_activations) == network.depth - 1
    assert len(state.layer_inputs) == network.depth
    for z, a in zip(state.pre_activations, state.layer_inputs[1:]):
        assert np.allclose(leaky_relu(z), a)


def test_predict_is_pure():
    network = _network()
    before = [layer.weights.copy() for layer in network.layers]
    InferenceEngine().predict(network, np.ones(8))
    assert all(np.array_equal(b, layer.weights) for b, layer in zip(before, network.layers))
    assert network.update_count == 0


def test_compressed_without_pruning_equals_dense():
    network = _network()
    x = np.random.default_rng(2).random(8)
    dense = InferenceEngine(DenseExecution()).predict(network, x)
    compressed = InferenceEngine(CompressedExecution(prune_threshold=0.0)).predict(network, x)
    assert compressed.label_index == dense.label_index
    assert np.allclose(compressed.probabilities, dense.probabilities, rtol=1e-5)


@pytest.mark.parametrize(
    "options",
    [
        {"quantize": True},
        {"sparse_threshold": 0.0},
        {"quantize": True, "sparse_threshold": 0.0},
    ],
)
def test_compressed_paths_stay_close_to_dense(options):
    network = _network(sizes=(16, 12, 6), seed=3)
    engine = InferenceEngine(make_execution("compressed", prune_threshold=0.01, **options))
    dense = InferenceEngine()
    for x in np.random.default_rng(4).random((10, 16)):
        assert np.allclose(
            engine.probabilities(network, x), dense.probabilities(network, x), atol=0.05
        )


def test_compressed_cache_rebuilt_after_training():
    network = _network()
    execution = CompressedExecution(prune_threshold=0.0)
    engine = InferenceEngine(execution)
    engine.predict(network, np.ones(8))
    stale = execution.compress(network)[0].pruned.copy()

    TrainingEngine(dropout_rate=0.0).train_one(network, np.ones(8), 1)
    fresh = execution.compress(network)[0].pruned
    assert not np.allclose(stale, fresh)
    assert np.allclose(fresh, network.layers[0].weights.T)


def test_compressed_stats_report_sparsity():
    network = _network(sizes=(20, 10, 4), seed=5)
    execution = CompressedExecution(prune_threshold=0.2, quantize=True)
    stats = execution.stats(network)
    assert 0.0 < stats["sparsity"] < 1.0
    assert stats["memory_reduction"] > 0.0
    assert DenseExecution().stats(network) == {"sparsity": 0.0, "memory_reduction": 0.0}


def test_unknown_execution_mode():
    with pytest.raises(ValueError):
        make_execution("gpu")
