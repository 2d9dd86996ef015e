"""Host-facing classifier that owns one network and its lifecycle."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Any, Callable, Dict, Optional, Sequence

import numpy as np

from .config import ClassifierConfig
from .core.errors import (
    IncompatibleSnapshotVersion,
    NotInitialized,
    PersistenceFailure,
    UnknownLabel,
)
from .core.network import from_snapshot, init_network, to_snapshot, validate_network
from .core.strategies import make_execution
from .core.types import Network, Prediction, StepResult, TrainingSample, WeightSnapshot
from .inference.engine import InferenceEngine
from .persistence.saver import BackgroundSaver
from .persistence.stores import PersistenceAdapter
from .training.trainer import LearningRateSchedule, TrainingEngine

logger = logging.getLogger(__name__)

SOURCE_USER = "user"
SOURCE_BASELINE = "baseline"
SOURCE_RANDOM = "random"
SOURCE_EXPLICIT = "explicit"


class FieldClassifier:
    """Predict and learn form-field types from fixed-length feature vectors.

    All public operations are serialized on one re-entrant lock, so a
    ``predict`` never observes a network halfway through ``train_one``.
    Weights are loaded by :meth:`initialize` (user snapshot, then the
    baseline, then random weights) and saved every ``save_every`` updates.
    """

    def __init__(
        self,
        config: ClassifierConfig | None = None,
        store: PersistenceAdapter | None = None,
        *,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.config = (config or ClassifierConfig()).validate()
        self.store = store
        cfg = self.config
        self._lock = threading.RLock()
        self._init_rng = np.random.default_rng(cfg.seed)
        self.inference = InferenceEngine(
            make_execution(
                cfg.execution,
                prune_threshold=cfg.prune_threshold,
                quantize=cfg.quantize,
                sparse_threshold=cfg.sparse_threshold,
            ),
            alpha=cfg.leaky_alpha,
            temperature=cfg.softmax_temperature,
        )
        self.trainer = TrainingEngine(
            LearningRateSchedule(base_rate=cfg.learning_rate, decay=cfg.lr_decay),
            l2_lambda=cfg.l2_lambda,
            dropout_rate=cfg.dropout_rate,
            alpha=cfg.leaky_alpha,
            temperature=cfg.softmax_temperature,
            seed=None if cfg.seed is None else cfg.seed + 1,
            callbacks=callbacks,
        )
        self._saver = (
            BackgroundSaver(store, background=cfg.background_saves) if store is not None else None
        )
        self.network: Optional[Network] = None
        self.source: Optional[str] = None
        self._predictions = 0
        self._last_ms = 0.0
        self._avg_ms = 0.0

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def initialized(self) -> bool:
        return self.network is not None

    def initialize(self) -> str:
        """Load weights (user -> baseline -> random) and return the source used."""

        with self._lock:
            cfg = self.config
            network = self._adopt(self._load_user, keep_update_count=True)
            source = SOURCE_USER
            if network is None:
                network = self._adopt(self._load_baseline, keep_update_count=False)
                source = SOURCE_BASELINE
            if network is None:
                network = init_network(cfg.layer_sizes, cfg.model_version, self._init_rng)
                source = SOURCE_RANDOM
            self.network = network
            self.source = source
            logger.info(
                "Initialized %s weights %s (v%d, %d samples)",
                source,
                " -> ".join(str(s) for s in network.layer_sizes),
                network.version,
                network.update_count,
            )
            return source

    def load_network(self, network: Network) -> None:
        """Adopt an explicitly built network; it must match the configuration."""

        validate_network(network)
        if list(network.layer_sizes) != self.config.layer_sizes:
            raise ValueError(
                f"Network sizes {network.layer_sizes} do not match {self.config.layer_sizes}"
            )
        with self._lock:
            network.touch()
            self.network = network
            self.source = SOURCE_EXPLICIT

    def reset(self) -> None:
        """Re-initialise random weights, zero the sample count and clear storage."""

        with self._lock:
            cfg = self.config
            self.network = init_network(cfg.layer_sizes, cfg.model_version, self._init_rng)
            self.source = SOURCE_RANDOM
            if self._saver is not None:
                self._saver.flush()
            if self.store is not None:
                try:
                    self.store.clear()
                except PersistenceFailure as exc:
                    logger.error("Failed to clear stored weights: %s", exc)
            logger.info("Reset to random weights")

    def flush(self) -> None:
        if self._saver is not None:
            self._saver.flush()

    def close(self) -> None:
        if self._saver is not None:
            self._saver.close()

    def __enter__(self) -> "FieldClassifier":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Host operations

    def predict(self, features: Sequence[float]) -> Prediction:
        with self._lock:
            network = self._require_network()
            start = time.perf_counter()
            prediction = self.inference.predict(network, features)
            elapsed = (time.perf_counter() - start) * 1000.0
            self._record(elapsed)
        return self._decorate(prediction)

    def train_one(self, features: Sequence[float], target_label: int) -> StepResult:
        """One online SGD step; every ``save_every`` steps a save is queued."""

        with self._lock:
            network = self._require_network()
            result = self.trainer.train_one(network, features, target_label)
            every = self.config.save_every
            if self._saver is not None and every and network.update_count % every == 0:
                self._saver.submit(to_snapshot(network))
        return result

    def train_sample(self, sample: TrainingSample) -> StepResult:
        return self.train_one(sample.features, sample.target_label)

    def train_label(self, features: Sequence[float], label: str) -> StepResult:
        """Like :meth:`train_one` but addressed by label name."""

        index = self.config.label_index(label)
        if index < 0:
            raise UnknownLabel(label, self.config.num_classes)
        return self.train_one(features, index)

    def export_snapshot(self) -> WeightSnapshot:
        with self._lock:
            return to_snapshot(self._require_network())

    def get_metrics(self) -> Dict[str, Any]:
        with self._lock:
            metrics: Dict[str, Any] = {
                "total_predictions": self._predictions,
                "last_inference_ms": self._last_ms,
                "average_inference_ms": self._avg_ms,
                "update_count": self.network.update_count if self.network else 0,
                "initialized": self.initialized,
                "source": self.source,
                "execution": self.inference.mode,
            }
            if self.network is not None:
                metrics["parameters"] = self.network.parameter_count()
                metrics.update(self.inference.stats(self.network))
            if self._saver is not None:
                metrics["saves_completed"] = self._saver.completed
                metrics["save_failures"] = self._saver.failures
            return metrics

    # ------------------------------------------------------------------
    # Internal helpers

    def _require_network(self) -> Network:
        if self.network is None:
            raise NotInitialized("Weights are not initialized; call initialize() first")
        return self.network

    def _record(self, elapsed_ms: float) -> None:
        self._predictions += 1
        self._last_ms = elapsed_ms
        self._avg_ms += (elapsed_ms - self._avg_ms) / self._predictions

    def _decorate(self, prediction: Prediction) -> Prediction:
        cfg = self.config
        confident = prediction.confidence >= cfg.confidence_threshold
        label = None
        if cfg.labels is not None:
            label = cfg.labels[prediction.label_index] if confident else cfg.fallback_label
        return replace(prediction, label=label, confident=confident)

    def _load_user(self, store: PersistenceAdapter) -> Optional[WeightSnapshot]:
        return store.load(self.config.model_version)

    def _load_baseline(self, store: PersistenceAdapter) -> Optional[WeightSnapshot]:
        return store.load_baseline()

    def _adopt(
        self,
        loader: Callable[[PersistenceAdapter], Optional[WeightSnapshot]],
        *,
        keep_update_count: bool,
    ) -> Optional[Network]:
        store = self.store
        if store is None:
            return None
        kind = "baseline" if not keep_update_count else "stored"
        try:
            snapshot = loader(store)
            if snapshot is None:
                logger.debug("No %s weights found", kind)
                return None
            return from_snapshot(
                snapshot,
                self.config.layer_sizes,
                self.config.model_version,
                keep_update_count=keep_update_count,
            )
        except PersistenceFailure as exc:
            logger.warning("Failed to load %s weights: %s", kind, exc)
        except IncompatibleSnapshotVersion as exc:
            logger.info("Ignoring %s weights: %s", kind, exc)
        return None


__all__ = ["FieldClassifier", "SOURCE_BASELINE", "SOURCE_EXPLICIT", "SOURCE_RANDOM", "SOURCE_USER"]
