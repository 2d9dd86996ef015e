"""fieldnet public API."""

from .classifier import FieldClassifier
from .config import ClassifierConfig, load_config, load_preset, presets
from .core import activations, kernel, quant, types  # noqa: F401
from .core.errors import (
    ClassifierError,
    DimensionMismatch,
    IncompatibleSnapshotVersion,
    NotInitialized,
    PersistenceFailure,
    UnknownLabel,
)
from .core.network import init_network
from .core.types import Layer, Network, Prediction, StepResult, WeightSnapshot
from .inference.engine import InferenceEngine
from .persistence.stores import JsonFileStore, MemoryStore
from .training.trainer import TrainingEngine

__version__ = "0.1.0"

__all__ = [
    "ClassifierConfig",
    "ClassifierError",
    "DimensionMismatch",
    "FieldClassifier",
    "IncompatibleSnapshotVersion",
    "InferenceEngine",
    "JsonFileStore",
    "Layer",
    "MemoryStore",
    "Network",
    "NotInitialized",
    "PersistenceFailure",
    "Prediction",
    "StepResult",
    "TrainingEngine",
    "UnknownLabel",
    "WeightSnapshot",
    "activations",
    "init_network",
    "kernel",
    "load_config",
    "load_preset",
    "presets",
    "quant",
    "types",
]
