"""Classifier configuration, presets and config-file loading."""

from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

_PRESETS: Dict[str, Mapping[str, object]] = {
    "compact": {
        "layer_sizes": [84, 32, 88],
        "model_version": 2,
    },
    "standard": {
        "layer_sizes": [84, 32, 16, 88],
        "model_version": 3,
    },
    "deep": {
        "layer_sizes": [95, 256, 128, 64, 88],
        "model_version": 5,
        "learning_rate": 0.02,
        "l2_lambda": 0.0001,
    },
    "compressed": {
        "layer_sizes": [84, 32, 16, 88],
        "model_version": 3,
        "execution": "compressed",
        "quantize": True,
    },
}

DEFAULT_PRESET = "standard"
EXECUTION_MODES = ("dense", "compressed")


@dataclass
class ClassifierConfig:
    """Hyperparameters and runtime options for :class:`FieldClassifier`."""

    layer_sizes: List[int] = field(default_factory=lambda: [84, 32, 16, 88])
    model_version: int = 3
    learning_rate: float = 0.05
    lr_decay: float = 1e-4
    l2_lambda: float = 0.01
    dropout_rate: float = 0.25
    leaky_alpha: float = 0.01
    softmax_temperature: float = 1.0
    save_every: int = 10
    background_saves: bool = True
    execution: str = "dense"
    prune_threshold: float = 0.01
    quantize: bool = False
    sparse_threshold: float = 0.5
    confidence_threshold: float = 0.25
    labels: Optional[List[str]] = None
    fallback_label: str = "generic_question"
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        self.layer_sizes = [int(s) for s in self.layer_sizes]
        if self.labels is not None:
            self.labels = [str(label) for label in self.labels]

    @property
    def input_size(self) -> int:
        return self.layer_sizes[0]

    @property
    def num_classes(self) -> int:
        return self.layer_sizes[-1]

    def validate(self) -> "ClassifierConfig":
        if len(self.layer_sizes) < 2 or any(s <= 0 for s in self.layer_sizes):
            raise ValueError(f"layer_sizes must hold at least two positive ints: {self.layer_sizes}")
        if self.execution not in EXECUTION_MODES:
            raise ValueError(f"execution must be one of {EXECUTION_MODES}, got {self.execution!r}")
        if not 0.0 <= self.dropout_rate < 1.0:
            raise ValueError("dropout_rate must be in [0, 1)")
        if self.learning_rate <= 0.0:
            raise ValueError("learning_rate must be positive")
        if self.lr_decay < 0.0 or self.l2_lambda < 0.0:
            raise ValueError("lr_decay and l2_lambda must be non-negative")
        if self.softmax_temperature <= 0.0:
            raise ValueError("softmax_temperature must be positive")
        if self.save_every < 0:
            raise ValueError("save_every must be non-negative (0 disables saving)")
        if self.labels is not None and len(self.labels) != self.num_classes:
            raise ValueError(
                f"{len(self.labels)} labels given for {self.num_classes} output classes"
            )
        return self

    def label_index(self, name: str) -> int:
        """Map a label name to its index, ``-1`` when unknown."""

        if self.labels is None:
            return -1
        try:
            return self.labels.index(name)
        except ValueError:
            return -1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ClassifierConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise KeyError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**dict(data)).validate()


def _read_config_file(path: Path) -> Mapping[str, Any]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported config file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Config {path.name} must decode to a mapping")
    return data


def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def presets() -> Mapping[str, Mapping[str, object]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> ClassifierConfig:
    try:
        data = deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc
    return ClassifierConfig.from_mapping(data)


def load_config(
    path: str | Path | None = None,
    *,
    preset: str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ClassifierConfig:
    """Resolve a config from a preset, an optional file and explicit overrides.

    A file may name its own base with a top-level ``preset`` key.
    """

    file_data: Mapping[str, Any] = {}
    if path is not None:
        file_data = dict(_read_config_file(Path(path)))
    base_name = preset or file_data.get("preset") or DEFAULT_PRESET
    if base_name not in _PRESETS:
        raise KeyError(f"Unknown preset: {base_name}")
    data = merge_config(deepcopy(_PRESETS[base_name]), {k: v for k, v in file_data.items() if k != "preset"})
    if overrides:
        data = merge_config(data, overrides)
    return ClassifierConfig.from_mapping(data)


__all__ = [
    "ClassifierConfig",
    "DEFAULT_PRESET",
    "load_config",
    "load_preset",
    "merge_config",
    "presets",
]
