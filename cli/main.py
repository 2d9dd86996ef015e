"""Command line entry point for the fieldnet classifier."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable, Iterator, List

import numpy as np

from fieldnet.classifier import FieldClassifier
from fieldnet.config import ClassifierConfig, load_config, presets
from fieldnet.core.errors import ClassifierError, UnknownLabel
from fieldnet.core.types import TrainingSample
from fieldnet.persistence.codec import snapshot_from_payload
from fieldnet.persistence.stores import JsonFileStore
from fieldnet.reporting.metrics import CsvSink, JsonlSink
from fieldnet.training.metrics import compute_metrics, default_metrics

logger = logging.getLogger("fieldnet.cli")


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, help="JSON/YAML config file")
    parser.add_argument("--preset", choices=sorted(presets().keys()), help="Base preset")
    parser.add_argument("--seed", type=int, help="Seed for weight init and dropout")


def _add_store(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--store", type=Path, required=True, help="Snapshot JSON file")
    parser.add_argument("--baseline", type=Path, help="Bundled baseline snapshot JSON file")


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("presets", help="List available presets and exit")

    init = sub.add_parser("init", help="Initialise weights and write the store")
    _add_common(init)
    _add_store(init)

    predict = sub.add_parser("predict", help="Classify one feature vector")
    _add_common(predict)
    _add_store(predict)
    predict.add_argument("--features", required=True, help="Comma separated feature values")

    train = sub.add_parser("train", help="Train online on a JSONL file of samples")
    _add_common(train)
    _add_store(train)
    train.add_argument("--data", type=Path, required=True, help="JSONL with features and label")
    train.add_argument("--epochs", type=int, default=1)
    train.add_argument("--run-dir", type=Path, help="Directory for metrics.jsonl / metrics.csv")
    train.add_argument("--no-dropout", action="store_true", help="Disable dropout")

    evaluate = sub.add_parser("evaluate", help="Score a JSONL file of samples")
    _add_common(evaluate)
    _add_store(evaluate)
    evaluate.add_argument("--data", type=Path, required=True)

    inspect = sub.add_parser("inspect", help="Summarise a stored snapshot")
    inspect.add_argument("--store", type=Path, required=True)

    return parser.parse_args(argv)


def _resolve_config(args: argparse.Namespace, **extra) -> ClassifierConfig:
    overrides = dict(extra)
    if getattr(args, "seed", None) is not None:
        overrides["seed"] = int(args.seed)
    return load_config(args.config, preset=args.preset, overrides=overrides)


def _parse_features(text: str) -> List[float]:
    return [float(tok) for tok in text.split(",") if tok.strip()]


def _read_samples(path: Path, config: ClassifierConfig) -> Iterator[TrainingSample]:
    with path.open("r", encoding="utf-8") as handle:
        for line in handle:
            if not line.strip():
                continue
            record = json.loads(line)
            label = record["label"]
            if isinstance(label, str):
                index = config.label_index(label)
                if index < 0:
                    raise UnknownLabel(label, config.num_classes)
                label = index
            yield TrainingSample(features=[float(v) for v in record["features"]], target_label=int(label))


def _emit(payload: dict) -> None:
    print(json.dumps(payload, sort_keys=True))


def _cmd_init(args: argparse.Namespace) -> None:
    config = _resolve_config(args, background_saves=False)
    store = JsonFileStore(args.store, args.baseline)
    with FieldClassifier(config, store) as clf:
        source = clf.initialize()
        store.save(clf.export_snapshot())
        network = clf.network
        _emit(
            {
                "source": source,
                "layer_sizes": network.layer_sizes,
                "version": network.version,
                "store": str(args.store),
            }
        )


def _cmd_predict(args: argparse.Namespace) -> None:
    config = _resolve_config(args, background_saves=False)
    with FieldClassifier(config, JsonFileStore(args.store, args.baseline)) as clf:
        clf.initialize()
        prediction = clf.predict(_parse_features(args.features))
        _emit(
            {
                "label_index": prediction.label_index,
                "label": prediction.label,
                "confidence": prediction.confidence,
                "confident": prediction.confident,
            }
        )


def _cmd_train(args: argparse.Namespace) -> None:
    extra = {"background_saves": False}
    if args.no_dropout:
        extra["dropout_rate"] = 0.0
    config = _resolve_config(args, **extra)
    callbacks = []
    if args.run_dir is not None:
        callbacks = [
            JsonlSink(args.run_dir / "metrics.jsonl", model_version=config.model_version),
            CsvSink(args.run_dir / "metrics.csv"),
        ]
    store = JsonFileStore(args.store, args.baseline)
    with FieldClassifier(config, store, callbacks=callbacks) as clf:
        source = clf.initialize()
        losses: list[float] = []
        for _ in range(max(1, args.epochs)):
            for sample in _read_samples(args.data, config):
                losses.append(clf.train_sample(sample).loss)
        store.save(clf.export_snapshot())
        _emit(
            {
                "source": source,
                "steps": len(losses),
                "update_count": clf.network.update_count,
                "mean_loss": float(np.mean(losses)) if losses else 0.0,
            }
        )


def _cmd_evaluate(args: argparse.Namespace) -> None:
    config = _resolve_config(args, background_saves=False)
    with FieldClassifier(config, JsonFileStore(args.store, args.baseline)) as clf:
        clf.initialize()
        predicted, targets, confidences = [], [], []
        for sample in _read_samples(args.data, config):
            prediction = clf.predict(sample.features)
            predicted.append(prediction.label_index)
            confidences.append(prediction.confidence)
            targets.append(sample.target_label)
        metrics = compute_metrics(
            default_metrics(config.num_classes),
            np.asarray(predicted),
            np.asarray(targets),
            confidences=np.asarray(confidences),
            num_classes=config.num_classes,
        )
        _emit({"samples": len(targets), **metrics})


def _cmd_inspect(args: argparse.Namespace) -> None:
    payload = json.loads(args.store.read_text(encoding="utf-8"))
    snapshot = snapshot_from_payload(payload)
    _emit(
        {
            "version": snapshot.version,
            "layer_sizes": snapshot.layer_sizes,
            "update_count": snapshot.update_count,
            "timestamp": snapshot.timestamp,
            "parameters": snapshot.parameter_count(),
        }
    )


_COMMANDS = {
    "init": _cmd_init,
    "predict": _cmd_predict,
    "train": _cmd_train,
    "evaluate": _cmd_evaluate,
    "inspect": _cmd_inspect,
}


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "presets":
        for name in sorted(presets().keys()):
            print(name)
        raise SystemExit(0)

    try:
        _COMMANDS[args.command](args)
    except ClassifierError as exc:
        logger.error("%s", exc)
        raise SystemExit(f"error: {exc}") from exc


if __name__ == "__main__":  # pragma: no cover - CLI entry
    main()
