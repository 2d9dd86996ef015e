from __future__ import annotations

import argparse
import csv
import json
import sys
from pathlib import Path

MODES = [
    ("dense", {}),
    ("pruned", {"prune_threshold": 0.05}),
    ("int8", {"prune_threshold": 0.05, "quantize": True}),
    ("csr", {"prune_threshold": 0.05, "sparse_threshold": 0.0}),
]


def main():
    root = Path(__file__).resolve().parents[1]
    if str(root) not in sys.path:
        sys.path.insert(0, str(root))

    import numpy as np

    from fieldnet.core.kernel import benchmark
    from fieldnet.core.network import init_network
    from fieldnet.core.strategies import make_execution
    from fieldnet.inference.engine import InferenceEngine

    ap = argparse.ArgumentParser()
    ap.add_argument("--sizes", nargs="+", type=int, default=[84, 32, 16, 88])
    ap.add_argument("--iterations", type=int, default=200)
    ap.add_argument("--seed", type=int, default=123)
    ap.add_argument("--out", type=str, default=".artifacts/bench")
    args = ap.parse_args()

    out = Path(args.out)
    out.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(args.seed)
    network = init_network(args.sizes, version=0, rng=rng)
    inputs = rng.random((32, args.sizes[0]))
    dense = InferenceEngine()
    reference = [dense.predict(network, x).label_index for x in inputs]

    runs = []
    for name, options in MODES:
        kind = "dense" if name == "dense" else "compressed"
        engine = InferenceEngine(make_execution(kind, **options))
        timing = benchmark(lambda: engine.predict(network, inputs[0]), iterations=args.iterations)
        agree = np.mean(
            [engine.predict(network, x).label_index == ref for x, ref in zip(inputs, reference)]
        )
        runs.append({"mode": name, **timing, "agreement": float(agree), **engine.stats(network)})
    (out / "results.jsonl").write_text(
        "\n".join(json.dumps(x) for x in runs), encoding="utf-8"
    )

    csv_path = out / "bench_micro.csv"
    columns = ["mode", "avg_ms", "min_ms", "max_ms", "agreement", "sparsity", "memory_reduction"]
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(columns)
        for r in runs:
            w.writerow([r["mode"]] + [f"{r[c]:.4f}" for c in columns[1:]])

    md_path = out / "bench_micro.md"
    lines = []
    lines.append("### Micro-Benchmark: dense vs compressed inference")
    lines.append("")
    lines.append(f"- Sizes: `{args.sizes}`; Iterations: `{args.iterations}`; Seed: `{args.seed}`")
    lines.append("")
    lines.append("| Mode | Avg ms | Min ms | Agreement | Sparsity | Memory saved % |")
    lines.append("|---|---:|---:|---:|---:|---:|")
    for r in runs:
        lines.append(
            f"| {r['mode'].upper()} | {r['avg_ms']:.4f} | {r['min_ms']:.4f} | "
            f"{r['agreement']:.3f} | {r['sparsity']:.3f} | {r['memory_reduction']:.1f} |"
        )
    md_path.write_text("\n".join(lines), encoding="utf-8")
    print("Wrote:", csv_path, md_path)


if __name__ == "__main__":
    main()
