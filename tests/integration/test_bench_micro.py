import subprocess
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def test_bench_micro_runs_quickly(tmp_path):
    out = tmp_path / "bench"
    subprocess.check_call(
        [
            sys.executable,
            str(ROOT / "scripts" / "bench_micro.py"),
            "--sizes", "16", "12", "6",
            "--iterations", "5",
            "--out", str(out),
        ]
    )
    md = (out / "bench_micro.md").read_text(encoding="utf-8")
    assert "| DENSE |" in md and "| CSR |" in md and "| INT8 |" in md
    assert (out / "bench_micro.csv").read_text().startswith("mode,avg_ms")
