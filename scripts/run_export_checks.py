#!/usr/bin/env python3
"""Export every example pattern through the CLI and sanity-check the STL."""

from __future__ import annotations

import json
import subprocess
import sys
import time
from datetime import datetime, timezone
from pathlib import Path

import pyvista as pv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DIST_DIR = PROJECT_ROOT / "dist" / "export-checks"
RESULTS_FILE = DIST_DIR / "results.json"
SUITE_NAME = "export-checks"
TEXTURE_SIZE = 1024

CASES = [
    {"name": "vino-lab", "config": "examples/vino_lab.json"},
    {"name": "tilted-dense", "config": "examples/tilted_dense.json"},
]


def _isoformat(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def _expected_height(config_path: Path) -> float:
    data = json.loads(config_path.read_text())
    return float(data.get("height", 60.0))


def run_case(case: dict, verbose: bool = False) -> dict:
    config_path = PROJECT_ROOT / case["config"]
    out_dir = DIST_DIR / case["name"]
    out_dir.mkdir(parents=True, exist_ok=True)
    for stale in out_dir.glob("*.stl"):
        stale.unlink()
    cmd = [
        sys.executable,
        "-m",
        "embossroll.cli",
        "export",
        str(config_path),
        "--output",
        str(out_dir),
        "--texture-size",
        str(TEXTURE_SIZE),
    ]
    started_at = datetime.now(timezone.utc)
    start_monotonic = time.perf_counter()
    if verbose:
        print(f"{case['name']} - {_isoformat(started_at)}")
    proc = subprocess.run(cmd, cwd=PROJECT_ROOT, capture_output=True, text=True)
    ended_at = datetime.now(timezone.utc)
    duration = time.perf_counter() - start_monotonic

    exported = sorted(out_dir.glob("*.stl"))
    height_ok = None
    analysis_error = None
    n_cells = None
    if proc.returncode == 0 and exported:
        expected_height = _expected_height(config_path)
        try:
            mesh = pv.read(exported[-1])
            n_cells = mesh.n_cells
            ymin, ymax = mesh.bounds[2], mesh.bounds[3]
            height_ok = abs((ymax - ymin) - expected_height) < 1e-3
        except Exception as exc:  # pragma: no cover - pyvista read failure
            height_ok = False
            analysis_error = str(exc)

    success = proc.returncode == 0 and height_ok is True
    if verbose:
        status = "PASS" if success else "FAIL"
        print(f"{status} - {_isoformat(ended_at)} ({duration:.2f}s)")
        if analysis_error:
            print(f"  {analysis_error}")
        elif proc.returncode != 0:
            print(f"  {proc.stderr.strip() or proc.stdout.strip()}")
        print()

    return {
        "name": case["name"],
        "config": case["config"],
        "returncode": proc.returncode,
        "stdout": proc.stdout.strip(),
        "stderr": proc.stderr.strip(),
        "stl_path": str(exported[-1].relative_to(PROJECT_ROOT)) if exported else None,
        "height_matches": height_ok,
        "analysis_error": analysis_error,
        "n_cells": n_cells,
        "started_at": _isoformat(started_at),
        "ended_at": _isoformat(ended_at),
        "duration_seconds": duration,
    }


def main() -> int:
    DIST_DIR.mkdir(parents=True, exist_ok=True)
    suite_start = datetime.now(timezone.utc)
    print(f"Starting {SUITE_NAME}")
    print(f"time: {_isoformat(suite_start)}")
    print("--")
    results = [run_case(case, verbose=True) for case in CASES]
    suite_end = datetime.now(timezone.utc)
    payload = {
        "suite": SUITE_NAME,
        "suite_started_at": _isoformat(suite_start),
        "suite_ended_at": _isoformat(suite_end),
        "cases": results,
    }
    RESULTS_FILE.write_text(json.dumps(payload, indent=2))

    failures = [case for case in results if case["returncode"] != 0 or case["height_matches"] is not True]
    print(f"suite end - {_isoformat(suite_end)} ({'PASS' if not failures else 'FAIL'})")
    print(f"Wrote results to {RESULTS_FILE}")
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
