"""Build a positive/negative roller pair from Python and export it.

Run with:
  python examples/generate_pair.py [output-dir]
"""

from __future__ import annotations

import sys
from pathlib import Path

from rich.console import Console

from embossroll import PatternConfig, generate_mesh_pair
from embossroll.pipeline import export_mesh_pair


def build(texture_size: int = 1024):
    config = PatternConfig(text="ROLL", tilt=20.0, spacing_x=15.0, spacing_y=60.0, height=40.0)
    return generate_mesh_pair(config, texture_size=texture_size)


if __name__ == "__main__":
    console = Console()
    out_dir = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("dist")
    pair = build()
    path = export_mesh_pair(pair, out_dir)
    console.print(f"Wrote [green]{path}[/green] ({pair.positive.n_faces + pair.negative.n_faces} triangles)")
