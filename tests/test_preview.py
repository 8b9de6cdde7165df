from __future__ import annotations

from pathlib import Path

from rich.console import Console

from embossroll.config import PatternConfig
from embossroll.preview import PairPreviewer, resubmit_config


class _RecordingOrchestrator:
    def __init__(self) -> None:
        self.submitted: list[PatternConfig] = []

    def submit(self, config: PatternConfig) -> int:
        self.submitted.append(config)
        return len(self.submitted)


class _RecordingPlotter:
    camera_position = None


def test_resubmit_config_submits_valid_file(tmp_path: Path):
    path = tmp_path / "pattern.json"
    path.write_text('{"text": "HI", "tilt": 5}')
    orchestrator = _RecordingOrchestrator()
    resubmit_config(orchestrator, path, Console(file=None, quiet=True))
    assert [config.text for config in orchestrator.submitted] == ["HI"]


def test_resubmit_config_reports_bad_edits(tmp_path: Path):
    path = tmp_path / "pattern.json"
    path.write_text('{"radius": -1}')
    orchestrator = _RecordingOrchestrator()
    console = Console(record=True, width=120)
    resubmit_config(orchestrator, path, console)
    assert orchestrator.submitted == []
    assert "Config reload failed" in console.export_text()


def test_reset_camera_looks_at_both_solids(small_config: PatternConfig):
    from embossroll.pipeline import generate_mesh_pair

    pair = generate_mesh_pair(small_config, texture_size=32)
    previewer = PairPreviewer(console=Console(quiet=True))
    plotter = _RecordingPlotter()
    previewer._reset_camera(plotter, pair.placed())
    position, focus, up = plotter.camera_position
    assert abs(focus[0]) < 1.0
    assert position[2] > focus[2]
    assert up == (0.0, 1.0, 0.0)
