from __future__ import annotations

import json
from pathlib import Path

from PIL import Image
from typer.testing import CliRunner

from embossroll.cli import app

runner = CliRunner()


def test_heightmap_command_writes_png(tmp_path: Path):
    output = tmp_path / "map.png"
    result = runner.invoke(app, ["heightmap", "--text", "AB", "--texture-size", "64", "--output", str(output)])
    assert result.exit_code == 0, result.output
    with Image.open(output) as image:
        assert image.size == (64, 64)
        assert image.mode == "L"


def test_export_command_writes_stl(tmp_path: Path):
    config_path = tmp_path / "pattern.json"
    config_path.write_text(json.dumps({"text": "AB", "height": 20}))
    out_dir = tmp_path / "exports"
    result = runner.invoke(
        app,
        ["export", str(config_path), "--texture-size", "64", "--output", str(out_dir)],
    )
    assert result.exit_code == 0, result.output
    exported = list(out_dir.glob("embossed_cylinder_set_*.stl"))
    assert len(exported) == 1
    assert exported[0].stat().st_size > 84


def test_export_rejects_invalid_values(tmp_path: Path):
    result = runner.invoke(app, ["export", "--radius", "-3", "--output", str(tmp_path)])
    assert result.exit_code != 0
    assert not list(tmp_path.glob("*.stl"))


def test_missing_image_is_reported(tmp_path: Path):
    result = runner.invoke(
        app,
        ["heightmap", "--image", str(tmp_path / "nope.png"), "--texture-size", "64", "--output", str(tmp_path / "m.png")],
    )
    assert result.exit_code != 0
