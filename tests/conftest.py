from __future__ import annotations

import os
from pathlib import Path

import pytest

from embossroll import _config
from embossroll.config import PatternConfig


def pytest_configure():
    os.environ.setdefault("PYVISTA_OFF_SCREEN", "true")
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(autouse=True)
def user_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep ~/.embossroll untouched by pointing the user config at a temp dir."""
    config_dir = tmp_path / "user-config"
    monkeypatch.setattr(_config, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(_config, "CONFIG_FILE", config_dir / "embossroll.cfg")
    return config_dir


@pytest.fixture
def small_config() -> PatternConfig:
    return PatternConfig(text="AB", radius=15.0, height=20.0, emboss_depth=0.4, spacing_x=20.0, spacing_y=120.0)
