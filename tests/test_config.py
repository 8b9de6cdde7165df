from __future__ import annotations

import json
from pathlib import Path

import pytest

from embossroll import _config
from embossroll.cache import LRUCache
from embossroll.config import PatternConfig, PatternKind, load_pattern_config, pattern_config_from_mapping
from embossroll.validation import ValidationError


def test_pattern_config_defaults():
    config = PatternConfig()
    assert config.kind is PatternKind.TEXT
    assert config.text == "VINO's LAB"
    assert (config.radius, config.height, config.emboss_depth) == (15.0, 60.0, 0.4)
    assert (config.spacing_x, config.spacing_y, config.font_size) == (20.0, 120.0, 120.0)
    assert config.negative_radius == pytest.approx(15.4)
    assert config.content == "VINO's LAB"


@pytest.mark.parametrize(
    "changes",
    [
        {"radius": 0.0},
        {"height": -1.0},
        {"emboss_depth": -0.1},
        {"font_size": float("nan")},
        {"tilt": float("inf")},
        {"kind": "video"},
        {"spacing_x": "wide"},
    ],
)
def test_pattern_config_rejects_bad_values(changes):
    with pytest.raises(ValidationError):
        PatternConfig(**changes)


def test_with_updates_returns_new_snapshot():
    config = PatternConfig()
    tilted = config.with_updates(tilt=12.5)
    assert tilted.tilt == 12.5
    assert config.tilt == 0.0
    with pytest.raises(ValidationError):
        config.with_updates(radius=-2.0)


def test_image_content_and_data_urls():
    config = PatternConfig(kind="image", image="logo.png")
    assert config.kind is PatternKind.IMAGE
    assert config.content == Path("logo.png")
    url = "data:image/png;base64,AAAA"
    assert PatternConfig(kind="image", image=url).image == url


def test_load_pattern_config_resolves_relative_image(tmp_path: Path):
    path = tmp_path / "pattern.json"
    path.write_text(json.dumps({"_note": "ignored", "kind": "image", "image": "art/logo.png", "tilt": 15}))
    config = load_pattern_config(path)
    assert config.image == tmp_path.resolve() / "art" / "logo.png"
    assert config.tilt == 15.0


def test_unknown_keys_and_bad_json(tmp_path: Path):
    with pytest.raises(ValidationError, match="colour"):
        pattern_config_from_mapping({"colour": "red"})
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    with pytest.raises(ValidationError):
        load_pattern_config(broken)
    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]")
    with pytest.raises(ValidationError):
        load_pattern_config(listing)


def test_user_settings_defaults(user_config_dir: Path):
    settings = _config.get_user_settings()
    assert (user_config_dir / "embossroll.cfg").exists()
    assert settings.units == "millimeters"
    assert settings.unit_label == "mm"
    assert settings.texture_size == 4096
    assert settings.debounce_seconds == pytest.approx(0.5)
    assert settings.cylinder.curve_segments == 150


def test_user_settings_overrides(user_config_dir: Path):
    user_config_dir.mkdir(parents=True)
    (user_config_dir / "embossroll.cfg").write_text(
        json.dumps(
            {
                "units": "IN",
                "texture_size": 512,
                "debounce_ms": 100,
                "cylinder": {"curve_segments": 64, "hole_half_width": "wide"},
                "displacement": {"band_low": 0.7},
            }
        )
    )
    settings = _config.get_user_settings()
    assert settings.units == "inches"
    assert settings.scale_to_mm == 25.4
    assert settings.texture_size == 512
    assert settings.debounce_seconds == pytest.approx(0.1)
    assert settings.cylinder.curve_segments == 64
    assert settings.cylinder.hole_half_width == 7.5
    assert settings.displacement.band_low == 0.40


def test_lru_cache_evicts_oldest():
    cache: LRUCache[str, int] = LRUCache(max_size=2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1
    cache.set("c", 3)
    assert cache.get("b") is None
    assert len(cache) == 2

    loads = []
    assert cache.get_or_load("d", lambda: loads.append(1) or 4) == 4
    assert cache.get_or_load("d", lambda: loads.append(1) or 5) == 4
    assert loads == [1]
    with pytest.raises(ValueError):
        LRUCache(max_size=0)
