from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, TypeVar

from embossroll.modeling.cylinder import CylinderSettings
from embossroll.modeling.heightmap import DisplacementRules

CONFIG_DIR = Path.home() / ".embossroll"
CONFIG_FILE = CONFIG_DIR / "embossroll.cfg"
DEFAULT_TEXTURE_SIZE = 4096
DEFAULT_DEBOUNCE_MS = 500
DEFAULT_CONFIG = {
    "_comment": "Valid units: millimeters (default), meters, inches. Value is case-insensitive.",
    "units": "millimeters",
    "texture_size": DEFAULT_TEXTURE_SIZE,
    "debounce_ms": DEFAULT_DEBOUNCE_MS,
}
_UNIT_INFO: Dict[str, Dict[str, Any]] = {
    "millimeters": {"label": "mm", "scale_to_mm": 1.0},
    "meters": {"label": "m", "scale_to_mm": 1000.0},
    "inches": {"label": "in", "scale_to_mm": 25.4},
}
_UNIT_ALIASES = {
    "millimeter": "millimeters",
    "mm": "millimeters",
    "meter": "meters",
    "m": "meters",
    "inch": "inches",
    "in": "inches",
}

T = TypeVar("T")


@dataclass(frozen=True)
class UserSettings:
    """Resolved settings from embossroll.cfg."""

    units: str
    unit_label: str
    scale_to_mm: float
    texture_size: int
    debounce_seconds: float
    cylinder: CylinderSettings
    displacement: DisplacementRules


def ensure_user_config() -> None:
    """Ensure ~/.embossroll/embossroll.cfg exists with sane defaults."""

    try:
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    except OSError:
        return

    if CONFIG_FILE.exists():
        return

    try:
        CONFIG_FILE.write_text(json.dumps(DEFAULT_CONFIG, indent=2) + "\n")
    except OSError:
        return


def _load_user_config() -> Dict[str, Any]:
    ensure_user_config()
    try:
        data = json.loads(CONFIG_FILE.read_text())
    except (OSError, json.JSONDecodeError):
        return DEFAULT_CONFIG.copy()
    return data if isinstance(data, dict) else DEFAULT_CONFIG.copy()


def _normalize_units(value: str) -> str | None:
    key = value.strip().lower()
    if key in _UNIT_INFO:
        return key
    return _UNIT_ALIASES.get(key)


def _positive_int(value: Any, fallback: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return fallback
    return number if number > 0 else fallback


def _override(defaults: T, section: Any) -> T:
    """Apply numeric overrides from a cfg section onto a frozen settings dataclass."""

    if not isinstance(section, dict):
        return defaults
    allowed = {f.name for f in fields(defaults)}
    changes = {}
    for key, value in section.items():
        if key in allowed and isinstance(value, (int, float)) and not isinstance(value, bool):
            changes[key] = value
    if not changes:
        return defaults
    try:
        return replace(defaults, **changes)
    except ValueError:
        return defaults


def get_user_settings() -> UserSettings:
    """Return the configured units, raster resolution, debounce and geometry constants."""

    raw_config = _load_user_config()
    raw_units = str(raw_config.get("units", DEFAULT_CONFIG["units"]))
    normalized = _normalize_units(raw_units)
    if normalized is None:
        normalized = DEFAULT_CONFIG["units"]
    info = _UNIT_INFO[normalized]

    texture_size = _positive_int(raw_config.get("texture_size"), DEFAULT_TEXTURE_SIZE)
    debounce_ms = raw_config.get("debounce_ms", DEFAULT_DEBOUNCE_MS)
    if not isinstance(debounce_ms, (int, float)) or debounce_ms < 0:
        debounce_ms = DEFAULT_DEBOUNCE_MS

    return UserSettings(
        units=normalized,
        unit_label=info["label"],
        scale_to_mm=info["scale_to_mm"],
        texture_size=texture_size,
        debounce_seconds=float(debounce_ms) / 1000.0,
        cylinder=_override(CylinderSettings(), raw_config.get("cylinder")),
        displacement=_override(DisplacementRules(), raw_config.get("displacement")),
    )
