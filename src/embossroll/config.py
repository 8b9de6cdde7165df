from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Union

from PIL import Image

from embossroll.validation import (
    ValidationError,
    require_finite,
    require_non_negative,
    require_positive,
)

ImageSource = Union[str, Path, bytes, Image.Image]


class PatternKind(str, Enum):
    TEXT = "text"
    IMAGE = "image"


@dataclass(frozen=True)
class PatternConfig:
    """Immutable snapshot of everything one generation cycle needs."""

    kind: PatternKind = PatternKind.TEXT
    text: str = "VINO's LAB"
    image: ImageSource | None = None
    font_family: str = "Arial"
    font_size: float = 120.0
    letter_spacing: float = 0.0
    image_scale: float = 1.0
    spacing_x: float = 20.0
    spacing_y: float = 120.0
    tilt: float = 0.0
    radius: float = 15.0
    height: float = 60.0
    emboss_depth: float = 0.4

    def __post_init__(self) -> None:
        try:
            kind = PatternKind(self.kind)
        except ValueError as exc:
            raise ValidationError(f"Unknown pattern kind '{self.kind}'.") from exc
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "text", str(self.text))
        object.__setattr__(self, "font_size", require_positive("font_size", self.font_size))
        object.__setattr__(self, "letter_spacing", require_finite("letter_spacing", self.letter_spacing))
        object.__setattr__(self, "image_scale", require_positive("image_scale", self.image_scale))
        object.__setattr__(self, "spacing_x", require_finite("spacing_x", self.spacing_x))
        object.__setattr__(self, "spacing_y", require_finite("spacing_y", self.spacing_y))
        object.__setattr__(self, "tilt", require_finite("tilt", self.tilt))
        object.__setattr__(self, "radius", require_positive("radius", self.radius))
        object.__setattr__(self, "height", require_positive("height", self.height))
        object.__setattr__(self, "emboss_depth", require_non_negative("emboss_depth", self.emboss_depth))
        if isinstance(self.image, str) and not self.image.startswith("data:"):
            object.__setattr__(self, "image", Path(self.image))

    @property
    def content(self) -> str | ImageSource | None:
        """The pattern payload the rasterizer stamps for the active kind."""

        if self.kind is PatternKind.TEXT:
            return self.text
        return self.image

    @property
    def negative_radius(self) -> float:
        return self.radius + self.emboss_depth

    def with_updates(self, **changes: Any) -> "PatternConfig":
        return replace(self, **changes)


_FIELD_NAMES = {f.name for f in fields(PatternConfig)}


def pattern_config_from_mapping(data: Mapping[str, Any], base_dir: Path | None = None) -> PatternConfig:
    """Build a config from a JSON-style mapping; keys starting with '_' are comments."""

    values = {key: value for key, value in data.items() if not str(key).startswith("_")}
    unknown = sorted(set(values) - _FIELD_NAMES)
    if unknown:
        raise ValidationError(f"Unknown configuration keys: {', '.join(unknown)}.")
    image = values.get("image")
    if isinstance(image, str) and base_dir is not None and not image.startswith("data:"):
        path = Path(image).expanduser()
        values["image"] = path if path.is_absolute() else base_dir / path
    return PatternConfig(**values)


def load_pattern_config(path: str | Path) -> PatternConfig:
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ValidationError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError(f"{path} must contain a JSON object.")
    return pattern_config_from_mapping(data, base_dir=path.resolve().parent)


__all__ = [
    "ImageSource",
    "PatternConfig",
    "PatternKind",
    "load_pattern_config",
    "pattern_config_from_mapping",
]
