"""Render a tiled text or bitmap pattern into a grayscale heightmap."""

from __future__ import annotations

import base64
import binascii
import io
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from embossroll.cache import LRUCache
from embossroll.config import ImageSource, PatternConfig, PatternKind

from .heightmap import Heightmap

BASE_RESOLUTION = 1024
IMAGE_BASE_SIZE = 50.0
SILHOUETTE_PADDING = 1.5
BLUR_PER_SCALE = 0.5
FALLBACK_FONTS = ("DejaVuSans-Bold.ttf", "DejaVuSans.ttf", "LiberationSans-Bold.ttf", "Arial.ttf")

_FONT_CACHE: LRUCache[tuple[str, int], ImageFont.FreeTypeFont | ImageFont.ImageFont] = LRUCache(max_size=16)
_IMAGE_CACHE: LRUCache[tuple[str, float], Image.Image] = LRUCache(max_size=8)


class PatternLoadError(RuntimeError):
    """Raised when a pattern asset (bitmap) cannot be decoded."""


@dataclass(frozen=True)
class RasterOptions:
    """Pattern layout parameters in UI units (defined at BASE_RESOLUTION)."""

    font_family: str = "Arial"
    font_size: float = 120.0
    letter_spacing: float = 0.0
    image_scale: float = 1.0
    spacing_x: float = 20.0
    spacing_y: float = 120.0
    tilt: float = 0.0

    @classmethod
    def from_config(cls, config: PatternConfig) -> "RasterOptions":
        return cls(
            font_family=config.font_family,
            font_size=config.font_size,
            letter_spacing=config.letter_spacing,
            image_scale=config.image_scale,
            spacing_x=config.spacing_x,
            spacing_y=config.spacing_y,
            tilt=config.tilt,
        )


def scale_factor(width: int) -> float:
    return float(width) / BASE_RESOLUTION


def rasterize_pattern(
    kind: PatternKind | str,
    content: str | ImageSource | None,
    width: int,
    height: int,
    options: RasterOptions | None = None,
) -> Heightmap:
    """Stamp the pattern across a ``width × height`` canvas and return its heightmap.

    Tiles are laid on a grid that overshoots the canvas by one tile on every
    side, each tile rotated by ``tilt`` about its own center and softened with
    a small blur. Empty text or a missing image yields an all-background map.
    Raises ``PatternLoadError`` when image content cannot be decoded.
    """

    width = int(width)
    height = int(height)
    if width <= 0 or height <= 0:
        raise ValueError("heightmap dimensions must be positive.")
    options = options or RasterOptions()
    kind = PatternKind(kind)
    scale = scale_factor(width)

    surface = _acquire_surface(width, height)
    if surface is None:
        return Heightmap.blank(width, height)

    if kind is PatternKind.TEXT:
        if not content:
            return Heightmap.from_image(surface)
        tile, period_x, period_y = _text_tile(str(content), options, scale)
    else:
        if content is None:
            return Heightmap.from_image(surface)
        tile, period_x, period_y = _image_tile(load_pattern_image(content), options, scale)

    tile = tile.rotate(-options.tilt, resample=Image.Resampling.BICUBIC, expand=True, fillcolor=0)
    blur = BLUR_PER_SCALE * scale
    if blur > 0:
        tile = tile.filter(ImageFilter.GaussianBlur(radius=blur))

    for cx, cy in _grid_centers(width, height, period_x, period_y):
        corner = (int(round(cx - tile.width / 2.0)), int(round(cy - tile.height / 2.0)))
        surface.paste(255, corner, mask=tile)

    return Heightmap.from_image(surface)


def rasterize_config(config: PatternConfig, size: int) -> Heightmap:
    return rasterize_pattern(config.kind, config.content, size, size, RasterOptions.from_config(config))


def _acquire_surface(width: int, height: int) -> Image.Image | None:
    try:
        return Image.new("L", (width, height), 0)
    except MemoryError:
        return None


def _grid_centers(width: int, height: int, period_x: float, period_y: float) -> Iterator[tuple[float, float]]:
    period_x = max(period_x, 1.0)
    period_y = max(period_y, 1.0)
    cols = math.ceil(width / period_x) + 2
    rows = math.ceil(height / period_y) + 2
    for i in range(-1, cols):
        for j in range(-1, rows):
            yield i * period_x, j * period_y


def _padding(scale: float) -> int:
    return int(math.ceil(BLUR_PER_SCALE * scale * 3.0)) + 2


def _text_tile(text: str, options: RasterOptions, scale: float) -> tuple[Image.Image, float, float]:
    font_px = max(1, int(round(options.font_size * scale)))
    font = load_font(options.font_family, font_px)
    letter_spacing = options.letter_spacing * scale

    advances = [font.getlength(ch) + letter_spacing for ch in text]
    run_width = max(sum(advances), 1.0)
    _, top, _, bottom = font.getbbox(text)
    pad = _padding(scale)

    tile = Image.new("L", (int(math.ceil(run_width)) + 2 * pad, int(bottom - top) + 2 * pad), 0)
    draw = ImageDraw.Draw(tile)
    x = float(pad)
    for ch, advance in zip(text, advances):
        draw.text((x, pad - top), ch, fill=255, font=font)
        x += advance

    period_x = run_width + options.spacing_x * scale
    period_y = font_px + options.spacing_y * scale
    return tile, period_x, period_y


def _image_tile(source: Image.Image, options: RasterOptions, scale: float) -> tuple[Image.Image, float, float]:
    """White silhouette of the bitmap (alpha kept, color forced to max) on a 1.5× buffer."""

    rgba = source.convert("RGBA")
    aspect = rgba.width / max(rgba.height, 1)
    draw_h = IMAGE_BASE_SIZE * options.image_scale * scale
    draw_w = draw_h * aspect
    size = (max(1, int(round(draw_w))), max(1, int(round(draw_h))))
    alpha = rgba.getchannel("A").resize(size, Image.Resampling.LANCZOS)

    buffer = Image.new(
        "L",
        (int(math.ceil(draw_w * SILHOUETTE_PADDING)), int(math.ceil(draw_h * SILHOUETTE_PADDING))),
        0,
    )
    buffer.paste(alpha, ((buffer.width - size[0]) // 2, (buffer.height - size[1]) // 2))

    period_x = draw_w + options.spacing_x * scale
    period_y = draw_h + options.spacing_y * scale
    return buffer, period_x, period_y


def _font_candidates(family: str) -> Iterator[str]:
    compact = family.replace(" ", "")
    yield family
    yield f"{family}.ttf"
    yield f"{compact}.ttf"
    yield f"{compact}-Bold.ttf"
    yield f"{compact}-Regular.ttf"
    yield f"{compact.lower()}.ttf"
    yield from FALLBACK_FONTS


def load_font(family: str, size_px: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Resolve a font family to a TrueType face, falling back to Pillow's default font."""

    def load() -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        for candidate in _font_candidates(family):
            try:
                return ImageFont.truetype(candidate, size_px)
            except OSError:
                continue
        return ImageFont.load_default(size=size_px)

    return _FONT_CACHE.get_or_load((family, size_px), load)


def load_pattern_image(content: ImageSource) -> Image.Image:
    """Decode image content given as a PIL image, path, raw bytes, or data URL."""

    if isinstance(content, Image.Image):
        return content
    try:
        if isinstance(content, (bytes, bytearray)):
            return _decode(bytes(content))
        if isinstance(content, str) and content.startswith("data:"):
            _, _, payload = content.partition(",")
            return _decode(base64.b64decode(payload, validate=True))
        path = Path(content)
        key = (str(path.resolve()), path.stat().st_mtime)
        return _IMAGE_CACHE.get_or_load(key, lambda: _open_path(path))
    except (OSError, binascii.Error, ValueError) as exc:
        raise PatternLoadError(f"Unable to load pattern image: {exc}") from exc


def _decode(data: bytes) -> Image.Image:
    with Image.open(io.BytesIO(data)) as opened:
        opened.load()
        return opened.copy()


def _open_path(path: Path) -> Image.Image:
    with Image.open(path) as opened:
        opened.load()
        return opened.copy()


__all__ = [
    "BASE_RESOLUTION",
    "PatternLoadError",
    "RasterOptions",
    "load_font",
    "load_pattern_image",
    "rasterize_config",
    "rasterize_pattern",
    "scale_factor",
]
