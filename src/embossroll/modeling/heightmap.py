from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from PIL import Image

from embossroll.mesh import Mesh


@dataclass(frozen=True)
class Heightmap:
    """Read-only single-channel intensity raster in [0, 1], indexed [row, column]."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        arr = np.array(self.pixels, dtype=np.float32)
        if arr.ndim != 2 or arr.size == 0:
            raise ValueError("Heightmap pixels must be a non-empty 2D array.")
        arr = np.clip(np.nan_to_num(arr, nan=0.0), 0.0, 1.0)
        arr.setflags(write=False)
        object.__setattr__(self, "pixels", arr)

    @classmethod
    def blank(cls, width: int, height: int) -> "Heightmap":
        return cls(np.zeros((int(height), int(width)), dtype=np.float32))

    @classmethod
    def from_image(cls, image: Image.Image) -> "Heightmap":
        gray = np.asarray(image.convert("L"), dtype=np.float32) / 255.0
        return cls(gray)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def sample(self, u: np.ndarray, v: np.ndarray) -> np.ndarray:
        """Nearest-pixel lookup at ``(floor(u·W) mod W, floor(v·H) mod H)``."""

        u = np.asarray(u, dtype=float)
        v = np.asarray(v, dtype=float)
        px = np.mod(np.floor(u * self.width).astype(np.int64), self.width)
        py = np.mod(np.floor(v * self.height).astype(np.int64), self.height)
        return self.pixels[py, px].astype(float)

    def to_image(self) -> Image.Image:
        return Image.fromarray(np.round(self.pixels * 255.0).astype(np.uint8), mode="L")

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


@dataclass(frozen=True)
class DisplacementRules:
    """Thresholds deciding which shell vertices move and by how much."""

    band_low: float = 0.40
    band_high: float = 0.60
    cap_normal_limit: float = 0.5
    edge_margin: float = 0.05

    def __post_init__(self) -> None:
        if not 0.0 <= self.band_low < self.band_high <= 1.0:
            raise ValueError("displacement band must satisfy 0 <= low < high <= 1.")
        if not 0.0 <= self.cap_normal_limit <= 1.0:
            raise ValueError("cap_normal_limit must be in [0, 1].")
        if not 0.0 <= self.edge_margin < 0.5:
            raise ValueError("edge_margin must be in [0, 0.5).")


DEFAULT_RULES = DisplacementRules()


def smoothstep_weight(intensity: np.ndarray, low: float, high: float) -> np.ndarray:
    """Hermite transfer ``t²(3 − 2t)`` of intensity across ``[low, high]``, clamped to [0, 1]."""

    values = np.nan_to_num(np.asarray(intensity, dtype=float), nan=0.0)
    t = np.clip((np.clip(values, 0.0, 1.0) - low) / (high - low), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def displacement_mask(
    mesh: Mesh,
    min_radius_threshold: float,
    rules: DisplacementRules = DEFAULT_RULES,
) -> np.ndarray:
    """Vertices eligible for displacement; everything else is a hard skip."""

    normals = mesh.normals
    uvs = mesh.uvs
    finite = (
        np.all(np.isfinite(mesh.vertices), axis=1)
        & np.all(np.isfinite(normals), axis=1)
        & np.all(np.isfinite(uvs), axis=1)
    )
    lengths = np.linalg.norm(np.nan_to_num(normals), axis=1)
    with np.errstate(invalid="ignore"):
        eligible = finite & (lengths > 1e-9)
        eligible &= mesh.planar_radius() >= min_radius_threshold
        eligible &= np.abs(normals[:, 1]) <= rules.cap_normal_limit * np.where(lengths > 0, lengths, 1.0)
        v = uvs[:, 1]
        eligible &= (v >= rules.edge_margin) & (v <= 1.0 - rules.edge_margin)
    return eligible


def displace_shell(
    mesh: Mesh,
    heightmap: Heightmap,
    depth: float,
    min_radius_threshold: float,
    rules: DisplacementRules = DEFAULT_RULES,
) -> Mesh:
    """Move outer-shell vertices along their normals by ``weight × depth``.

    Positions are updated in place and normals are recomputed afterwards. A
    negative ``depth`` engraves, a positive one embosses. Vertices inside
    ``min_radius_threshold``, cap-facing vertices, vertices within the flat
    top/bottom margins, and vertices with non-finite data or degenerate
    normals are left untouched.
    """

    if mesh.uvs is None or mesh.n_vertices == 0:
        return mesh
    if mesh.normals is None:
        mesh.compute_vertex_normals()
    depth = float(depth)
    if not np.isfinite(depth) or depth == 0.0:
        return mesh

    eligible = np.flatnonzero(displacement_mask(mesh, float(min_radius_threshold), rules))
    if eligible.size:
        u = mesh.uvs[eligible, 0]
        v = mesh.uvs[eligible, 1]
        weight = smoothstep_weight(heightmap.sample(u, v), rules.band_low, rules.band_high)
        moving = weight > 0.0
        index = eligible[moving]
        normals = mesh.normals[index]
        normals = normals / np.linalg.norm(normals, axis=1)[:, None]
        mesh.vertices[index] += normals * (weight[moving] * depth)[:, None]
        mesh.metadata["displaced_vertices"] = int(index.size)
    mesh.compute_vertex_normals()
    return mesh


__all__ = [
    "DEFAULT_RULES",
    "DisplacementRules",
    "Heightmap",
    "displace_shell",
    "displacement_mask",
    "smoothstep_weight",
]
