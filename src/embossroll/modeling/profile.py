from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import numpy as np


def _signed_area(points: np.ndarray) -> float:
    if points.shape[0] < 3:
        return 0.0
    x = points[:, 0]
    y = points[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))


def _ensure_winding(points: np.ndarray, clockwise: bool) -> np.ndarray:
    if points.shape[0] < 3:
        return points
    is_cw = _signed_area(points) < 0
    if is_cw != clockwise:
        return points[::-1].copy()
    return points


@dataclass
class Profile2D:
    """Closed 2D outline with holes, stored as sampled loops.

    The outer loop is kept counter-clockwise and every hole clockwise, so the
    left-hand normal of each edge always points into the solid material.
    """

    outer: np.ndarray
    holes: List[np.ndarray] = field(default_factory=list)

    def __post_init__(self) -> None:
        outer = np.asarray(self.outer, dtype=float).reshape(-1, 2)
        if outer.shape[0] < 3:
            raise ValueError("Profile2D outer loop needs at least three points.")
        self.outer = _ensure_winding(outer, clockwise=False)
        holes = []
        for hole in self.holes:
            pts = np.asarray(hole, dtype=float).reshape(-1, 2)
            if pts.shape[0] < 3:
                raise ValueError("Profile2D hole loops need at least three points.")
            holes.append(_ensure_winding(pts, clockwise=True))
        self.holes = holes

    @property
    def loops(self) -> list[np.ndarray]:
        return [self.outer, *self.holes]

    @property
    def n_points(self) -> int:
        return sum(loop.shape[0] for loop in self.loops)

    def points(self) -> np.ndarray:
        return np.vstack(self.loops)

    def triangulate(self) -> np.ndarray:
        """Triangulate the profile (outer minus holes) into indices over ``points()``."""

        try:
            import mapbox_earcut as earcut
        except ImportError as exc:  # pragma: no cover - runtime dependency
            raise ImportError("mapbox_earcut is required for profile triangulation.") from exc

        vertices = self.points().astype(np.float32)
        ring_ends = np.cumsum([loop.shape[0] for loop in self.loops]).astype(np.uint32)
        indices = earcut.triangulate_float32(vertices, ring_ends)
        return np.asarray(indices, dtype=np.int64).reshape(-1, 3)

    def inset_directions(self) -> np.ndarray:
        """Per-point miter vectors that move the outline into the material by one unit."""

        return np.vstack([_miter_vectors(loop) for loop in self.loops])


def _miter_vectors(loop: np.ndarray) -> np.ndarray:
    incoming = loop - np.roll(loop, 1, axis=0)
    outgoing = np.roll(loop, -1, axis=0) - loop
    n_in = _left_normals(incoming)
    n_out = _left_normals(outgoing)
    bisector = n_in + n_out
    lengths = np.linalg.norm(bisector, axis=1)
    degenerate = lengths < 1e-12
    bisector[degenerate] = n_out[degenerate]
    lengths[degenerate] = 1.0
    bisector = bisector / lengths[:, None]
    # stretch so the offset edges stay parallel at the requested distance
    cos_half = np.einsum("ij,ij->i", bisector, n_out)
    cos_half = np.where(np.abs(cos_half) < 1e-6, 1.0, cos_half)
    return bisector / cos_half[:, None]


def _left_normals(edges: np.ndarray) -> np.ndarray:
    normals = np.column_stack([-edges[:, 1], edges[:, 0]])
    lengths = np.linalg.norm(normals, axis=1)
    lengths[lengths == 0] = 1.0
    return normals / lengths[:, None]


def circle_loop(radius: float, segments: int) -> np.ndarray:
    if radius <= 0:
        raise ValueError("radius must be positive.")
    if segments < 3:
        raise ValueError("segments must be >= 3.")
    angles = np.linspace(0.0, 2 * np.pi, int(segments), endpoint=False)
    return np.column_stack([np.cos(angles), np.sin(angles)]) * float(radius)


def square_loop(half_width: float) -> np.ndarray:
    if half_width <= 0:
        raise ValueError("half_width must be positive.")
    h = float(half_width)
    return np.array([(-h, -h), (h, -h), (h, h), (-h, h)], dtype=float)


def disc_with_square_hole(radius: float, half_hole: float, segments: int) -> Profile2D:
    """Circle of ``radius`` with a centered square hole of half-width ``half_hole``."""

    if half_hole * np.sqrt(2.0) >= radius:
        raise ValueError("square hole must fit inside the circle.")
    return Profile2D(outer=circle_loop(radius, segments), holes=[square_loop(half_hole)])


__all__ = ["Profile2D", "circle_loop", "square_loop", "disc_with_square_hole"]
