from __future__ import annotations

import numpy as np

from embossroll.modeling.heightmap import Heightmap


def uniform_heightmap(value: float, size: int = 64) -> Heightmap:
    return Heightmap(np.full((size, size), value, dtype=np.float32))


def planar_radius(vertices: np.ndarray) -> np.ndarray:
    return np.hypot(vertices[:, 0], vertices[:, 2])


def mid_wall(mesh, radius: float, band: float = 0.25) -> np.ndarray:
    """Outer-wall vertices well inside the displaceable height band with horizontal normals."""
    r = planar_radius(mesh.vertices)
    y = mesh.vertices[:, 1]
    half = mesh.metadata["height"] / 2.0
    return (
        np.isclose(r, radius, atol=1e-6)
        & (np.abs(y) < half * (1.0 - band))
        & (np.abs(mesh.normals[:, 1]) < 1e-9)
    )
