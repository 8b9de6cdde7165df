from __future__ import annotations

import numpy as np

from embossroll.mesh import Mesh

from .profile import Profile2D


def _cap_faces(
    vertices: np.ndarray,
    faces: np.ndarray,
    expected_normal: np.ndarray,
) -> np.ndarray:
    if faces.size == 0:
        return faces
    tri = faces.copy()
    v1 = vertices[tri[:, 1]] - vertices[tri[:, 0]]
    v2 = vertices[tri[:, 2]] - vertices[tri[:, 0]]
    normals = np.cross(v1, v2)
    dots = np.einsum("ij,j->i", normals, expected_normal)
    flip = dots < 0
    if np.any(flip):
        tri[flip] = tri[flip][:, [0, 2, 1]]
    return tri


def _layer_schedule(
    depth: float,
    steps: int,
    bevel_thickness: float,
    bevel_size: float,
    bevel_segments: int,
) -> list[tuple[float, float]]:
    """Return (z, inset) for every ring of the extrusion, bottom to top."""

    bevel = [] if bevel_segments <= 0 or bevel_thickness <= 0 else [
        (
            bevel_thickness * np.cos(t * np.pi / 2.0),
            bevel_size * (1.0 - np.sin(t * np.pi / 2.0)),
        )
        for t in (b / bevel_segments for b in range(bevel_segments))
    ]
    layers = [(-z, inset) for z, inset in bevel]
    layers.extend((depth * s / steps, 0.0) for s in range(steps + 1))
    layers.extend((depth + z, inset) for z, inset in reversed(bevel))
    return layers


def beveled_extrude(
    profile: Profile2D,
    depth: float,
    steps: int = 1,
    bevel_thickness: float = 0.0,
    bevel_size: float = 0.0,
    bevel_segments: int = 0,
) -> Mesh:
    """Extrude a profile along +Z with rounded bevels, as a triangle soup.

    The straight wall spans ``z ∈ [0, depth]`` at the profile's exact outline
    and is split into ``steps`` rings. Bevel rings extend ``bevel_thickness``
    beyond each end, pulling the outline into the material by up to
    ``bevel_size`` so the caps are slightly smaller than the wall. Vertices
    carry default projected UVs: caps use their planar (x, y), side walls use
    (x or y along the edge, z).
    """

    depth = float(depth)
    if depth <= 0:
        raise ValueError("depth must be positive.")
    steps = int(steps)
    if steps < 1:
        raise ValueError("steps must be >= 1.")
    if bevel_thickness < 0 or bevel_size < 0:
        raise ValueError("bevel dimensions must be >= 0.")

    base = profile.points()
    miters = profile.inset_directions()
    n_points = base.shape[0]
    layers = _layer_schedule(depth, steps, float(bevel_thickness), float(bevel_size), int(bevel_segments))

    rings = [
        np.column_stack([base + miters * inset, np.full(n_points, z)])
        for z, inset in layers
    ]
    positions = np.vstack(rings)
    n_layers = len(rings)

    cap = profile.triangulate()
    bottom = _cap_faces(positions, cap, expected_normal=np.array([0.0, 0.0, -1.0]))
    top = _cap_faces(positions, cap + (n_layers - 1) * n_points, expected_normal=np.array([0.0, 0.0, 1.0]))

    walls = []
    along_x = []
    offset = 0
    ring_offsets = (np.arange(n_layers - 1) * n_points)[:, None]
    for loop in profile.loops:
        count = loop.shape[0]
        i = np.arange(count)
        j = (i + 1) % count
        b0 = (ring_offsets + offset + i).ravel()
        b1 = (ring_offsets + offset + j).ravel()
        t0 = b0 + n_points
        t1 = b1 + n_points
        quads = np.stack(
            [np.column_stack([b0, b1, t1]), np.column_stack([b0, t1, t0])],
            axis=1,
        ).reshape(-1, 3)
        walls.append(quads)
        edge = np.abs(loop[j] - loop[i])
        along = np.tile(edge[:, 0] >= edge[:, 1], n_layers - 1)
        along_x.append(np.repeat(along, 2))
        offset += count

    cap_faces = np.vstack([bottom, top])
    wall_faces = np.vstack(walls)
    faces = np.vstack([cap_faces, wall_faces])

    corners = faces.ravel()
    soup = positions[corners]
    uvs = soup[:, :2].copy()
    n_cap_corners = cap_faces.size
    wall_soup = soup[n_cap_corners:]
    wall_along_x = np.repeat(np.concatenate(along_x), 3)
    uvs[n_cap_corners:, 0] = np.where(wall_along_x, wall_soup[:, 0], wall_soup[:, 1])
    uvs[n_cap_corners:, 1] = wall_soup[:, 2]

    mesh = Mesh(vertices=soup, faces=np.arange(corners.size).reshape(-1, 3), uvs=uvs)
    mesh.metadata["layers"] = n_layers
    return mesh


__all__ = ["beveled_extrude"]
