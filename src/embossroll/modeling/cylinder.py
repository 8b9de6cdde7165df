"""Extruded cylinder with a square mounting hole and a central plug."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from embossroll.mesh import Mesh, merge_triangle_soups

from .extrude import beveled_extrude
from .profile import disc_with_square_hole


@dataclass(frozen=True)
class CylinderSettings:
    """Fixed construction constants for the cylinder solid."""

    hole_half_width: float = 7.5
    bevel_thickness: float = 1.0
    bevel_size: float = 1.0
    bevel_segments: int = 2
    steps_per_unit: float = 2.5
    curve_segments: int = 150
    socket_depth: float = 15.0
    min_plug_height: float = 0.1
    shell_radius_factor: float = 0.8
    protect_radius_factor: float = 0.9

    def __post_init__(self) -> None:
        if self.hole_half_width <= 0:
            raise ValueError("hole_half_width must be positive.")
        if self.bevel_thickness < 0 or self.bevel_size < 0:
            raise ValueError("bevel dimensions must be >= 0.")
        if self.steps_per_unit <= 0:
            raise ValueError("steps_per_unit must be positive.")
        if self.curve_segments < 3:
            raise ValueError("curve_segments must be >= 3.")
        if self.socket_depth < 0:
            raise ValueError("socket_depth must be >= 0.")
        if not 0.0 < self.shell_radius_factor <= 1.0:
            raise ValueError("shell_radius_factor must be in (0, 1].")
        if not 0.0 < self.protect_radius_factor <= 1.0:
            raise ValueError("protect_radius_factor must be in (0, 1].")

    @property
    def plug_size(self) -> float:
        return 2.0 * self.hole_half_width


DEFAULT_CYLINDER = CylinderSettings()


def extrusion_steps(height: float, settings: CylinderSettings = DEFAULT_CYLINDER) -> int:
    return max(1, int(math.floor(height * settings.steps_per_unit)))


def assign_cylindrical_uvs(mesh: Mesh, radius: float, height: float, shell_factor: float) -> np.ndarray:
    """Give outer-shell vertices wrap-around UVs and return the shell mask.

    A vertex belongs to the shell when its planar radius exceeds
    ``shell_factor × radius``; classifying by radius keeps bevel and cap
    geometry near the axis on its default projected UVs.
    """

    if mesh.uvs is None:
        mesh.uvs = np.zeros((mesh.n_vertices, 2), dtype=float)
    x = mesh.vertices[:, 0]
    y = mesh.vertices[:, 1]
    z = mesh.vertices[:, 2]
    shell = mesh.planar_radius() > radius * shell_factor
    mesh.uvs[shell, 0] = np.arctan2(x[shell], z[shell]) / (2.0 * np.pi) + 0.5
    mesh.uvs[shell, 1] = (y[shell] + height / 2.0) / height
    return shell


def make_plug(size: float, height: float) -> Mesh:
    """Solid square prism of ``size × height × size`` centered on the origin, as a soup."""

    h = size / 2.0
    hy = height / 2.0
    corners = np.array(
        [
            (-h, -hy, -h), (h, -hy, -h), (h, hy, -h), (-h, hy, -h),
            (-h, -hy, h), (h, -hy, h), (h, hy, h), (-h, hy, h),
        ],
        dtype=float,
    )
    # outward-facing quads, counter-clockwise seen from outside
    quads = np.array(
        [
            (4, 5, 6, 7),  # +z
            (1, 0, 3, 2),  # -z
            (5, 1, 2, 6),  # +x
            (0, 4, 7, 3),  # -x
            (3, 7, 6, 2),  # +y
            (0, 1, 5, 4),  # -y
        ],
        dtype=int,
    )
    faces = np.vstack([quads[:, [0, 1, 2]], quads[:, [0, 2, 3]]])
    quad_uv = np.array([(0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 1.0)])
    uvs = np.vstack([quad_uv[[0, 1, 2]]] * len(quads) + [quad_uv[[0, 2, 3]]] * len(quads))
    return Mesh(
        vertices=corners[faces.ravel()],
        faces=np.arange(faces.size).reshape(-1, 3),
        uvs=uvs,
    )


def build_cylinder_solid(
    radius: float,
    height: float,
    settings: CylinderSettings = DEFAULT_CYLINDER,
) -> Mesh:
    """Build the annular extruded cylinder fused with its plug.

    The result is a triangle soup centered on the origin with its axis along
    Y, total height ``height``, smooth vertex normals, and cylindrical UVs on
    the outer shell.
    """

    radius = float(radius)
    height = float(height)
    if radius <= 0 or height <= 0:
        raise ValueError("radius and height must be positive.")
    depth = height - 2.0 * settings.bevel_thickness
    if depth <= 0:
        raise ValueError(
            f"height must exceed twice the bevel thickness ({2.0 * settings.bevel_thickness:g})."
        )

    # bevels shrink the outer ring and push the hole corners out along the diagonal
    cap_hole_corner = (settings.hole_half_width + settings.bevel_size) * math.sqrt(2.0)
    if radius - settings.bevel_size <= cap_hole_corner:
        raise ValueError(
            f"radius must exceed {cap_hole_corner + settings.bevel_size:.3f} to fit the beveled square hole."
        )

    profile = disc_with_square_hole(radius, settings.hole_half_width, settings.curve_segments)
    shell = beveled_extrude(
        profile,
        depth=depth,
        steps=extrusion_steps(height, settings),
        bevel_thickness=settings.bevel_thickness,
        bevel_size=settings.bevel_size,
        bevel_segments=settings.bevel_segments,
    )
    shell.center()
    # extrusion runs along Z; stand it upright on Y
    shell.rotate_vector((1.0, 0.0, 0.0), 90.0)
    assign_cylindrical_uvs(shell, radius, height, settings.shell_radius_factor)

    plug_height = max(settings.min_plug_height, height - 2.0 * settings.socket_depth)
    plug = make_plug(settings.plug_size, plug_height)

    solid = merge_triangle_soups([shell, plug])
    solid.compute_vertex_normals()
    solid.metadata.update(
        radius=radius,
        height=height,
        plug_height=plug_height,
        shell_vertices=shell.n_vertices,
    )
    return solid


__all__ = [
    "CylinderSettings",
    "DEFAULT_CYLINDER",
    "assign_cylindrical_uvs",
    "build_cylinder_solid",
    "extrusion_steps",
    "make_plug",
]
