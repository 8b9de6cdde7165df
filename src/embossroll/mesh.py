from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np

WELD_DECIMALS = 6


@dataclass
class Mesh:
    """Vertex buffer (positions, normals, UVs) plus a triangle index list."""

    vertices: np.ndarray
    faces: np.ndarray
    normals: np.ndarray | None = None
    uvs: np.ndarray | None = None
    color: tuple[float, float, float, float] | None = None
    metadata: dict[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.vertices = np.asarray(self.vertices, dtype=float).reshape(-1, 3).copy()
        self.faces = np.asarray(self.faces, dtype=int).reshape(-1, 3).copy()
        if self.normals is not None:
            self.normals = np.asarray(self.normals, dtype=float).reshape(-1, 3).copy()
            if self.normals.shape[0] != self.n_vertices:
                raise ValueError("normals must have one row per vertex.")
        if self.uvs is not None:
            self.uvs = np.asarray(self.uvs, dtype=float).reshape(-1, 2).copy()
            if self.uvs.shape[0] != self.n_vertices:
                raise ValueError("uvs must have one row per vertex.")
        if self.color is not None and len(self.color) == 3:
            self.color = (self.color[0], self.color[1], self.color[2], 1.0)

    def copy(self) -> "Mesh":
        return Mesh(
            vertices=self.vertices,
            faces=self.faces,
            normals=self.normals,
            uvs=self.uvs,
            color=self.color,
            metadata=dict(self.metadata),
        )

    @property
    def n_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def n_faces(self) -> int:
        return int(self.faces.shape[0])

    @property
    def is_triangle_soup(self) -> bool:
        return self.n_vertices == 3 * self.n_faces and np.array_equal(
            self.faces.ravel(), np.arange(self.n_vertices)
        )

    @property
    def bounds(self) -> tuple[float, float, float, float, float, float]:
        if self.n_vertices == 0:
            return (0.0, 0.0, 0.0, 0.0, 0.0, 0.0)
        mins = self.vertices.min(axis=0)
        maxs = self.vertices.max(axis=0)
        return (float(mins[0]), float(maxs[0]), float(mins[1]), float(maxs[1]), float(mins[2]), float(maxs[2]))

    def planar_radius(self) -> np.ndarray:
        """Distance of each vertex from the vertical (Y) axis."""

        return np.hypot(self.vertices[:, 0], self.vertices[:, 2])

    def translate(self, offset: Sequence[float], inplace: bool = True) -> "Mesh":
        vec = np.asarray(offset, dtype=float).reshape(3)
        mesh = self if inplace else self.copy()
        mesh.vertices = mesh.vertices + vec
        return mesh

    def center(self, inplace: bool = True) -> "Mesh":
        """Translate so the bounding box is centered on the origin."""

        xmin, xmax, ymin, ymax, zmin, zmax = self.bounds
        offset = (-(xmin + xmax) / 2.0, -(ymin + ymax) / 2.0, -(zmin + zmax) / 2.0)
        return self.translate(offset, inplace=inplace)

    def rotate_vector(
        self,
        axis: Sequence[float],
        angle_deg: float,
        point: Sequence[float] = (0.0, 0.0, 0.0),
        inplace: bool = True,
    ) -> "Mesh":
        axis_vec = np.asarray(axis, dtype=float).reshape(3)
        norm = np.linalg.norm(axis_vec)
        if norm == 0:
            raise ValueError("Rotation axis must be non-zero.")
        axis_vec = axis_vec / norm
        angle_rad = np.deg2rad(angle_deg)
        c = np.cos(angle_rad)
        s = np.sin(angle_rad)
        x, y, z = axis_vec
        C = 1.0 - c
        rot = np.array(
            [
                [x * x * C + c, x * y * C - z * s, x * z * C + y * s],
                [y * x * C + z * s, y * y * C + c, y * z * C - x * s],
                [z * x * C - y * s, z * y * C + x * s, z * z * C + c],
            ],
            dtype=float,
        )
        origin = np.asarray(point, dtype=float).reshape(3)
        mesh = self if inplace else self.copy()
        mesh.vertices = (rot @ (mesh.vertices - origin).T).T + origin
        if mesh.normals is not None:
            mesh.normals = (rot @ mesh.normals.T).T
        return mesh

    def to_non_indexed(self) -> "Mesh":
        """Expand to a triangle soup: three private vertices per face."""

        corners = self.faces.ravel()
        return Mesh(
            vertices=self.vertices[corners],
            faces=np.arange(corners.size).reshape(-1, 3),
            normals=None if self.normals is None else self.normals[corners],
            uvs=None if self.uvs is None else self.uvs[corners],
            color=self.color,
            metadata=dict(self.metadata),
        )

    def compute_vertex_normals(self, weld: bool = True) -> "Mesh":
        """Recompute unit vertex normals from the current positions.

        Face normals are area weighted and summed per vertex. With ``weld`` the
        sums are shared between vertices at the same position, so a triangle
        soup still shades (and displaces) as one continuous surface. Vertices
        whose sum cancels out get a zero normal.
        """

        normals = np.zeros_like(self.vertices)
        if self.n_faces == 0:
            self.normals = normals
            return self
        face_normals = face_normals_unnormalized(self)
        if weld:
            keys = np.round(self.vertices, WELD_DECIMALS)
            _, group = np.unique(keys, axis=0, return_inverse=True)
            group = np.asarray(group).reshape(-1)
            sums = np.zeros((int(group.max()) + 1, 3), dtype=float)
            for i in range(3):
                np.add.at(sums, group[self.faces[:, i]], face_normals)
            normals = sums[group]
        else:
            for i in range(3):
                np.add.at(normals, self.faces[:, i], face_normals)
        lengths = np.linalg.norm(normals, axis=1)
        nonzero = lengths > 1e-12
        normals[nonzero] = normals[nonzero] / lengths[nonzero][:, None]
        normals[~nonzero] = 0.0
        self.normals = normals
        return self


def face_normals_unnormalized(mesh: Mesh) -> np.ndarray:
    """Cross products of the triangle edges (length = 2 × area)."""

    if mesh.n_faces == 0:
        return np.zeros((0, 3), dtype=float)
    v0 = mesh.vertices[mesh.faces[:, 0]]
    v1 = mesh.vertices[mesh.faces[:, 1]]
    v2 = mesh.vertices[mesh.faces[:, 2]]
    return np.cross(v1 - v0, v2 - v0)


def face_normals(mesh: Mesh) -> np.ndarray:
    normals = face_normals_unnormalized(mesh)
    lengths = np.linalg.norm(normals, axis=1)
    with np.errstate(invalid="ignore", divide="ignore"):
        normals = np.divide(normals, lengths[:, np.newaxis], where=lengths[:, np.newaxis] > 0)
    normals[~np.isfinite(normals)] = 0.0
    normals[lengths == 0] = 0.0
    return normals


def merge_triangle_soups(meshes: Iterable[Mesh]) -> Mesh:
    """Fuse meshes by concatenating their non-indexed triangle buffers.

    Every operand is expanded to a soup first, so indexed and non-indexed
    inputs can be mixed. Missing normals or UVs on one operand are filled with
    zeros so the merged buffers stay aligned.
    """

    soups = [mesh if mesh.is_triangle_soup else mesh.to_non_indexed() for mesh in meshes]
    if not soups:
        raise ValueError("merge_triangle_soups requires at least one mesh.")

    want_normals = any(mesh.normals is not None for mesh in soups)
    want_uvs = any(mesh.uvs is not None for mesh in soups)
    vertices = np.vstack([mesh.vertices for mesh in soups])
    normals = None
    uvs = None
    if want_normals:
        normals = np.vstack(
            [mesh.normals if mesh.normals is not None else np.zeros((mesh.n_vertices, 3)) for mesh in soups]
        )
    if want_uvs:
        uvs = np.vstack([mesh.uvs if mesh.uvs is not None else np.zeros((mesh.n_vertices, 2)) for mesh in soups])
    color = next((mesh.color for mesh in soups if mesh.color is not None), None)
    return Mesh(
        vertices=vertices,
        faces=np.arange(vertices.shape[0]).reshape(-1, 3),
        normals=normals,
        uvs=uvs,
        color=color,
    )


def mesh_to_pyvista(mesh: Mesh):
    import pyvista as pv

    if mesh.n_faces == 0:
        return pv.PolyData(mesh.vertices, deep=True)
    cells = np.hstack([np.full((mesh.n_faces, 1), 3, dtype=np.int64), mesh.faces.astype(np.int64)])
    poly = pv.PolyData(mesh.vertices, cells.ravel(), deep=True)
    if mesh.normals is not None:
        poly.point_data["Normals"] = mesh.normals
    return poly
