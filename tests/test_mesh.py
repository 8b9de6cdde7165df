from __future__ import annotations

import numpy as np
import pytest

from embossroll.mesh import Mesh, face_normals, merge_triangle_soups
from embossroll.modeling import make_plug


def _quad() -> Mesh:
    return Mesh(
        vertices=[(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0)],
        faces=[(0, 1, 2), (0, 2, 3)],
        uvs=[(0, 0), (1, 0), (1, 1), (0, 1)],
    )


def test_to_non_indexed_expands_corners():
    soup = _quad().to_non_indexed()
    assert soup.is_triangle_soup
    assert soup.n_vertices == 6
    assert np.allclose(soup.uvs[3], (0.0, 0.0))


def test_merge_fills_missing_attributes():
    with_uvs = _quad()
    bare = Mesh(vertices=[(0, 0, 1), (1, 0, 1), (0, 1, 1)], faces=[(0, 1, 2)])
    merged = merge_triangle_soups([with_uvs, bare])
    assert merged.is_triangle_soup
    assert merged.n_faces == 3
    assert np.allclose(merged.uvs[-3:], 0.0)


def test_welded_normals_are_shared_by_duplicates():
    plug = make_plug(2.0, 2.0)
    plug.compute_vertex_normals(weld=True)
    corner = np.all(np.isclose(plug.vertices, (1.0, 1.0, 1.0)), axis=1)
    assert corner.sum() > 1
    shared = plug.normals[corner]
    assert np.allclose(shared, shared[0])
    assert np.isclose(np.linalg.norm(shared[0]), 1.0)
    assert np.all(shared[0] > 0)

    plug.compute_vertex_normals(weld=False)
    assert not np.allclose(plug.normals[corner], plug.normals[corner][0])


def test_rotate_vector_turns_normals():
    mesh = _quad()
    mesh.compute_vertex_normals()
    mesh.rotate_vector((1.0, 0.0, 0.0), 90.0)
    assert np.allclose(mesh.normals, (0.0, -1.0, 0.0))
    assert np.allclose(face_normals(mesh), (0.0, -1.0, 0.0))
    with pytest.raises(ValueError):
        mesh.rotate_vector((0.0, 0.0, 0.0), 10.0)


def test_center_and_translate_copy():
    mesh = _quad()
    moved = mesh.translate((10.0, 0.0, 0.0), inplace=False)
    assert mesh.bounds[0] == 0.0
    assert moved.bounds[0] == 10.0
    mesh.center()
    assert mesh.bounds[:4] == (-0.5, 0.5, -0.5, 0.5)


def test_mesh_rejects_mismatched_attributes():
    with pytest.raises(ValueError):
        Mesh(vertices=[(0, 0, 0), (1, 0, 0), (0, 1, 0)], faces=[(0, 1, 2)], uvs=[(0, 0)])
