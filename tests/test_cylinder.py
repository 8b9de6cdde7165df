from __future__ import annotations

import numpy as np
import pytest

from embossroll.modeling import CylinderSettings, build_cylinder_solid, make_plug
from embossroll.modeling.cylinder import extrusion_steps

from tests.helpers import planar_radius


def test_cylinder_is_centered_upright_soup():
    mesh = build_cylinder_solid(15.0, 20.0)
    assert mesh.is_triangle_soup
    xmin, xmax, ymin, ymax, zmin, zmax = mesh.bounds
    assert np.isclose(ymin, -10.0) and np.isclose(ymax, 10.0)
    assert np.isclose(planar_radius(mesh.vertices).max(), 15.0)
    assert np.isclose(xmin, -xmax)


def test_cylinder_normals_are_unit_or_zero():
    mesh = build_cylinder_solid(15.0, 20.0)
    lengths = np.linalg.norm(mesh.normals, axis=1)
    assert np.all(np.isclose(lengths, 1.0) | np.isclose(lengths, 0.0))


def test_shell_vertices_get_cylindrical_uvs():
    mesh = build_cylinder_solid(15.0, 20.0)
    shell = planar_radius(mesh.vertices) > 12.0
    u = mesh.uvs[shell, 0]
    v = mesh.uvs[shell, 1]
    assert np.all((u >= 0.0) & (u <= 1.0))
    assert np.allclose(v, (mesh.vertices[shell, 1] + 10.0) / 20.0)
    expected_u = np.arctan2(mesh.vertices[shell, 0], mesh.vertices[shell, 2]) / (2 * np.pi) + 0.5
    assert np.allclose(u, expected_u)


def test_plug_fills_hole_between_sockets():
    mesh = build_cylinder_solid(15.0, 60.0)
    assert mesh.metadata["plug_height"] == pytest.approx(30.0)
    plug = mesh.vertices[mesh.metadata["shell_vertices"]:]
    assert plug.shape[0] == 36
    assert np.allclose(np.abs(plug[:, 0]), 7.5)
    assert np.allclose(np.abs(plug[:, 2]), 7.5)
    assert np.allclose(np.abs(plug[:, 1]), 15.0)


def test_short_cylinder_keeps_minimal_plug():
    mesh = build_cylinder_solid(15.0, 20.0)
    assert mesh.metadata["plug_height"] == pytest.approx(0.1)


def test_make_plug_faces_outward():
    plug = make_plug(15.0, 30.0)
    tri = plug.vertices[plug.faces]
    normals = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    centroids = tri.mean(axis=1)
    assert np.all(np.einsum("ij,ij->i", normals, centroids) > 0)


def test_extrusion_steps_scale_with_height():
    assert extrusion_steps(60.0) == 150
    assert extrusion_steps(0.1) == 1


def test_cylinder_rejects_bad_dimensions():
    with pytest.raises(ValueError):
        build_cylinder_solid(15.0, 2.0)
    with pytest.raises(ValueError):
        build_cylinder_solid(0.0, 20.0)
    with pytest.raises(ValueError):
        build_cylinder_solid(9.0, 20.0)


def test_cylinder_settings_validation():
    with pytest.raises(ValueError):
        CylinderSettings(curve_segments=2)
    with pytest.raises(ValueError):
        CylinderSettings(shell_radius_factor=1.5)
    coarse = build_cylinder_solid(15.0, 20.0, CylinderSettings(curve_segments=24, steps_per_unit=0.5))
    assert coarse.n_faces < build_cylinder_solid(15.0, 20.0).n_faces


def test_beveled_hole_must_stay_inside_cap():
    with pytest.raises(ValueError, match="beveled square hole"):
        build_cylinder_solid(12.5, 20.0)

    mesh = build_cylinder_solid(13.1, 20.0)
    radius = planar_radius(mesh.vertices)
    cap = np.isclose(mesh.vertices[:, 1], 10.0)
    assert radius[cap].max() == pytest.approx(13.1 - 1.0, abs=0.01)
    hole_corner = (7.5 + 1.0) * np.sqrt(2.0)
    assert np.isclose(radius[cap], hole_corner).any()
