from __future__ import annotations

import numpy as np
import pytest

from embossroll.modeling import beveled_extrude, disc_with_square_hole
from embossroll.modeling.profile import Profile2D, circle_loop, square_loop


def _signed_area(points: np.ndarray) -> float:
    x, y = points[:, 0], points[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))


def test_profile_enforces_winding():
    profile = Profile2D(outer=circle_loop(5.0, 32)[::-1], holes=[square_loop(1.0)[::-1]])
    assert _signed_area(profile.outer) > 0
    assert _signed_area(profile.holes[0]) < 0


def test_profile_rejects_short_loops():
    with pytest.raises(ValueError):
        Profile2D(outer=[(0, 0), (1, 0)])


def test_disc_triangulation_covers_annulus():
    profile = disc_with_square_hole(15.0, 7.5, 150)
    faces = profile.triangulate()
    pts = profile.points()
    tri = pts[faces]
    area = 0.5 * np.abs(
        (tri[:, 1, 0] - tri[:, 0, 0]) * (tri[:, 2, 1] - tri[:, 0, 1])
        - (tri[:, 2, 0] - tri[:, 0, 0]) * (tri[:, 1, 1] - tri[:, 0, 1])
    ).sum()
    polygon_area = 0.5 * 150 * 15.0**2 * np.sin(2 * np.pi / 150)
    assert np.isclose(area, polygon_area - 15.0**2, rtol=1e-4)


def test_square_hole_must_fit():
    with pytest.raises(ValueError):
        disc_with_square_hole(10.0, 7.5, 64)


def test_inset_directions_point_into_material():
    profile = disc_with_square_hole(15.0, 7.5, 64)
    pts = profile.points()
    moved = pts + profile.inset_directions() * 0.5
    outer = slice(0, 64)
    hole = slice(64, 68)
    assert np.all(np.linalg.norm(moved[outer], axis=1) < 15.0)
    assert np.allclose(np.abs(moved[hole]), 8.0)


def test_beveled_extrude_layers_and_bounds():
    profile = disc_with_square_hole(15.0, 7.5, 48)
    mesh = beveled_extrude(profile, depth=10.0, steps=4, bevel_thickness=1.0, bevel_size=1.0, bevel_segments=2)
    assert mesh.is_triangle_soup
    assert mesh.metadata["layers"] == 4 + 1 + 2 * 2
    zmin, zmax = mesh.bounds[4], mesh.bounds[5]
    assert np.isclose(zmin, -1.0)
    assert np.isclose(zmax, 11.0)

    wall = (mesh.vertices[:, 2] > 0.0 - 1e-9) & (mesh.vertices[:, 2] < 10.0 + 1e-9)
    radius = np.hypot(mesh.vertices[:, 0], mesh.vertices[:, 1])
    assert np.isclose(radius[wall].max(), 15.0)
    caps = np.isclose(np.abs(mesh.vertices[:, 2] - 5.0), 6.0)
    assert radius[caps].max() < 14.1


def test_beveled_extrude_faces_point_outward():
    profile = disc_with_square_hole(15.0, 7.5, 48)
    mesh = beveled_extrude(profile, depth=10.0, steps=2, bevel_thickness=1.0, bevel_size=1.0, bevel_segments=2)
    tri = mesh.vertices[mesh.faces]
    normals = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    centroids = tri.mean(axis=1)
    outer_wall = (np.hypot(centroids[:, 0], centroids[:, 1]) > 14.5) & (np.abs(normals[:, 2]) < 1e-9)
    radial = np.einsum("ij,ij->i", normals[outer_wall][:, :2], centroids[outer_wall][:, :2])
    assert np.all(radial > 0)
    top = np.isclose(centroids[:, 2], 11.0)
    assert np.all(normals[top][:, 2] > 0)


def test_beveled_extrude_invalid_depth():
    profile = disc_with_square_hole(15.0, 7.5, 32)
    with pytest.raises(ValueError):
        beveled_extrude(profile, depth=0.0)
