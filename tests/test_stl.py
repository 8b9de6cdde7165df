from __future__ import annotations

import struct
from pathlib import Path

import numpy as np

from embossroll.io import write_stl
from embossroll.mesh import Mesh
from embossroll.pipeline import export_filename


def _triangle(offset: float = 0.0) -> Mesh:
    return Mesh(
        vertices=[(offset, 0.0, 0.0), (offset + 1.0, 0.0, 0.0), (offset, 1.0, 0.0)],
        faces=[(0, 1, 2)],
    )


def test_binary_stl_layout(tmp_path: Path):
    path = tmp_path / "tri.stl"
    assert write_stl(_triangle(), path) == 1
    data = path.read_bytes()
    assert len(data) == 84 + 50
    assert data[:14] == b"embossroll STL"
    (count,) = struct.unpack_from("<I", data, 80)
    assert count == 1
    record = struct.unpack_from("<12fH", data, 84)
    assert np.allclose(record[:3], (0.0, 0.0, 1.0))
    assert np.allclose(record[3:12], (0, 0, 0, 1, 0, 0, 0, 1, 0))
    assert record[12] == 0


def test_multiple_meshes_share_one_file(tmp_path: Path):
    path = tmp_path / "pair.stl"
    assert write_stl([_triangle(), _triangle(5.0)], path) == 2
    data = path.read_bytes()
    second = struct.unpack_from("<12f", data, 84 + 50)
    assert second[3] == 5.0


def test_ascii_stl(tmp_path: Path):
    path = tmp_path / "tri.stl"
    write_stl([_triangle(), _triangle(2.0)], path, ascii=True)
    text = path.read_text()
    assert text.startswith("solid embossroll")
    assert text.count("facet normal") == 2
    assert text.rstrip().endswith("endsolid embossroll")


def test_export_filename_uses_milliseconds():
    assert export_filename(1700000000.5) == "embossed_cylinder_set_1700000000500.stl"
