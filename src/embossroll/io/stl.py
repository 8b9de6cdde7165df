from __future__ import annotations

from pathlib import Path
import struct
from typing import Iterable

import numpy as np

from embossroll.mesh import Mesh, face_normals

STL_HEADER = b"embossroll STL"
_RECORD = np.dtype(
    [
        ("normal", "<f4", (3,)),
        ("vertices", "<f4", (3, 3)),
        ("attribute", "<u2"),
    ]
)


def _as_meshes(meshes: Mesh | Iterable[Mesh]) -> list[Mesh]:
    if isinstance(meshes, Mesh):
        return [meshes]
    return list(meshes)


def write_stl(meshes: Mesh | Iterable[Mesh], path: Path, ascii: bool = False) -> int:
    """Write one or more meshes into a single STL file and return the triangle count.

    Normals come from the triangle winding; no color or material is stored.
    """

    path = Path(path)
    meshes = _as_meshes(meshes)
    triangles = [mesh.vertices[mesh.faces] for mesh in meshes if mesh.n_faces]
    normals = [face_normals(mesh) for mesh in meshes if mesh.n_faces]
    tris = np.concatenate(triangles) if triangles else np.zeros((0, 3, 3), dtype=float)
    norms = np.concatenate(normals) if normals else np.zeros((0, 3), dtype=float)

    if ascii:
        lines = ["solid embossroll"]
        for normal, tri in zip(norms, tris):
            nx, ny, nz = normal
            lines.append(f"  facet normal {nx:.6e} {ny:.6e} {nz:.6e}")
            lines.append("    outer loop")
            for vx, vy, vz in tri:
                lines.append(f"      vertex {vx:.6e} {vy:.6e} {vz:.6e}")
            lines.append("    endloop")
            lines.append("  endfacet")
        lines.append("endsolid embossroll")
        path.write_text("\n".join(lines) + "\n")
        return int(tris.shape[0])

    records = np.zeros(tris.shape[0], dtype=_RECORD)
    records["normal"] = norms
    records["vertices"] = tris
    with path.open("wb") as handle:
        handle.write(STL_HEADER.ljust(80, b"\0"))
        handle.write(struct.pack("<I", records.shape[0]))
        handle.write(records.tobytes())
    return int(tris.shape[0])
