"""Modeling stages: pattern rasterization, cylinder construction, displacement."""

from __future__ import annotations

from .cylinder import CylinderSettings, build_cylinder_solid, make_plug
from .extrude import beveled_extrude
from .heightmap import DisplacementRules, Heightmap, displace_shell, smoothstep_weight
from .profile import Profile2D, disc_with_square_hole
from .raster import PatternLoadError, RasterOptions, rasterize_config, rasterize_pattern

__all__ = [
    "CylinderSettings",
    "DisplacementRules",
    "Heightmap",
    "PatternLoadError",
    "Profile2D",
    "RasterOptions",
    "beveled_extrude",
    "build_cylinder_solid",
    "disc_with_square_hole",
    "displace_shell",
    "make_plug",
    "rasterize_config",
    "rasterize_pattern",
    "smoothstep_weight",
]
