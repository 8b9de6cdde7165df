"""embossroll – tiled-pattern embossing for nesting cylinder pairs."""

from __future__ import annotations

from .config import PatternConfig, PatternKind, load_pattern_config
from .pipeline import ExportNotReadyError, MeshPair, PipelineOrchestrator, generate_mesh_pair

__all__ = [
    "__version__",
    "ExportNotReadyError",
    "MeshPair",
    "PatternConfig",
    "PatternKind",
    "PipelineOrchestrator",
    "generate_mesh_pair",
    "load_pattern_config",
]

__version__ = "0.1.0"
