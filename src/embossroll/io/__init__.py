"""Mesh file output."""

from __future__ import annotations

from .stl import write_stl

__all__ = ["write_stl"]
