"""Ellipsoid shell generator.

Grows a triangulated shell over the upper part of an axis-aligned ellipsoid,
truncates it at a horizontal base plane and exports fabrication data.
"""

__all__ = [
    "vec3",
    "geometry",
    "ellipsoid",
    "parameters",
    "mesh",
    "tessellation",
    "cutter",
    "relaxation",
    "materials",
    "export",
    "pipeline",
    "cli",
]
