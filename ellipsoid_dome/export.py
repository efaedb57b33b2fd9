"""Text artefacts for a finished shell.

Handles the STL stream, the plain-text statistics summary, the per-panel
JSON manifest and the structural validation report.
"""

from __future__ import annotations

import json
import logging
import math
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

from .materials import SheetMaterial
from .mesh import Mesh, check_geometry
from .parameters import M_TO_FT

__all__ = [
    "DEFAULT_SOLID_NAME",
    "ShellStats",
    "stl_text",
    "write_stl",
    "shell_stats",
    "stats_report",
    "write_stats",
    "panel_manifest",
    "write_manifest",
    "validate_shell",
]

DEFAULT_SOLID_NAME = "Eggstreme"

SQM_TO_SQFT = 10.7639
LITRE_TO_GAL = 0.264172
BEAD_DIAMETER_M = 0.004  # sealant bead run along every seam


# ---------------------------------------------------------------------------
# STL
# ---------------------------------------------------------------------------


def stl_text(mesh: Mesh, solid_name: str = DEFAULT_SOLID_NAME) -> str:
    """ASCII STL of the alive panels, corners in construction order."""
    parts = [f"solid {solid_name}\n"]
    for panel in mesh.alive_panels():
        nx, ny, nz = panel.normal
        parts.append(f"facet normal {nx:E} {ny:E} {nz:E}\n outer loop\n")
        for x, y, z in mesh.panel_positions(panel.index):
            parts.append(f"  vertex {x:E} {y:E} {z:E}\n")
        parts.append(" endloop\nendfacet\n")
    parts.append(f"endsolid {solid_name}\n")
    return "".join(parts)


def write_stl(mesh: Mesh, destination: Path, solid_name: str = DEFAULT_SOLID_NAME) -> None:
    destination.write_text(stl_text(mesh, solid_name), encoding="utf-8")
    logging.info("Wrote STL %s", destination)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ShellStats:
    panels: int
    edges: int
    seams: int
    vertices: int
    panel_area_m2: float
    flange_area_m2: float
    total_perimeter_m: float
    bead_volume_l: float
    semi_length_m: float
    semi_width_m: float
    base_m: float
    peak_above_floor_m: float
    floor_length_m: float  # full X extent of the floor ellipse
    floor_width_m: float  # full Y extent

    @property
    def metal_area_m2(self) -> float:
        """Sheet needed: panel faces plus their doubled-over flanges."""
        return self.panel_area_m2 + self.flange_area_m2

    @property
    def floor_area_m2(self) -> float:
        return math.pi * self.floor_length_m * self.floor_width_m / 4.0


def shell_stats(mesh: Mesh, flange_width: float) -> ShellStats:
    panel_area = 0.0
    total_perimeter = 0.0
    panels = 0
    for panel in mesh.alive_panels():
        panel_area += panel.area
        total_perimeter += sum(mesh.edges[ei].length for ei in panel.edges)
        panels += 1

    edges = seams = 0
    for edge in mesh.alive_edges():
        edges += 1
        if len(edge.panels) == 2:
            seams += 1

    # Every seam is two panel sides, so half the perimeter is the seam run.
    bead_volume = 1000 * (total_perimeter / 2) * math.pi * BEAD_DIAMETER_M ** 2 / 4
    floor_x, floor_y = mesh.ellipsoid.floor_semi_axes(mesh.base)
    return ShellStats(
        panels=panels,
        edges=edges,
        seams=seams,
        vertices=sum(1 for _ in mesh.alive_vertices()),
        panel_area_m2=panel_area,
        flange_area_m2=total_perimeter * 2 * flange_width,
        total_perimeter_m=total_perimeter,
        bead_volume_l=bead_volume,
        semi_length_m=mesh.ellipsoid.length,
        semi_width_m=mesh.ellipsoid.width,
        base_m=mesh.base,
        peak_above_floor_m=mesh.ellipsoid.height - mesh.base,
        floor_length_m=2 * floor_x,
        floor_width_m=2 * floor_y,
    )


def stats_report(
    stats: ShellStats,
    materials: Mapping[str, SheetMaterial] | None = None,
    selected: Tuple[str, str] | None = None,
) -> str:
    """Plain-text summary in metric and imperial units.

    With a material table, one weight estimate per material and gauge is
    listed; *selected* ``(material, gauge)`` is marked with ``*``.
    """
    ft = M_TO_FT
    area = stats.metal_area_m2
    lines = [
        f"Panels: {stats.panels},  Edges: {stats.edges} inc {stats.seams} Seamed,  "
        f"Vertices: {stats.vertices}",
        f"Midplane: {2 * stats.semi_width_m * ft:4.1f}'x{2 * stats.semi_length_m * ft:4.1f}' "
        f"({2 * stats.semi_width_m:4.1f}x{2 * stats.semi_length_m:4.1f}m)   "
        f"Area: {math.pi * stats.semi_width_m * stats.semi_length_m * SQM_TO_SQFT:4.0f}sqft "
        f"({math.pi * stats.semi_width_m * stats.semi_length_m:4.0f}m2)",
        f"Panel area: {stats.panel_area_m2 * SQM_TO_SQFT:4.1f} sq ft "
        f"({stats.panel_area_m2:4.1f} sq m)",
        f"Metal area needed: {area * SQM_TO_SQFT:4.1f} sq ft ({area:4.1f} sq m)",
        f"Total panel perimeter: {stats.total_perimeter_m * ft:5.1f}' "
        f"({stats.total_perimeter_m:5.1f}m), 4mm bead volume: {stats.bead_volume_l:.2g}l "
        f"({stats.bead_volume_l * LITRE_TO_GAL:.2g}gal)",
        f"Floor is at {stats.base_m * ft:4.1f}' ({stats.base_m:4.2f}m), "
        f"peak is {stats.peak_above_floor_m * ft:4.1f}' above it",
        f"   It is {stats.floor_length_m * ft:4.1f}' x {stats.floor_width_m * ft:4.1f}' "
        f"({stats.floor_length_m:4.1f}m x {stats.floor_width_m:4.1f}m)   "
        f"Area {stats.floor_area_m2 * SQM_TO_SQFT:4.1f}sqft ({stats.floor_area_m2:4.1f}sqm)",
    ]
    if materials:
        lines.append("")
        lines.append("Estimated sheet weight:")
        for key, material in materials.items():
            lines.append(f"  {material.name} ({material.density_kg_m3:.0f} kg/m3)")
            for gid, gauge in material.gauges.items():
                mark = "*" if selected == (key, gid) else " "
                mass = area * gauge.mass_per_m2(material.density_kg_m3)
                lines.append(
                    f"   {mark}{gauge.display:>8}  {gauge.thickness_m * 1000:6.3f}mm  "
                    f"{mass:8.0f} kg  ({mass * 2.20462:8.0f} lb)"
                )
    return "\n".join(lines) + "\n"


def write_stats(text: str, destination: Path) -> None:
    destination.write_text(text, encoding="utf-8")
    logging.info("Wrote statistics %s", destination)


# ---------------------------------------------------------------------------
# Manifest export
# ---------------------------------------------------------------------------


def panel_manifest(mesh: Mesh) -> List[Dict[str, Any]]:
    """Per-panel fabrication data."""
    manifest: List[Dict[str, Any]] = []
    for panel in mesh.alive_panels():
        lengths = [mesh.edges[ei].length for ei in panel.edges]
        manifest.append(
            {
                "index": panel.index,
                "corners": list(panel.corners),
                "positions": [list(p) for p in mesh.panel_positions(panel.index)],
                "normal": list(panel.normal),
                "area": panel.area,
                "perimeter": sum(lengths),
                "edge_lengths": lengths,
            }
        )
    return manifest


def write_manifest(mesh: Mesh, destination: Path) -> None:
    destination.write_text(json.dumps(panel_manifest(mesh), indent=2), encoding="utf-8")
    logging.info("Wrote manifest %s", destination)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_shell(mesh: Mesh, precision: int = 3) -> Dict[str, Any]:
    """Structural summary of the shell; logs what it finds."""
    faults = [str(f) for f in check_geometry(mesh)]

    residuals = [abs(mesh.ellipsoid.residual(v.position)) for v in mesh.alive_vertices()]
    max_residual = max(residuals) if residuals else 0.0

    valences = [mesh.valence(v.index) for v in mesh.alive_vertices()]
    valence_counter = Counter(valences)
    low_valence = [
        (v.index, mesh.valence(v.index)) for v in mesh.alive_vertices() if mesh.valence(v.index) < 3
    ]

    hist: Dict[float, int] = {}
    for edge in mesh.alive_edges():
        key = round(edge.length, precision)
        hist[key] = hist.get(key, 0) + 1
    length_histogram = dict(sorted(hist.items()))

    areas = [p.area for p in mesh.alive_panels()]
    panel_area_stats: Dict[str, float] = {}
    if areas:
        panel_area_stats = {
            "min": min(areas),
            "max": max(areas),
            "avg": sum(areas) / len(areas),
        }

    if faults:
        logging.error("Found %d geometry faults (showing first 5): %s", len(faults), faults[:5])
    if low_valence:
        logging.warning("%d vertices have valence < 3", len(low_valence))
    logging.info("Max surface residual: %.3g", max_residual)
    logging.info("Vertex valence distribution: %s", sorted(valence_counter.items()))
    logging.info("Edge length families: %d distinct", len(length_histogram))
    if panel_area_stats:
        logging.info("Panel area stats (min/max/avg): %s", panel_area_stats)

    return {
        "faults": faults,
        "max_surface_residual": max_residual,
        "valence_distribution": dict(valence_counter),
        "low_valence_vertices": low_valence,
        "boundary_edges": len(mesh.boundary_edges()),
        "length_histogram": length_histogram,
        "panel_area_stats": panel_area_stats,
    }
