"""Sheet material and gauge table used for weight estimates."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

__all__ = [
    "SheetGauge",
    "SheetMaterial",
    "DEFAULT_MATERIALS",
    "load_material_table",
    "lookup",
]


@dataclass(slots=True, frozen=True)
class SheetGauge:
    """One available thickness of a sheet material."""

    display: str
    thickness_m: float
    areal_density_kg_m2: float | None = None  # overrides thickness * density when given

    def mass_per_m2(self, density_kg_m3: float) -> float:
        if self.areal_density_kg_m2 is not None:
            return self.areal_density_kg_m2
        return self.thickness_m * density_kg_m3


@dataclass(slots=True, frozen=True)
class SheetMaterial:
    name: str
    density_kg_m3: float
    gauges: Dict[str, SheetGauge] = field(default_factory=dict)


def _steel_gauges() -> Dict[str, SheetGauge]:
    return {
        "28ga": SheetGauge("28ga", 0.378e-3),
        "24ga": SheetGauge("24ga", 0.607e-3),
        "22ga": SheetGauge("22ga", 0.759e-3),
        "20ga": SheetGauge("20ga", 0.911e-3),
        "18ga": SheetGauge("18ga", 1.214e-3),
        "16ga": SheetGauge("16ga", 1.518e-3),
        "14ga": SheetGauge("14ga", 1.897e-3),
        "0.5in": SheetGauge("0.5in", 12.7e-3),
        "1in": SheetGauge("1in", 25.5e-3),
    }


DEFAULT_MATERIALS: Dict[str, SheetMaterial] = {
    "stainless304": SheetMaterial(
        name="Stainless steel: 304",
        density_kg_m3=8030.0,
        gauges=_steel_gauges(),
    ),
    "mild_steel": SheetMaterial(
        name="Mild steel, cold rolled",
        density_kg_m3=7874.0,
        gauges=_steel_gauges(),
    ),
    "aluminium6061": SheetMaterial(
        name="Aluminium 6061",
        density_kg_m3=2700.0,
        gauges={
            "0.8mm": SheetGauge("0.8mm", 0.8e-3),
            "1.0mm": SheetGauge("1.0mm", 1.0e-3),
            "1.6mm": SheetGauge("1.6mm", 1.6e-3),
            "2.0mm": SheetGauge("2.0mm", 2.0e-3),
            "3.0mm": SheetGauge("3.0mm", 3.0e-3),
        },
    ),
}


def load_material_table(
    json_path: str | Path,
    base: Dict[str, SheetMaterial] | None = None,
) -> Dict[str, SheetMaterial]:
    """Load a JSON material table and merge it onto *base*.

    JSON format, keyed by material id::

        {
            "corten": {
                "name": "Weathering steel",
                "density_kg_m3": 7850,
                "gauges": {
                    "16ga": {"display": "16ga", "thickness_m": 0.001518},
                    "deck": {"display": "deck", "thickness_m": 0.0008, "areal_density_kg_m2": 9.4}
                }
            }
        }

    Materials in the file replace materials in *base* with the same key.
    """
    table = dict(DEFAULT_MATERIALS if base is None else base)
    path = Path(json_path)
    if not path.is_file():
        raise FileNotFoundError(f"Material table not found: {path}")
    with open(path, "r", encoding="utf-8") as fh:
        raw: Any = json.load(fh)
    if not isinstance(raw, Mapping):
        raise ValueError("Top-level material table must be an object")
    for key, vals in raw.items():
        if not isinstance(vals, Mapping):
            raise ValueError(f"Material '{key}' must be an object")
        raw_gauges = vals.get("gauges", {})
        if not isinstance(raw_gauges, Mapping):
            raise ValueError(f"Gauges of material '{key}' must be an object")
        bad = [gid for gid, g in raw_gauges.items() if not isinstance(g, Mapping)]
        if bad:
            raise ValueError(f"Gauge(s) {', '.join(bad)} of material '{key}' must be objects")
        gauges = {
            gid: SheetGauge(
                display=str(g.get("display", gid)),
                thickness_m=float(g["thickness_m"]),
                areal_density_kg_m2=(
                    float(g["areal_density_kg_m2"])
                    if g.get("areal_density_kg_m2") is not None
                    else None
                ),
            )
            for gid, g in raw_gauges.items()
        }
        table[key] = SheetMaterial(
            name=str(vals.get("name", key)),
            density_kg_m3=float(vals["density_kg_m3"]),
            gauges=gauges,
        )
    logging.info("Loaded %d materials from %s", len(raw), path)
    return table


def lookup(
    table: Dict[str, SheetMaterial], material: str, gauge: str
) -> tuple[SheetMaterial, SheetGauge]:
    """Return the material and gauge entries; unknown keys raise ``KeyError``."""
    if material not in table:
        raise KeyError(f"Unknown material '{material}' (known: {', '.join(sorted(table))})")
    entry = table[material]
    if gauge not in entry.gauges:
        raise KeyError(
            f"Unknown gauge '{gauge}' for {material} (known: {', '.join(entry.gauges)})"
        )
    return entry, entry.gauges[gauge]
