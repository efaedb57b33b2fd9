"""Configuration stack and parameter management for the shell generator.

The loader operates in two layers ordered from lowest to highest precedence:

1. JSON file (primary) - persistent project configuration.
2. CLI overrides - runtime tweaks for automation/headless workflows.

Everything here is plain Python; the mesh is always rebuilt from these values,
nothing about a generated shell is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
import argparse
import logging
import json

from .ellipsoid import Ellipsoid

__all__ = [
    "FT_TO_M",
    "M_TO_FT",
    "ShellParameters",
    "headroom_to_base",
    "load_json_config",
    "apply_overrides",
    "parse_cli_overrides",
    "load_parameters",
]

M_TO_FT = 3.28084
FT_TO_M = 1.0 / M_TO_FT


def headroom_to_base(headroom_m: float, semi_height_m: float) -> float:
    """Base Z offset for a shell whose apex stands *headroom_m* above the floor.

    The ellipsoid centre is the origin, so a floor ``headroom`` below the apex
    sits at ``Z = H - headroom``.
    """
    return semi_height_m - headroom_m


@dataclass(slots=True)
class ShellParameters:
    """Canonical set of adjustable shell parameters (all lengths in metres)."""

    # 30' x 26' x 20' ellipsoid with 12' of headroom at the apex.
    semi_length_m: float = 15 * FT_TO_M  # L, along X
    semi_width_m: float = 13 * FT_TO_M  # W, along Y
    semi_height_m: float = 10 * FT_TO_M  # H, along Z
    base_m: float = (10 - 12) * FT_TO_M
    panel_size_m: float = 1.1  # Target panel edge length
    tolerance_m: float = 0.0001  # Chord length tolerance, 1/10th mm
    flange_width_m: float = 0.05  # Doubled-over flange, reporting only
    max_passes: int = 500  # Tessellation fixpoint cap
    max_vertices: int = 200_000  # Tessellation growth cap

    # Optional tension relaxation after tessellation (0 iterations disables it).
    relax_iterations: int = 0
    relax_stiffness: float = 1.0
    relax_move_factor: float = 0.1
    relax_damping: float = 0.5

    material: str = "stainless304"
    gauge: str = "18ga"
    solid_name: str = "Eggstreme"

    def validate(self) -> None:
        if min(self.semi_length_m, self.semi_width_m, self.semi_height_m) <= 0:
            raise ValueError("Ellipsoid semi axes must be positive")
        if not -self.semi_height_m < self.base_m < self.semi_height_m:
            raise ValueError("Base plane must cut the ellipsoid (-H < base < H)")
        if self.panel_size_m <= 0:
            raise ValueError("Panel size must be positive")
        if self.panel_size_m >= 2 * min(self.semi_length_m, self.semi_width_m, self.semi_height_m):
            raise ValueError("Panel size must be smaller than the ellipsoid")
        if self.tolerance_m <= 0:
            raise ValueError("Tolerance must be positive")
        if self.flange_width_m < 0:
            raise ValueError("Flange width cannot be negative")
        if self.max_passes < 1:
            raise ValueError("max_passes must be at least 1")
        if self.max_vertices < 7:
            raise ValueError("max_vertices must leave room for the seed cap (7)")
        if self.relax_iterations < 0:
            raise ValueError("relax_iterations cannot be negative")
        if not 0 <= self.relax_damping <= 1:
            raise ValueError("relax_damping must be within [0, 1]")
        if not self.solid_name or any(ch.isspace() for ch in self.solid_name):
            raise ValueError("solid_name must be a single non-empty word")

    def ellipsoid(self) -> Ellipsoid:
        return Ellipsoid(self.semi_length_m, self.semi_width_m, self.semi_height_m)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ShellParameters":
        base = cls()
        merged = {**asdict(base), **data}
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(merged) - known)
        if unknown:
            raise KeyError(f"Unknown parameter(s): {', '.join(unknown)}")
        params = cls(**merged)
        params.validate()
        return params


def load_json_config(path: Path | str | None) -> Dict[str, Any]:
    """Load the JSON config file or return an empty dict if no path is given."""

    if path is None:
        return {}
    json_path = Path(path)
    if not json_path.exists():
        raise FileNotFoundError(f"Config file not found: {json_path}")
    data = json.loads(json_path.read_text(encoding="utf-8"))
    if not isinstance(data, Mapping):
        raise ValueError("Top-level JSON config must be an object")
    return dict(data)


def apply_overrides(base: ShellParameters, overrides: Mapping[str, Any]) -> ShellParameters:
    """Return a copy of ``base`` with overrides applied."""

    merged = base.to_dict()
    for key, value in overrides.items():
        if key not in merged:
            raise KeyError(f"Unknown parameter '{key}'")
        merged[key] = value
    return ShellParameters.from_dict(merged)


def parse_cli_overrides(
    args: Optional[Iterable[str]] = None,
) -> Tuple[Dict[str, Any], Any]:
    """Parse CLI-style overrides using argparse conventions."""

    parser = argparse.ArgumentParser(description="Ellipsoid shell generator")
    parser.add_argument("--config", type=str, help="Path to JSON config", default=None)
    parser.add_argument("--out-dir", type=str, default="exports", help="Export folder")
    parser.add_argument("--stl-name", type=str, default="shell.stl")
    parser.add_argument("--stats-name", type=str, default="shell_stats.txt")
    parser.add_argument("--manifest-name", type=str, default="shell_manifest.json")
    parser.add_argument("--report-name", type=str, default="shell_validation.json")
    parser.add_argument("--materials", type=str, default=None, help="JSON material/gauge table")
    parser.add_argument("--skip-stl", action="store_true", help="Disable STL export")
    parser.add_argument("--skip-manifest", action="store_true", help="Disable JSON manifest")
    parser.add_argument(
        "--size",
        type=float,
        nargs=3,
        metavar=("L", "W", "H"),
        help="Ellipsoid semi axes in meters",
    )
    parser.add_argument("--base", type=float, help="Base plane Z offset in meters")
    parser.add_argument(
        "--headroom",
        type=float,
        help="Apex height above the floor in meters (sets the base plane)",
    )
    parser.add_argument("--panel-size", type=float, help="Target panel edge length (m)")
    parser.add_argument("--tolerance", type=float, help="Chord length tolerance (m)")
    parser.add_argument("--flange", type=float, help="Flange width for reporting (m)")
    parser.add_argument("--max-passes", type=int, help="Tessellation pass cap")
    parser.add_argument("--max-vertices", type=int, help="Tessellation vertex cap")
    parser.add_argument("--relax", type=int, help="Tension relaxation iterations")
    parser.add_argument("--material", type=str, help="Sheet material key")
    parser.add_argument("--gauge", type=str, help="Sheet gauge key")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    parsed, unknown = parser.parse_known_args(args=args)
    if unknown:
        logging.info("Ignoring unknown CLI args: %s", " ".join(unknown))
    overrides: Dict[str, Any] = {}
    if parsed.size is not None:
        (
            overrides["semi_length_m"],
            overrides["semi_width_m"],
            overrides["semi_height_m"],
        ) = parsed.size
    if parsed.base is not None:
        overrides["base_m"] = parsed.base
    if parsed.headroom is not None:
        if parsed.base is not None:
            raise ValueError("--base and --headroom are mutually exclusive")
        # Resolved against the final semi height in load_parameters.
        overrides["headroom_m"] = parsed.headroom
    if parsed.panel_size is not None:
        overrides["panel_size_m"] = parsed.panel_size
    if parsed.tolerance is not None:
        overrides["tolerance_m"] = parsed.tolerance
    if parsed.flange is not None:
        overrides["flange_width_m"] = parsed.flange
    if parsed.max_passes is not None:
        overrides["max_passes"] = parsed.max_passes
    if parsed.max_vertices is not None:
        overrides["max_vertices"] = parsed.max_vertices
    if parsed.relax is not None:
        overrides["relax_iterations"] = parsed.relax
    if parsed.material is not None:
        overrides["material"] = parsed.material
    if parsed.gauge is not None:
        overrides["gauge"] = parsed.gauge

    return overrides, parsed


def load_parameters(
    config_path: Path | str | None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> ShellParameters:
    """Load parameters using the JSON -> CLI precedence chain.

    A ``headroom_m`` key (in either layer) is converted to ``base_m`` against
    the final semi height before anything is validated, so ``--size`` and
    ``--headroom`` compose. A CLI ``base_m`` beats a JSON ``headroom_m``.
    """

    data = load_json_config(config_path)
    headroom = data.pop("headroom_m", None)
    overrides = dict(cli_overrides or {})
    if "headroom_m" in overrides:
        headroom = overrides.pop("headroom_m")
        overrides.pop("base_m", None)
    elif "base_m" in overrides:
        headroom = None

    merged = {**data, **overrides}
    if headroom is not None:
        semi_height = merged.get("semi_height_m", ShellParameters().semi_height_m)
        merged["base_m"] = headroom_to_base(float(headroom), float(semi_height))
    return apply_overrides(ShellParameters(), merged)
