"""Pipeline architecture for the ellipsoid shell generator.

Breaks the generation flow into composable, testable steps.
Each step receives a shared ``PipelineContext`` and can read/write its fields.
Steps declare their own ``should_run`` predicate so the pipeline runner
automatically skips irrelevant stages.

Usage::

    from ellipsoid_dome.pipeline import ShellPipeline, PipelineContext

    ctx = PipelineContext(params=my_params, out_dir=Path("exports"))
    pipeline = ShellPipeline()          # default steps
    pipeline.run(ctx)
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import export, relaxation, tessellation
from .materials import DEFAULT_MATERIALS, SheetMaterial, lookup
from .mesh import Mesh
from .parameters import ShellParameters
from .tessellation import TessellationReport

__all__ = [
    "PipelineContext",
    "PipelineStep",
    "ShellPipeline",
    "TessellationStep",
    "RelaxationStep",
    "ValidationStep",
    "StlExportStep",
    "StatsReportStep",
    "ManifestExportStep",
    "default_steps",
]


# ---------------------------------------------------------------------------
# Pipeline context: shared state between steps
# ---------------------------------------------------------------------------


@dataclass
class PipelineContext:
    """Mutable state bag passed through every pipeline step."""

    params: ShellParameters
    out_dir: Path = field(default_factory=lambda: Path("exports"))

    # Export control flags (typically populated from CLI).
    skip_stl: bool = False
    skip_manifest: bool = False
    stl_name: str = "shell.stl"
    stats_name: str = "shell_stats.txt"
    manifest_name: str = "shell_manifest.json"
    report_name: str = "shell_validation.json"
    materials: Dict[str, SheetMaterial] = field(default_factory=lambda: dict(DEFAULT_MATERIALS))
    cancel: Optional[Callable[[], bool]] = None

    # Populated by TessellationStep.
    mesh: Mesh | None = None
    tessellation: TessellationReport | None = None

    # Populated by later steps.
    relaxed_deviation: float | None = None
    validation: Dict[str, Any] = field(default_factory=dict)
    stats: export.ShellStats | None = None
    written: List[Path] = field(default_factory=list)

    def require_mesh(self) -> Mesh:
        if self.mesh is None:
            raise RuntimeError("No mesh yet; the tessellation step has not run")
        return self.mesh


# ---------------------------------------------------------------------------
# Step base class
# ---------------------------------------------------------------------------


class PipelineStep(ABC):
    """A single composable stage of the shell generation pipeline."""

    name: str = "unnamed"

    def should_run(self, ctx: PipelineContext) -> bool:
        """Return ``False`` to skip this step for the current context."""
        return True

    @abstractmethod
    def execute(self, ctx: PipelineContext) -> None:
        """Perform the step's work, mutating *ctx* as needed."""
        ...


# ---------------------------------------------------------------------------
# Concrete steps
# ---------------------------------------------------------------------------


class TessellationStep(PipelineStep):
    """Grow the shell over the ellipsoid and cut it at the base."""

    name = "tessellation"

    def execute(self, ctx: PipelineContext) -> None:
        params = ctx.params
        ctx.mesh = Mesh(params.ellipsoid(), params.base_m)
        ctx.tessellation = tessellation.make_mesh(
            ctx.mesh,
            params.panel_size_m,
            params.tolerance_m,
            max_passes=params.max_passes,
            max_vertices=params.max_vertices,
            cancel=ctx.cancel,
        )
        logging.info("Tessellation summary: %s", ctx.mesh.summary())


class RelaxationStep(PipelineStep):
    """Even out edge lengths with the spring model."""

    name = "relaxation"

    def should_run(self, ctx: PipelineContext) -> bool:
        return ctx.params.relax_iterations > 0

    def execute(self, ctx: PipelineContext) -> None:
        params = ctx.params
        ctx.relaxed_deviation = relaxation.relax(
            ctx.require_mesh(),
            params.panel_size_m,
            iterations=params.relax_iterations,
            k=params.relax_stiffness,
            move_factor=params.relax_move_factor,
            damping=params.relax_damping,
        )


class ValidationStep(PipelineStep):
    """Check the structural invariants and write the validation report."""

    name = "validation"

    def execute(self, ctx: PipelineContext) -> None:
        ctx.validation = export.validate_shell(ctx.require_mesh())
        report_path = ctx.out_dir / ctx.report_name
        report_path.write_text(json.dumps(ctx.validation, indent=2), encoding="utf-8")
        ctx.written.append(report_path)
        logging.info("Wrote validation report %s", report_path)


class StlExportStep(PipelineStep):
    """Write the panels as an ASCII STL."""

    name = "stl_export"

    def should_run(self, ctx: PipelineContext) -> bool:
        if ctx.skip_stl:
            logging.info("STL export disabled")
            return False
        return True

    def execute(self, ctx: PipelineContext) -> None:
        path = ctx.out_dir / ctx.stl_name
        export.write_stl(ctx.require_mesh(), path, ctx.params.solid_name)
        ctx.written.append(path)


class StatsReportStep(PipelineStep):
    """Area, seam and weight statistics as plain text."""

    name = "stats_report"

    def execute(self, ctx: PipelineContext) -> None:
        params = ctx.params
        # Fail early on a material/gauge the table does not know.
        lookup(ctx.materials, params.material, params.gauge)
        ctx.stats = export.shell_stats(ctx.require_mesh(), params.flange_width_m)
        text = export.stats_report(
            ctx.stats, ctx.materials, selected=(params.material, params.gauge)
        )
        path = ctx.out_dir / ctx.stats_name
        export.write_stats(text, path)
        ctx.written.append(path)
        logging.info(
            "Metal area %.1f m2 over %d panels", ctx.stats.metal_area_m2, ctx.stats.panels
        )


class ManifestExportStep(PipelineStep):
    """Write per-panel JSON manifest."""

    name = "manifest_export"

    def should_run(self, ctx: PipelineContext) -> bool:
        return not ctx.skip_manifest

    def execute(self, ctx: PipelineContext) -> None:
        manifest_path = ctx.out_dir / ctx.manifest_name
        export.write_manifest(ctx.require_mesh(), manifest_path)
        ctx.written.append(manifest_path)


# ---------------------------------------------------------------------------
# Pipeline orchestrator
# ---------------------------------------------------------------------------


def default_steps() -> List[PipelineStep]:
    """Return the standard ordered list of pipeline steps."""
    return [
        TessellationStep(),
        RelaxationStep(),
        ValidationStep(),
        StlExportStep(),
        StatsReportStep(),
        ManifestExportStep(),
    ]


class ShellPipeline:
    """Orchestrates the full shell generation flow.

    Users can supply a custom step list to re-order, insert, or remove stages.
    """

    def __init__(self, steps: List[PipelineStep] | None = None) -> None:
        self.steps = steps if steps is not None else default_steps()

    @property
    def step_names(self) -> List[str]:
        return [s.name for s in self.steps]

    def run(self, ctx: PipelineContext) -> None:
        """Execute all enabled steps in order."""
        ctx.out_dir.mkdir(parents=True, exist_ok=True)
        for step in self.steps:
            if step.should_run(ctx):
                logging.info("[pipeline] %s", step.name)
                step.execute(ctx)

    def insert_before(self, reference_name: str, step: PipelineStep) -> None:
        """Insert *step* immediately before the step named *reference_name*."""
        for i, existing in enumerate(self.steps):
            if existing.name == reference_name:
                self.steps.insert(i, step)
                return
        self.steps.append(step)

    def insert_after(self, reference_name: str, step: PipelineStep) -> None:
        """Insert *step* immediately after the step named *reference_name*."""
        for i, existing in enumerate(self.steps):
            if existing.name == reference_name:
                self.steps.insert(i + 1, step)
                return
        self.steps.append(step)

    def remove(self, step_name: str) -> None:
        """Remove the step with the given name, if present."""
        self.steps = [s for s in self.steps if s.name != step_name]

    def replace(self, step_name: str, new_step: PipelineStep) -> None:
        """Replace an existing step with *new_step*."""
        for i, existing in enumerate(self.steps):
            if existing.name == step_name:
                self.steps[i] = new_step
                return
        self.steps.append(new_step)
