"""Headless command-line entry point for the shell generator."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from .materials import DEFAULT_MATERIALS, load_material_table
from .mesh import GeometryError
from .parameters import load_parameters, parse_cli_overrides
from .pipeline import PipelineContext, ShellPipeline
from .tessellation import TessellationCancelled, TessellationLimitError

__all__ = ["configure_logging", "main"]


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Run the generator; returns the process exit code.

    0 on success, 1 when the shell cannot be built, 2 for bad configuration.
    """
    try:
        overrides, cli = parse_cli_overrides(argv)
    except ValueError as exc:
        configure_logging()
        logging.error("Invalid arguments: %s", exc)
        return 2
    configure_logging(cli.verbose)
    try:
        params = load_parameters(cli.config, overrides)
        materials = (
            load_material_table(cli.materials) if cli.materials else dict(DEFAULT_MATERIALS)
        )
    except (FileNotFoundError, KeyError, ValueError) as exc:
        logging.error("Invalid configuration: %s", exc)
        return 2
    logging.info(
        "Parameters: %.3f x %.3f x %.3f m semi axes, base Z=%.3f m, panels %.3f m",
        params.semi_length_m,
        params.semi_width_m,
        params.semi_height_m,
        params.base_m,
        params.panel_size_m,
    )

    ctx = PipelineContext(
        params=params,
        out_dir=Path(cli.out_dir),
        skip_stl=cli.skip_stl,
        skip_manifest=cli.skip_manifest,
        stl_name=cli.stl_name,
        stats_name=cli.stats_name,
        manifest_name=cli.manifest_name,
        report_name=cli.report_name,
        materials=materials,
    )
    try:
        ShellPipeline().run(ctx)
    except GeometryError as exc:
        for fault in exc.faults[:10]:
            logging.error("Geometry fault: %s", fault)
        logging.error("Shell generation stopped: %s", exc)
        return 1
    except (TessellationLimitError, TessellationCancelled) as exc:
        logging.error("Shell generation stopped: %s", exc)
        return 1
    except KeyError as exc:
        logging.error("Unknown material or gauge: %s", exc)
        return 2

    for path in ctx.written:
        logging.info("Output: %s", path)
    return 0
