#!/usr/bin/env python3
"""Headless entry point for the ellipsoid shell generator."""

from __future__ import annotations

from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from ellipsoid_dome.cli import main


def _sanitized_args() -> list[str]:
    return [arg for arg in sys.argv[1:] if arg not in {"--", "-"}]


if __name__ == "__main__":
    sys.exit(main(_sanitized_args()))
