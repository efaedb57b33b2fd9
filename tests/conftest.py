from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure repo root is importable when running pytest from any CWD.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from ellipsoid_dome.ellipsoid import Ellipsoid
from ellipsoid_dome.mesh import Mesh


@pytest.fixture
def unit_sphere() -> Ellipsoid:
    return Ellipsoid(1.0, 1.0, 1.0)


@pytest.fixture
def octant_mesh(unit_sphere):
    """One panel over the +X/+Y/+Z octant of the unit sphere, base at Z=-0.5."""
    mesh = Mesh(unit_sphere, -0.5)
    a = mesh.add_vertex((1.0, 0.0, 0.0))
    b = mesh.add_vertex((0.0, 1.0, 0.0))
    c = mesh.add_vertex((0.0, 0.0, 1.0))
    ab = mesh.add_edge(a, b)
    bc = mesh.add_edge(b, c)
    ca = mesh.add_edge(c, a)
    mesh.add_panel(ab, bc, ca)
    return mesh
