"""
Pytest configuration and shared fixtures for elastIGA tests.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add the parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from elastIGA.geometry.primitives import make_nurbs_rectangle
from elastIGA.discretization.mesh import build_mesh_2d
from elastIGA.solver.elastodynamics import (DiscretizationParameters,
                                            TimeSteppingParameters)


@pytest.fixture
def tolerance():
    """Default tolerance for floating point comparisons."""
    return 1e-12


@pytest.fixture
def loose_tolerance():
    """Looser tolerance for numerical integration tests."""
    return 1e-8


@pytest.fixture
def beam_mesh():
    """Linear B-spline mesh of the beam [0,1] x [0,0.2], 4 x 1 elements."""
    surface = make_nurbs_rectangle((0.0, 1.0), (0.0, 0.2), p=1, n_elem_xi=4, n_elem_eta=1)
    return build_mesh_2d(surface)


@pytest.fixture
def quadratic_beam_mesh():
    """Quadratic B-spline mesh of the beam, 4 x 2 elements."""
    surface = make_nurbs_rectangle((0.0, 1.0), (0.0, 0.2), p=2, n_elem_xi=4, n_elem_eta=2)
    return build_mesh_2d(surface)


@pytest.fixture
def small_discretization():
    """Coarse cantilever discretization for fast time-stepping tests."""
    return DiscretizationParameters(degree=1, subdivisions=(4, 1), global_refinements=0)


@pytest.fixture
def small_time_stepping():
    """Five steps of dt = 0.01 up to t = 0.05."""
    return TimeSteppingParameters(time_step=0.01)
