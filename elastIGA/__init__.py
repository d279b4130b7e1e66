"""
elastIGA - Isogeometric elastodynamics

Time-dependent linear elasticity on B-spline/NURBS discretizations,
integrated with the theta-method (backward Euler to trapezoidal rule).
The model problem is an elastic body under gravity and a smoothly
ramped boundary traction.

Key modules:
- geometry: NURBS surfaces, B-spline basis functions
- discretization: Knot vectors, elements, Bézier extraction, DOF
  numbering, affine constraints, shape values
- quadrature: Gauss-Legendre integration
- solver: Elasticity assembly, material and loads, time integration
- postprocess: Point evaluation and VTK export
- io: JSON configuration

Quick start:
    from elastIGA import ElastodynamicsSolver, TimeSteppingParameters, setup_logging

    setup_logging()
    solver = ElastodynamicsSolver(time_stepping=TimeSteppingParameters(theta=1.0))
    state = solver.run()
    for t, u_y in solver.point_history:
        print(t, u_y)

From a configuration file:
    from elastIGA.io.config import load_config, build_solver

    solver = build_solver(load_config("cantilever.json"))
    solver.run()
"""

__version__ = "0.1.0"

# Core imports for convenience
from .geometry.nurbs import NURBSSurface
from .geometry.primitives import make_nurbs_rectangle
from .discretization.mesh import Mesh, build_mesh_2d
from .solver.material import MaterialParameters
from .solver.loads import RampedTraction
from .solver.elastodynamics import (ElastodynamicsSolver, DiscretizationParameters,
                                    TimeSteppingParameters, OutputParameters,
                                    SimulationState, StepPhase)
from .logging_config import setup_logging
