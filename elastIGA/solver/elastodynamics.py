"""
Theta-method time integration for linear elastodynamics.

Solves M u'' + K u / rho = f(t) / rho, written as a first-order system in
displacement u and velocity v = u'. Each step performs two sequential
solves with the same boundary elimination:

    (M + theta^2 dt^2 / rho K) u_new
        = M u_old + dt M v_old - theta (1 - theta) dt^2 / rho K u_old + F

    M v_new = M v_old - theta dt / rho K u_new - (1 - theta) dt / rho K u_old + F

with the forcing terms

    F = theta dt f(t_new) + (1 - theta) dt f(t_old),
    f(t) = (traction_load(t) + gravity_load) / rho.

theta = 1 is backward Euler, theta = 0.5 the trapezoidal rule.

The per-step API is a small state machine,

    IDLE --init_time_step--> STEP_ACTIVE --finalize_time_step--> IDLE

and solve() is only valid while a step is active. The SimulationState is
advanced in finalize_time_step only; solve() writes to scratch vectors.

Example usage:
    solver = ElastodynamicsSolver(DiscretizationParameters(),
                                  TimeSteppingParameters(),
                                  MaterialParameters())
    state = solver.run()
    print(solver.point_value())
"""

import logging
import numpy as np
from enum import Enum
from pathlib import Path
from scipy import sparse
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .base import (LINEAR_SOLVERS, StepSequenceError, apply_boundary_values,
                   solve_linear_system)
from .elasticity import ElasticityAssembler
from .loads import RampedTraction
from .material import MaterialParameters
from ..discretization.constraints import AffineConstraints
from ..discretization.mesh import (Mesh, DoFMap, build_mesh_2d,
                                   interpolate_boundary_values, zero_function)
from ..geometry.nurbs import NURBSSurface
from ..geometry.primitives import make_nurbs_rectangle
from ..postprocess.sampling import evaluate_field_at_point, find_parametric_point
from ..postprocess.vtk import export_vtk_vector_field_2d

logger = logging.getLogger(__name__)

N_BOUNDARY_IDS = 4


@dataclass(frozen=True)
class DiscretizationParameters:
    """
    Rectangle, spline degree and boundary markers.

    Boundary ids: 0 = left, 1 = right, 2 = bottom, 3 = top.
    """
    degree: int = 1
    x_range: Tuple[float, float] = (0.0, 1.0)
    y_range: Tuple[float, float] = (0.0, 0.2)
    subdivisions: Tuple[int, int] = (5, 1)
    global_refinements: int = 1
    dirichlet_boundary_id: int = 0
    traction_boundary_id: int = 3

    def __post_init__(self):
        for name in ("x_range", "y_range", "subdivisions"):
            value = tuple(getattr(self, name))
            if len(value) != 2:
                raise ValueError(f"{name} needs two entries, got {value}")
            object.__setattr__(self, name, value)

        if self.degree < 1:
            raise ValueError(f"Degree must be at least 1, got {self.degree}")
        if min(self.subdivisions) < 1:
            raise ValueError(f"Subdivisions must be positive, got {self.subdivisions}")
        if self.global_refinements < 0:
            raise ValueError(f"Global refinements must be non-negative, got {self.global_refinements}")
        if self.x_range[1] <= self.x_range[0] or self.y_range[1] <= self.y_range[0]:
            raise ValueError(f"Degenerate domain {self.x_range} x {self.y_range}")
        for name in ("dirichlet_boundary_id", "traction_boundary_id"):
            bid = getattr(self, name)
            if not 0 <= bid < N_BOUNDARY_IDS:
                raise ValueError(f"{name} must be in [0, {N_BOUNDARY_IDS}), got {bid}")


@dataclass(frozen=True)
class TimeSteppingParameters:
    """Time step, theta, load magnitudes and the simulated interval."""
    time_step: float = 0.005
    theta: float = 0.5
    gravity: float = 9.81
    distributed_load: float = 1e3
    density: float = 1000.0
    initial_time: float = 0.0
    final_time: float = 0.05
    traction_ramp_offset: float = 0.01
    traction_ramp_duration: float = 0.01
    linear_solver: str = "direct"

    def __post_init__(self):
        if not self.time_step > 0.0:
            raise ValueError(f"Time step must be positive, got {self.time_step}")
        if not 0.0 <= self.theta <= 1.0:
            raise ValueError(f"Theta must lie in [0, 1], got {self.theta}")
        if not self.density > 0.0:
            raise ValueError(f"Density must be positive, got {self.density}")
        if self.final_time < self.initial_time:
            raise ValueError(f"Final time {self.final_time} precedes initial time {self.initial_time}")
        if not self.traction_ramp_duration > 0.0:
            raise ValueError(f"Ramp duration must be positive, got {self.traction_ramp_duration}")
        if self.linear_solver not in LINEAR_SOLVERS:
            raise ValueError(f"Unknown linear solver {self.linear_solver!r}; "
                             f"expected one of {LINEAR_SOLVERS}")


@dataclass(frozen=True)
class OutputParameters:
    """
    Diagnostics: the sampled point and VTK output.

    output_interval = 0 disables file output.
    """
    evaluation_point: Tuple[float, float] = (1.0, 0.1)
    output_directory: Optional[str] = None
    output_interval: int = 0

    def __post_init__(self):
        point = tuple(float(x) for x in self.evaluation_point)
        if len(point) != 2:
            raise ValueError(f"Evaluation point needs two coordinates, got {point}")
        object.__setattr__(self, "evaluation_point", point)
        if self.output_interval < 0:
            raise ValueError(f"Output interval must be non-negative, got {self.output_interval}")


class StepPhase(Enum):
    IDLE = "idle"
    STEP_ACTIVE = "step_active"


@dataclass
class SimulationState:
    """Fields of the last completed step and of the one before."""
    displacement: np.ndarray
    velocity: np.ndarray
    previous_displacement: np.ndarray
    previous_velocity: np.ndarray
    body_force: np.ndarray
    previous_body_force: np.ndarray
    time: float = 0.0
    time_step_index: int = 0

    @classmethod
    def zeros(cls, n_dofs: int, initial_time: float = 0.0) -> 'SimulationState':
        return cls(*(np.zeros(n_dofs) for _ in range(6)), time=initial_time)


@dataclass
class Operators:
    """Mass matrix (fixed after setup), stiffness and per-step system matrices."""
    mass_matrix: Optional[sparse.csr_matrix] = None
    stiffness_matrix: Optional[sparse.csr_matrix] = None
    system_matrix_u: Optional[sparse.csr_matrix] = None
    system_matrix_v: Optional[sparse.csr_matrix] = None


class ElastodynamicsSolver:
    """
    Elastic body under gravity and a ramped boundary traction.

    The default setup is a cantilever clamped on the left (boundary 0)
    and loaded on top (boundary 3).

    Attributes:
        state: SimulationState, None before setup_system()
        operators: Assembled operators
        point_history: (time, point_value()) for every finalized step
        time, time_step_index: Run-loop counters, the last completed step
            after run() returns
    """

    dim = 2

    def __init__(self,
                 discretization: Optional[DiscretizationParameters] = None,
                 time_stepping: Optional[TimeSteppingParameters] = None,
                 material: Optional[MaterialParameters] = None,
                 output: Optional[OutputParameters] = None):
        self.discretization = discretization or DiscretizationParameters()
        self.time_stepping = time_stepping or TimeSteppingParameters()
        self.material = material or MaterialParameters()
        self.output = output or OutputParameters()

        self.mesh: Optional[Mesh] = None
        self.dof_map: Optional[DoFMap] = None
        self.constraints: Optional[AffineConstraints] = None
        self.assembler: Optional[ElasticityAssembler] = None
        self.boundary_values: Dict[int, float] = {}
        self.gravity_load: Optional[np.ndarray] = None

        self.state: Optional[SimulationState] = None
        self.operators = Operators()
        self.phase = StepPhase.IDLE
        self.point_history: List[Tuple[float, float]] = []

        self.time = self.time_stepping.initial_time
        self.time_step_index = 0

        self._pending_step: Optional[Tuple[int, float]] = None
        self._scratch: Optional[Dict[str, np.ndarray]] = None

    @property
    def vertical_component(self) -> int:
        """Component loaded by gravity and traction."""
        return self.dim - 1

    @property
    def surface(self) -> NURBSSurface:
        return self.mesh.surface

    def setup_system(self) -> None:
        """Build mesh, DOFs, mass matrix and gravity load; zero the state."""
        disc = self.discretization
        ts = self.time_stepping

        surface = make_nurbs_rectangle(disc.x_range, disc.y_range, disc.degree,
                                       disc.subdivisions[0], disc.subdivisions[1],
                                       disc.global_refinements)
        self.mesh = build_mesh_2d(surface)
        self.dof_map = self.mesh.distribute_dofs(self.dim)
        n_dofs = self.dof_map.n_dofs

        logger.info("Number of active cells: %d", self.mesh.n_active_elements)
        logger.info("Number of degrees of freedom: %d", n_dofs)

        if disc.traction_boundary_id not in self.mesh.boundary_ids:
            raise ValueError(f"Traction boundary id {disc.traction_boundary_id} not on the mesh")
        find_parametric_point(surface, self.output.evaluation_point)

        self.constraints = AffineConstraints(n_dofs)
        self.constraints.close()

        traction = RampedTraction(magnitude=ts.distributed_load,
                                  offset=ts.traction_ramp_offset,
                                  duration=ts.traction_ramp_duration,
                                  component=self.vertical_component,
                                  n_components=self.dim)
        self.assembler = ElasticityAssembler(self.mesh, self.dof_map, self.material,
                                             traction=traction,
                                             traction_boundary_id=disc.traction_boundary_id,
                                             constraints=self.constraints)

        self.boundary_values = interpolate_boundary_values(
            self.dof_map, disc.dirichlet_boundary_id, zero_function(self.dim))

        self.operators = Operators(mass_matrix=self.assembler.assemble_mass_matrix())
        self.gravity_load = self.assembler.assemble_gravity_load(ts.density, ts.gravity)

        self.state = SimulationState.zeros(n_dofs, ts.initial_time)
        self.state.body_force = self.assemble_system(ts.initial_time)

        self.phase = StepPhase.IDLE
        self.point_history = []
        self.time = ts.initial_time
        self.time_step_index = 0

    def assemble_system(self, time: Optional[float] = None) -> np.ndarray:
        """
        Reassemble the stiffness matrix and the traction load.

        Parameters:
            time: Load time, the pending step time (or the state time) by default

        Returns:
            Traction load vector at that time
        """
        self._require_setup()
        if time is None:
            time = self._pending_step[1] if self._pending_step else self.state.time
        K, body_force = self.assembler.assemble_stiffness(time)
        self.operators.stiffness_matrix = K
        return body_force

    def init_time_step(self) -> None:
        self._require_setup()
        if self.phase is StepPhase.STEP_ACTIVE:
            raise StepSequenceError("init_time_step() called while a step is active")

        index = self.state.time_step_index + 1
        time = self.time_stepping.initial_time + index * self.time_stepping.time_step
        self._pending_step = (index, time)
        self._scratch = None
        self.phase = StepPhase.STEP_ACTIVE

    def solve(self) -> None:
        """Compute the new displacement and velocity of the active step."""
        if self.phase is not StepPhase.STEP_ACTIVE:
            raise StepSequenceError("solve() called outside an active time step")

        ts = self.time_stepping
        dt = ts.time_step
        theta = ts.theta
        rho = ts.density
        _, t_new = self._pending_step

        body_force_new = self.assemble_system(t_new)
        M = self.operators.mass_matrix
        K = self.operators.stiffness_matrix

        u_old = self.state.displacement
        v_old = self.state.velocity
        K_u_old = K.dot(u_old)
        M_v_old = M.dot(v_old)

        forcing_new = (body_force_new + self.gravity_load) / rho
        forcing_old = (self.state.body_force + self.gravity_load) / rho
        forcing_terms = theta * dt * forcing_new + (1.0 - theta) * dt * forcing_old

        # displacement
        rhs = (M.dot(u_old) + dt * M_v_old
               - theta * (1.0 - theta) * dt * dt / rho * K_u_old
               + forcing_terms)
        A_u = (M + (theta * theta * dt * dt / rho) * K).tocsr()
        A_u, rhs, u_new = apply_boundary_values(A_u, rhs, u_old, self.boundary_values)
        u_new = solve_linear_system(A_u, rhs, ts.linear_solver)
        self.constraints.distribute(u_new)

        # velocity
        rhs = (-theta * dt / rho * K.dot(u_new)
               + M_v_old
               - (1.0 - theta) * dt / rho * K_u_old
               + forcing_terms)
        A_v, rhs, v_new = apply_boundary_values(M, rhs, v_old, self.boundary_values)
        v_new = solve_linear_system(A_v, rhs, ts.linear_solver)
        self.constraints.distribute(v_new)

        self.operators.system_matrix_u = A_u
        self.operators.system_matrix_v = A_v
        self._scratch = {"displacement": u_new,
                         "velocity": v_new,
                         "body_force": body_force_new}

        logger.debug("t=%.6f: |u|=%.6e, |v|=%.6e", t_new,
                     np.linalg.norm(u_new), np.linalg.norm(v_new))

    def finalize_time_step(self) -> None:
        """Accept the solved step: shift fields and advance time."""
        if self.phase is not StepPhase.STEP_ACTIVE:
            raise StepSequenceError("finalize_time_step() called without init_time_step()")
        if self._scratch is None:
            raise StepSequenceError("finalize_time_step() called before solve()")

        state = self.state
        state.previous_displacement = state.displacement
        state.previous_velocity = state.velocity
        state.previous_body_force = state.body_force
        state.displacement = self._scratch["displacement"]
        state.velocity = self._scratch["velocity"]
        state.body_force = self._scratch["body_force"]
        state.time_step_index, state.time = self._pending_step

        self._pending_step = None
        self._scratch = None
        self.phase = StepPhase.IDLE

        value = self.point_value()
        self.point_history.append((state.time, value))
        logger.info("Time step %d at t=%.6f, u_%d%s = %.6e", state.time_step_index,
                    state.time, self.vertical_component, self.output.evaluation_point, value)

    def run(self) -> SimulationState:
        """
        Setup and time loop up to final_time.

        The loop counters overshoot by one step before the loop exits and
        are rolled back afterwards, so they describe the last completed
        step, floor((final_time - initial_time) / dt) steps in total.
        """
        self.setup_system()
        ts = self.time_stepping
        dt = ts.time_step
        end = ts.final_time + 1e-9 * dt

        self.time_step_index = 1
        self.time = ts.initial_time + dt
        while self.time <= end:
            self.init_time_step()
            self.solve()
            self.finalize_time_step()
            if self.output.output_interval > 0 and self.time_step_index % self.output.output_interval == 0:
                self.output_results()

            self.time_step_index += 1
            self.time = ts.initial_time + self.time_step_index * dt

        self.time_step_index -= 1
        self.time = ts.initial_time + self.time_step_index * dt

        logger.info("Finished %d time steps at t=%.6f", self.time_step_index, self.time)
        return self.state

    def point_value(self, component: Optional[int] = None,
                    point: Optional[Tuple[float, float]] = None) -> float:
        """Displacement component (vertical by default) at a point."""
        self._require_setup()
        if component is None:
            component = self.vertical_component
        if point is None:
            point = self.output.evaluation_point
        return evaluate_field_at_point(self.surface, self.state.displacement,
                                       point, self.dim, component)

    def output_results(self) -> Optional[Path]:
        """Write solution-XXXX.vtk; no-op unless output is configured."""
        if self.output.output_directory is None or self.output.output_interval <= 0:
            return None
        self._require_setup()

        directory = Path(self.output.output_directory)
        directory.mkdir(parents=True, exist_ok=True)
        filename = directory / f"solution-{self.state.time_step_index:04d}.vtk"

        kv_xi, kv_eta = self.surface.knot_vectors
        return export_vtk_vector_field_2d(
            str(filename), self.surface,
            {"displacement": self.state.displacement, "velocity": self.state.velocity},
            n_xi=4 * kv_xi.n_elements + 1, n_eta=4 * kv_eta.n_elements + 1,
            n_components=self.dim)

    def _require_setup(self) -> None:
        if self.state is None:
            raise StepSequenceError("setup_system() must be called first")
