"""
Tests for the theta-method elastodynamics solver.
"""

import logging
import pytest
import numpy as np
from numpy.testing import assert_allclose

from elastIGA.solver.base import StepSequenceError
from elastIGA.solver.material import MaterialParameters
from elastIGA.solver.elastodynamics import (ElastodynamicsSolver, DiscretizationParameters,
                                            TimeSteppingParameters, OutputParameters,
                                            StepPhase)


@pytest.fixture
def solver(small_discretization, small_time_stepping):
    return ElastodynamicsSolver(small_discretization, small_time_stepping, MaterialParameters())


class TestParameterValidation:
    """Invalid parameters are rejected before any state is built."""

    @pytest.mark.parametrize("kwargs", [
        {"time_step": 0.0}, {"time_step": -0.01},
        {"theta": -0.1}, {"theta": 1.5},
        {"density": 0.0},
        {"final_time": -1.0},
        {"traction_ramp_duration": 0.0},
        {"linear_solver": "gmres"},
    ])
    def test_time_stepping(self, kwargs):
        with pytest.raises(ValueError):
            TimeSteppingParameters(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {"degree": 0},
        {"subdivisions": (0, 1)},
        {"global_refinements": -1},
        {"x_range": (1.0, 0.0)},
        {"traction_boundary_id": 4},
        {"dirichlet_boundary_id": -1},
    ])
    def test_discretization(self, kwargs):
        with pytest.raises(ValueError):
            DiscretizationParameters(**kwargs)

    def test_output(self):
        with pytest.raises(ValueError):
            OutputParameters(output_interval=-1)
        with pytest.raises(ValueError):
            OutputParameters(evaluation_point=(1.0, 0.1, 0.0))

    @pytest.mark.parametrize("theta", [0.0, 0.5, 1.0])
    def test_theta_bounds_accepted(self, theta):
        assert TimeSteppingParameters(theta=theta).theta == theta

    def test_lists_converted_to_tuples(self):
        params = DiscretizationParameters(x_range=[0, 2], subdivisions=[3, 2])
        assert params.x_range == (0, 2)
        assert params.subdivisions == (3, 2)

    def test_evaluation_point_outside_domain(self, small_discretization):
        solver = ElastodynamicsSolver(small_discretization,
                                      output=OutputParameters(evaluation_point=(2.0, 0.1)))
        with pytest.raises(ValueError):
            solver.setup_system()


class TestSetup:
    """Tests for setup_system."""

    def test_sizes(self, solver):
        solver.setup_system()
        # (4 + 1) x (1 + 1) control points, 2 components
        assert solver.dof_map.n_dofs == 20
        assert solver.mesh.n_active_elements == 4
        assert solver.operators.mass_matrix.shape == (20, 20)
        assert solver.operators.stiffness_matrix.shape == (20, 20)

    def test_default_discretization_sizes(self):
        solver = ElastodynamicsSolver()
        solver.setup_system()
        # 5 x 1 subdivisions, one global refinement
        assert solver.mesh.n_active_elements == 20
        assert solver.dof_map.n_dofs == 2 * 11 * 3

    def test_initial_state(self, solver):
        solver.setup_system()
        state = solver.state
        assert state.time == 0.0
        assert state.time_step_index == 0
        assert np.all(state.displacement == 0.0)
        assert np.all(state.velocity == 0.0)
        assert solver.phase is StepPhase.IDLE

    def test_clamped_dofs(self, solver):
        solver.setup_system()
        # Left edge control points 0 and 5, both components
        assert sorted(solver.boundary_values) == [0, 1, 10, 11]

    def test_logs_counts(self, solver, caplog):
        with caplog.at_level(logging.INFO, logger="elastIGA"):
            solver.setup_system()
        assert "Number of active cells: 4" in caplog.text
        assert "Number of degrees of freedom: 20" in caplog.text

    def test_step_before_setup(self, solver):
        with pytest.raises(StepSequenceError):
            solver.init_time_step()


class TestStepSequence:
    """The per-step API must be called as init, solve, finalize."""

    def test_finalize_without_init(self, solver):
        solver.setup_system()
        with pytest.raises(StepSequenceError):
            solver.finalize_time_step()

    def test_double_init(self, solver):
        solver.setup_system()
        solver.init_time_step()
        with pytest.raises(StepSequenceError):
            solver.init_time_step()

    def test_solve_outside_step(self, solver):
        solver.setup_system()
        with pytest.raises(StepSequenceError):
            solver.solve()

    def test_finalize_before_solve(self, solver):
        solver.setup_system()
        solver.init_time_step()
        with pytest.raises(StepSequenceError):
            solver.finalize_time_step()

    def test_step_error_is_runtime_error(self):
        assert issubclass(StepSequenceError, RuntimeError)

    def test_phase_transitions(self, solver):
        solver.setup_system()
        solver.init_time_step()
        assert solver.phase is StepPhase.STEP_ACTIVE
        solver.solve()
        assert solver.phase is StepPhase.STEP_ACTIVE
        solver.finalize_time_step()
        assert solver.phase is StepPhase.IDLE

    def test_solve_does_not_advance_state(self, solver):
        solver.setup_system()
        solver.init_time_step()
        solver.solve()
        assert solver.state.time == 0.0
        assert solver.state.time_step_index == 0
        assert np.all(solver.state.displacement == 0.0)

        solver.finalize_time_step()
        assert solver.state.time_step_index == 1
        assert solver.state.time == pytest.approx(0.01)
        assert np.any(solver.state.displacement != 0.0)
        assert np.all(solver.state.previous_displacement == 0.0)


def dense_theta_step(M, K, u_old, v_old, f_old, f_new, gravity_load, clamped,
                     dt, theta, rho):
    """One theta step with dense matrices, clamped DOFs removed from the system."""
    F = (theta * dt * (f_new + gravity_load) / rho
         + (1.0 - theta) * dt * (f_old + gravity_load) / rho)
    free = np.setdiff1d(np.arange(len(u_old)), clamped)
    block = np.ix_(free, free)

    A_u = M + theta ** 2 * dt ** 2 / rho * K
    rhs_u = M @ u_old + dt * M @ v_old - theta * (1.0 - theta) * dt ** 2 / rho * K @ u_old + F
    u_new = np.zeros_like(u_old)
    u_new[free] = np.linalg.solve(A_u[block], rhs_u[free])

    rhs_v = -theta * dt / rho * K @ u_new + M @ v_old - (1.0 - theta) * dt / rho * K @ u_old + F
    v_new = np.zeros_like(v_old)
    v_new[free] = np.linalg.solve(M[block], rhs_v[free])
    return u_new, v_new


class TestTimeStepping:
    """Tests for the numerical behaviour of the scheme."""

    @pytest.mark.parametrize("theta", [0.5, 1.0, 0.3])
    def test_matches_dense_theta_scheme(self, theta):
        """Steps across the traction ramp agree with a dense rebuild of each system."""
        ts = TimeSteppingParameters(time_step=0.005, theta=theta)
        solver = ElastodynamicsSolver(
            DiscretizationParameters(degree=2, subdivisions=(4, 1), global_refinements=0), ts)
        solver.setup_system()
        M = solver.operators.mass_matrix.toarray()
        clamped = np.array(sorted(solver.boundary_values))

        for _ in range(5):
            u_old = solver.state.displacement.copy()
            v_old = solver.state.velocity.copy()
            f_old = solver.state.body_force.copy()

            solver.init_time_step()
            solver.solve()
            solver.finalize_time_step()

            K = solver.operators.stiffness_matrix.toarray()
            u_ref, v_ref = dense_theta_step(M, K, u_old, v_old, f_old, solver.state.body_force,
                                            solver.gravity_load, clamped,
                                            ts.time_step, theta, ts.density)
            assert_allclose(solver.state.displacement, u_ref, rtol=1e-7,
                            atol=1e-8 * np.abs(u_ref).max())
            assert_allclose(solver.state.velocity, v_ref, rtol=1e-7,
                            atol=1e-8 * np.abs(v_ref).max())

        # The ramp has started, so the traction entered the forcing terms
        assert np.any(solver.state.body_force != 0.0)

    def test_first_step_follows_gravity(self, solver):
        solver.setup_system()
        solver.init_time_step()
        solver.solve()
        solver.finalize_time_step()

        value = solver.point_value()
        assert np.isfinite(value)
        assert value < 0.0

    def test_mass_matrix_unchanged(self, solver):
        solver.setup_system()
        M_before = solver.operators.mass_matrix.toarray().copy()
        for _ in range(3):
            solver.init_time_step()
            solver.solve()
            solver.finalize_time_step()
        assert np.array_equal(solver.operators.mass_matrix.toarray(), M_before)

    def test_clamped_edge_stays_fixed(self, solver):
        state = solver.run()
        for dof in solver.boundary_values:
            assert state.displacement[dof] == 0.0
            assert state.velocity[dof] == 0.0

    def test_state_shift(self, solver):
        solver.setup_system()
        for _ in range(2):
            solver.init_time_step()
            solver.solve()
            u_prev = solver.state.displacement.copy()
            v_prev = solver.state.velocity.copy()
            solver.finalize_time_step()
        assert_allclose(solver.state.previous_displacement, u_prev)
        assert_allclose(solver.state.previous_velocity, v_prev)

    def test_body_force_follows_ramp(self, solver):
        solver.run()
        # t = 0.05 is past the ramp: the full load acts on the top edge
        assert solver.state.body_force[1::2].sum() == pytest.approx(-1e3)
        # t = 0.04 also fully ramped
        assert solver.state.previous_body_force[1::2].sum() == pytest.approx(-1e3)

    @pytest.mark.parametrize("theta", [0.5, 1.0])
    def test_deterministic(self, small_discretization, theta):
        ts = TimeSteppingParameters(time_step=0.01, theta=theta)
        first = ElastodynamicsSolver(small_discretization, ts).run()
        second = ElastodynamicsSolver(small_discretization, ts).run()
        assert np.array_equal(first.displacement, second.displacement)

    def test_cg_matches_direct(self, small_discretization):
        direct = ElastodynamicsSolver(small_discretization,
                                      TimeSteppingParameters(time_step=0.01)).run()
        iterative = ElastodynamicsSolver(small_discretization,
                                         TimeSteppingParameters(time_step=0.01,
                                                                linear_solver="cg")).run()
        scale = np.abs(direct.displacement).max()
        assert_allclose(iterative.displacement, direct.displacement, atol=1e-6 * scale)


class TestRunLoop:
    """Tests for run(): step count, rollback and diagnostics."""

    def test_step_count_and_rollback(self, solver):
        state = solver.run()
        # floor(0.05 / 0.01) steps
        assert state.time_step_index == 5
        assert solver.time_step_index == 5
        assert solver.time == pytest.approx(0.05)
        assert state.time == pytest.approx(0.05)
        assert solver.phase is StepPhase.IDLE

    def test_default_step_count(self, small_discretization):
        solver = ElastodynamicsSolver(small_discretization, TimeSteppingParameters())
        state = solver.run()
        assert state.time_step_index == 10
        assert state.time == pytest.approx(0.05)

    def test_non_dividing_time_step(self, small_discretization):
        solver = ElastodynamicsSolver(small_discretization,
                                      TimeSteppingParameters(time_step=0.015))
        state = solver.run()
        # floor(0.05 / 0.015) = 3
        assert state.time_step_index == 3
        assert state.time == pytest.approx(0.045)

    def test_configurable_final_time(self, small_discretization):
        solver = ElastodynamicsSolver(small_discretization,
                                      TimeSteppingParameters(time_step=0.01, final_time=0.02))
        assert solver.run().time_step_index == 2

    def test_point_history(self, solver):
        solver.run()
        times = [t for t, _ in solver.point_history]
        assert_allclose(times, [0.01, 0.02, 0.03, 0.04, 0.05])
        assert solver.point_history[-1][1] == solver.point_value()

    def test_point_value_is_pure(self, solver):
        solver.run()
        u = solver.state.displacement.copy()
        first = solver.point_value()
        second = solver.point_value()
        assert first == second
        assert np.array_equal(solver.state.displacement, u)

    def test_point_value_other_component_and_point(self, solver):
        solver.run()
        # Clamped edge does not move
        assert solver.point_value(component=1, point=(0.0, 0.1)) == pytest.approx(0.0, abs=1e-15)
        assert np.isfinite(solver.point_value(component=0))

    def test_load_bends_beam_further(self, small_discretization):
        """The traction adds to gravity, so the tip moves further down."""
        gravity_only = ElastodynamicsSolver(
            small_discretization, TimeSteppingParameters(time_step=0.01, distributed_load=0.0))
        loaded = ElastodynamicsSolver(
            small_discretization, TimeSteppingParameters(time_step=0.01))
        gravity_only.run()
        loaded.run()
        assert loaded.point_value() < gravity_only.point_value()


class TestOutput:
    """Tests for VTK output from the run loop."""

    def test_no_output_by_default(self, solver):
        solver.setup_system()
        assert solver.output_results() is None

    def test_vtk_files_written(self, small_discretization, small_time_stepping, tmp_path):
        output = OutputParameters(output_directory=str(tmp_path / "results"), output_interval=2)
        solver = ElastodynamicsSolver(small_discretization, small_time_stepping, output=output)
        solver.run()
        written = sorted(p.name for p in (tmp_path / "results").iterdir())
        assert written == ["solution-0002.vtk", "solution-0004.vtk"]
