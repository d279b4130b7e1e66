"""
Unit tests for NURBS surfaces and the rectangle factory.
"""

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal, assert_almost_equal

from elastIGA.discretization.knot_vector import make_open_knot_vector
from elastIGA.geometry.nurbs import NURBSSurface
from elastIGA.geometry.primitives import make_nurbs_rectangle, make_nurbs_unit_square


class TestNURBSSurface:
    """Tests for NURBSSurface."""

    def test_control_point_count_checked(self):
        kv = make_open_knot_vector(n_basis=3, degree=2)
        with pytest.raises(ValueError):
            NURBSSurface(kv, kv, np.zeros((8, 2)))

    def test_default_weights(self):
        surface = make_nurbs_unit_square(p=2, n_elem_xi=2, n_elem_eta=3)
        assert_array_almost_equal(surface.weights, np.ones(surface.n_control_points))

    def test_rational_basis_partition_of_unity(self):
        surface = make_nurbs_unit_square(p=2, n_elem_xi=3, n_elem_eta=2)
        for xi in [(0.0, 0.0), (0.3, 0.7), (1.0, 0.5), (1.0, 1.0)]:
            indices, R, dR_dxi, dR_deta = surface.eval_rational_basis(xi)
            assert len(indices) == 9
            assert_almost_equal(R.sum(), 1.0)
            assert_almost_equal(dR_dxi.sum(), 0.0, decimal=12)
            assert_almost_equal(dR_deta.sum(), 0.0, decimal=12)

    def test_rational_weights_still_partition_of_unity(self):
        kv = make_open_knot_vector(n_basis=3, degree=2)
        g = np.array([0.0, 0.5, 1.0])
        X, Y = np.meshgrid(g, g)
        weights = np.array([1.0, 0.7, 1.0, 0.8, 1.2, 0.9, 1.0, 1.0, 1.0])
        surface = NURBSSurface(kv, kv, np.column_stack([X.ravel(), Y.ravel()]), weights)

        _, R, _, _ = surface.eval_rational_basis((0.4, 0.35))
        assert_almost_equal(R.sum(), 1.0)


class TestRectangle:
    """Tests for the rectangle factory."""

    def test_affine_geometry(self):
        """Greville control points give x = x0 + (x1 - x0) xi."""
        surface = make_nurbs_rectangle((0.0, 1.0), (0.0, 0.2), p=2, n_elem_xi=5, n_elem_eta=1)
        for xi in [(0.0, 0.0), (0.25, 0.5), (0.8, 0.1), (1.0, 1.0)]:
            point, jac = surface.eval_jacobian(xi)
            assert_array_almost_equal(point, [xi[0], 0.2 * xi[1]])
            assert_array_almost_equal(jac, [[1.0, 0.0], [0.0, 0.2]])

    def test_refinement_counts(self):
        surface = make_nurbs_rectangle((0.0, 1.0), (0.0, 0.2), p=1, n_elem_xi=5,
                                       n_elem_eta=1, n_refinements=1)
        kv_xi, kv_eta = surface.knot_vectors
        assert (kv_xi.n_elements, kv_eta.n_elements) == (10, 2)
        assert surface.n_control_points_per_dir == (11, 3)

    def test_control_points_x_fastest(self):
        surface = make_nurbs_rectangle((0.0, 2.0), (0.0, 1.0), p=1, n_elem_xi=2, n_elem_eta=1)
        cps = surface.control_points
        assert_array_almost_equal(cps[:3], [[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
        assert_array_almost_equal(cps[3], [0.0, 1.0])

    def test_degenerate_rectangle_rejected(self):
        with pytest.raises(ValueError):
            make_nurbs_rectangle((1.0, 1.0), (0.0, 1.0))
