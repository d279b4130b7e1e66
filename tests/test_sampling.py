"""
Tests for point location, field evaluation and VTK export.
"""

import pytest
import numpy as np
from numpy.testing import assert_allclose

from elastIGA.geometry.primitives import make_nurbs_rectangle
from elastIGA.postprocess.sampling import (find_parametric_point, evaluate_field_at_point,
                                           sample_vector_field_2d, PointNotFoundError)
from elastIGA.postprocess.vtk import export_vtk_vector_field_2d


@pytest.fixture
def beam():
    return make_nurbs_rectangle((0.0, 1.0), (0.0, 0.2), p=2, n_elem_xi=5, n_elem_eta=2)


def linear_field(surface, a, b):
    """Interleaved coefficients of u(x, y) = (a . [1, x, y], b . [1, x, y])."""
    cps = surface.control_points
    basis = np.column_stack([np.ones(len(cps)), cps])
    field = np.zeros(2 * len(cps))
    field[0::2] = basis @ np.asarray(a)
    field[1::2] = basis @ np.asarray(b)
    return field


class TestFindParametricPoint:
    """Tests for inverting the geometry map."""

    @pytest.mark.parametrize("point, expected", [
        ((0.5, 0.1), (0.5, 0.5)),
        ((1.0, 0.1), (1.0, 0.5)),
        ((0.0, 0.0), (0.0, 0.0)),
        ((0.3, 0.2), (0.3, 1.0)),
    ])
    def test_affine_map(self, beam, point, expected):
        assert_allclose(find_parametric_point(beam, point), expected, atol=1e-10)

    @pytest.mark.parametrize("point", [(1.5, 0.1), (0.5, -0.1), (-0.01, 0.0)])
    def test_outside(self, beam, point):
        with pytest.raises(PointNotFoundError):
            find_parametric_point(beam, point)

    def test_point_not_found_is_value_error(self, beam):
        with pytest.raises(ValueError):
            find_parametric_point(beam, (2.0, 2.0))

    def test_wrong_dimension(self, beam):
        with pytest.raises(ValueError):
            find_parametric_point(beam, (0.5,))


class TestEvaluateField:
    """Tests for evaluating interleaved fields."""

    def test_linear_field_reproduced(self, beam):
        field = linear_field(beam, [1.0, 2.0, -3.0], [0.5, 0.0, 4.0])
        x, y = 0.37, 0.13
        values = evaluate_field_at_point(beam, field, (x, y), 2)
        assert_allclose(values, [1.0 + 2.0 * x - 3.0 * y, 0.5 + 4.0 * y], atol=1e-12)

    def test_single_component(self, beam):
        field = linear_field(beam, [0.0, 0.0, 0.0], [0.0, -1.0, 0.0])
        assert evaluate_field_at_point(beam, field, (1.0, 0.1), 2, component=1) == pytest.approx(-1.0)

    def test_field_length_checked(self, beam):
        with pytest.raises(ValueError):
            evaluate_field_at_point(beam, np.zeros(5), (0.5, 0.1), 2)

    def test_component_checked(self, beam):
        with pytest.raises(ValueError):
            evaluate_field_at_point(beam, np.zeros(2 * beam.n_control_points), (0.5, 0.1), 2, 2)


class TestSamplingAndVTK:
    """Tests for grid sampling and VTK output."""

    def test_sample_grid(self, beam):
        field = linear_field(beam, [0.0, 1.0, 0.0], [0.0, 0.0, 1.0])
        points, values = sample_vector_field_2d(beam, field, 2, n_xi=6, n_eta=3)
        assert points.shape == (3, 6, 2)
        assert values.shape == (3, 6, 2)
        # u = (x, y) reproduces the coordinates
        assert_allclose(values, points, atol=1e-12)

    def test_export(self, beam, tmp_path):
        field = linear_field(beam, [0.0, 1.0, 0.0], [0.0, 0.0, 1.0])
        path = export_vtk_vector_field_2d(str(tmp_path / "solution-0001"), beam,
                                          {"displacement": field, "velocity": 2 * field},
                                          n_xi=4, n_eta=3)
        assert path.suffix == ".vtk"
        text = path.read_text()
        assert "DIMENSIONS 4 3 1" in text
        assert "POINTS 12 double" in text
        assert "VECTORS displacement double" in text
        assert "VECTORS velocity double" in text

    def test_export_requires_fields(self, beam, tmp_path):
        with pytest.raises(ValueError):
            export_vtk_vector_field_2d(str(tmp_path / "empty.vtk"), beam, {})
