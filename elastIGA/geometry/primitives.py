"""
Primitive geometry factory functions.

The rectangle is the analysis domain of the cantilever problems: an
affine B-spline surface whose control points sit at the Greville
abscissae of both knot vectors.
"""

import numpy as np
from typing import Tuple

from .nurbs import NURBSSurface
from ..discretization.knot_vector import (make_uniform_knot_vector,
                                          refine_knot_vector_uniform)


def make_nurbs_rectangle(x_range: Tuple[float, float] = (0.0, 1.0),
                         y_range: Tuple[float, float] = (0.0, 1.0),
                         p: int = 2,
                         n_elem_xi: int = 4,
                         n_elem_eta: int = 4,
                         n_refinements: int = 0) -> NURBSSurface:
    """
    Create a B-spline surface representing a rectangle.

    Parameters:
        x_range: (x_min, x_max)
        y_range: (y_min, y_max)
        p: Polynomial degree in both directions
        n_elem_xi: Number of base elements in xi direction
        n_elem_eta: Number of base elements in eta direction
        n_refinements: Number of global bisections of every element

    Returns:
        NURBSSurface with parametric domain [0,1]^2
    """
    if x_range[1] <= x_range[0] or y_range[1] <= y_range[0]:
        raise ValueError(f"Degenerate rectangle {x_range} x {y_range}")

    kv_xi = refine_knot_vector_uniform(make_uniform_knot_vector(n_elem_xi, p), n_refinements)
    kv_eta = refine_knot_vector_uniform(make_uniform_knot_vector(n_elem_eta, p), n_refinements)

    g_xi = kv_xi.greville_abscissae()
    g_eta = kv_eta.greville_abscissae()

    # x-fastest ordering: index = j * n_xi + i
    X, Y = np.meshgrid(x_range[0] + (x_range[1] - x_range[0]) * g_xi,
                       y_range[0] + (y_range[1] - y_range[0]) * g_eta)
    control_points = np.column_stack([X.ravel(), Y.ravel()])

    return NURBSSurface(kv_xi, kv_eta, control_points)


def make_nurbs_unit_square(p: int = 2, n_elem_xi: int = 4,
                           n_elem_eta: int = 4) -> NURBSSurface:
    """Unit square [0,1]^2, parametric and physical coordinates coincide."""
    return make_nurbs_rectangle((0.0, 1.0), (0.0, 1.0), p, n_elem_xi, n_elem_eta)
