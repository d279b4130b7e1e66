"""
Field evaluation for diagnostics and visualization.

Fields are coefficient vectors over the control points, interleaved for
vector fields: u[a * n_components + c]. Their value at a parametric
point is

    u_c(xi) = sum_a R_a(xi) u[a * n_components + c]

with the same rational basis as the geometry.

Key functions:
- find_parametric_point: invert the geometry map (Newton iteration)
- evaluate_field_at_point: value of a field at a physical point
- sample_vector_field_2d: values on a uniform parametric grid

The sampling uses the NURBS geometry directly (not Bézier extraction)
since we're evaluating the solution, not assembling matrices.
"""

import numpy as np
from typing import Tuple, Optional, Sequence, Union

from ..geometry.nurbs import NURBSSurface


class PointNotFoundError(ValueError):
    """Physical point does not lie in the domain of the surface."""


def find_parametric_point(surface: NURBSSurface,
                          point: Sequence[float],
                          tol: float = 1e-10,
                          max_iter: int = 50) -> Tuple[float, float]:
    """
    Parametric coordinates of a physical point.

    Newton iteration on S(xi) = x starting from the centre of the
    parametric domain; iterates are clipped to the domain, so points on
    the boundary are found and points outside it are not.

    Parameters:
        surface: NURBS surface (2D physical space)
        point: Physical point (x, y)
        tol: Residual tolerance, relative to the size of the control polygon
        max_iter: Maximum Newton iterations

    Returns:
        (xi, eta)

    Raises:
        PointNotFoundError: No parametric point maps to the given point
    """
    x = np.asarray(point, dtype=np.float64)
    if x.shape != (surface.n_dim_physical,):
        raise ValueError(f"Expected a point with {surface.n_dim_physical} coordinates, got {x.shape}")

    (xi_min, xi_max), (eta_min, eta_max) = surface.domain
    lower = np.array([xi_min, eta_min])
    upper = np.array([xi_max, eta_max])

    cps = surface.control_points
    scale = max(1.0, float(np.linalg.norm(cps.max(axis=0) - cps.min(axis=0))))

    xi = 0.5 * (lower + upper)
    residual = np.inf
    for _ in range(max_iter):
        S, J = surface.eval_jacobian(tuple(xi))
        r = x - S
        residual = np.linalg.norm(r)
        if residual < tol * scale:
            return float(xi[0]), float(xi[1])
        try:
            step = np.linalg.solve(J[:2, :2], r[:2])
        except np.linalg.LinAlgError as exc:
            raise PointNotFoundError(f"Singular geometry map near xi={xi}") from exc
        xi_new = np.clip(xi + step, lower, upper)
        if np.allclose(xi_new, xi, rtol=0.0, atol=1e-15):
            break
        xi = xi_new

    S = surface.eval_point(tuple(xi))
    residual = np.linalg.norm(x - S)
    if residual < tol * scale:
        return float(xi[0]), float(xi[1])
    raise PointNotFoundError(f"Point {tuple(x)} not found in the domain "
                             f"(closest parametric point {tuple(xi)}, distance {residual:.3e})")


def evaluate_field_at_point(surface: NURBSSurface,
                            field: np.ndarray,
                            point: Sequence[float],
                            n_components: int,
                            component: Optional[int] = None) -> Union[float, np.ndarray]:
    """
    Value of an interleaved field at a physical point.

    Parameters:
        surface: NURBS surface
        field: Coefficients of length n_control_points * n_components
        point: Physical point
        n_components: Components per control point
        component: Single component to return, all by default

    Returns:
        Scalar if component is given, else array of shape (n_components,)
    """
    coeffs = np.asarray(field, dtype=np.float64)
    if coeffs.shape != (surface.n_control_points * n_components,):
        raise ValueError(f"Field of length {coeffs.shape} does not match "
                         f"{surface.n_control_points} control points x {n_components}")
    if component is not None and not 0 <= component < n_components:
        raise ValueError(f"Component {component} out of range [0, {n_components})")

    xi = find_parametric_point(surface, point)
    indices, R, _, _ = surface.eval_rational_basis(xi)
    values = R @ coeffs.reshape(-1, n_components)[indices]

    if component is None:
        return values
    return float(values[component])


def sample_vector_field_2d(surface: NURBSSurface,
                           field: np.ndarray,
                           n_components: int,
                           n_xi: int = 50,
                           n_eta: int = 50) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sample a field on a uniform grid in parametric space.

    Returns:
        (points, values) of shapes (n_eta, n_xi, d) and
        (n_eta, n_xi, n_components), xi running fastest
    """
    coeffs = np.asarray(field, dtype=np.float64).reshape(-1, n_components)
    (xi_min, xi_max), (eta_min, eta_max) = surface.domain
    xi_vals = np.linspace(xi_min, xi_max, n_xi)
    eta_vals = np.linspace(eta_min, eta_max, n_eta)

    points = np.zeros((n_eta, n_xi, surface.n_dim_physical))
    values = np.zeros((n_eta, n_xi, n_components))
    control_points = surface.control_points

    for j, eta in enumerate(eta_vals):
        for i, xi in enumerate(xi_vals):
            indices, R, _, _ = surface.eval_rational_basis((xi, eta))
            points[j, i] = R @ control_points[indices]
            values[j, i] = R @ coeffs[indices]

    return points, values
