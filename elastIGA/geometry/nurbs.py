"""
NURBS surface representation.

A NURBS surface maps the parametric rectangle to physical space,

    S(xi, eta) = sum_a R_a(xi, eta) P_a,
    R_a = N_i(xi) N_j(eta) w_a / sum_b N_b w_b,

with a = j * n_xi + i (xi running fastest). The same rational functions
R_a serve as the analysis basis, so a field with control values u_a is
evaluated exactly like the geometry.
"""

import numpy as np
from typing import Tuple, Optional

from ..discretization.knot_vector import KnotVector
from .bspline import eval_basis_ders_1d


class NURBSSurface:
    """
    NURBS surface in 2D (or 3D) space.

    Control points are stored as an (n_xi * n_eta, d) array in x-fastest
    order; weights default to 1 (plain B-splines).
    """

    def __init__(self,
                 knot_vector_xi: KnotVector,
                 knot_vector_eta: KnotVector,
                 control_points: np.ndarray,
                 weights: Optional[np.ndarray] = None):
        self._kv_xi = knot_vector_xi
        self._kv_eta = knot_vector_eta
        self._n_xi = knot_vector_xi.n_basis
        self._n_eta = knot_vector_eta.n_basis
        n_total = self._n_xi * self._n_eta

        control_points = np.asarray(control_points, dtype=np.float64)
        if control_points.ndim != 2 or control_points.shape[0] != n_total:
            raise ValueError(
                f"Expected {n_total} control points (n_xi * n_eta), "
                f"got array of shape {control_points.shape}"
            )
        self._control_points = control_points

        if weights is None:
            self._weights = np.ones(n_total)
        else:
            weights = np.asarray(weights, dtype=np.float64).ravel()
            if len(weights) != n_total:
                raise ValueError(f"Weights length ({len(weights)}) must equal {n_total}")
            if np.any(weights <= 0):
                raise ValueError("All weights must be positive")
            self._weights = weights

    @property
    def n_dim_parametric(self) -> int:
        return 2

    @property
    def n_dim_physical(self) -> int:
        return self._control_points.shape[1]

    @property
    def n_control_points(self) -> int:
        return self._n_xi * self._n_eta

    @property
    def n_control_points_per_dir(self) -> Tuple[int, int]:
        return (self._n_xi, self._n_eta)

    @property
    def control_points(self) -> np.ndarray:
        return self._control_points

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    @property
    def knot_vectors(self) -> Tuple[KnotVector, KnotVector]:
        return (self._kv_xi, self._kv_eta)

    @property
    def degrees(self) -> Tuple[int, int]:
        return (self._kv_xi.degree, self._kv_eta.degree)

    @property
    def domain(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        return (self._kv_xi.domain, self._kv_eta.domain)

    def eval_rational_basis(self, xi: Tuple[float, float]
                            ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Non-zero rational basis functions and parametric derivatives.

        Parameters:
            xi: Parametric point (xi, eta)

        Returns:
            (indices, R, dR_dxi, dR_deta) where indices are the global
            control point ids of the (p_xi+1)(p_eta+1) non-zero functions
        """
        u, v = xi
        p_xi, p_eta = self.degrees
        span_xi = self._kv_xi.find_span(u)
        span_eta = self._kv_eta.find_span(v)
        Nx = eval_basis_ders_1d(self._kv_xi, u, 1, span_xi)
        Ny = eval_basis_ders_1d(self._kv_eta, v, 1, span_eta)

        ii = np.arange(span_xi - p_xi, span_xi + 1)
        jj = np.arange(span_eta - p_eta, span_eta + 1)
        indices = (jj[:, None] * self._n_xi + ii[None, :]).ravel()

        w = self._weights[indices]
        N = np.outer(Ny[0], Nx[0]).ravel() * w
        dN_dxi = np.outer(Ny[0], Nx[1]).ravel() * w
        dN_deta = np.outer(Ny[1], Nx[0]).ravel() * w

        W = N.sum()
        R = N / W
        dR_dxi = (dN_dxi - R * dN_dxi.sum()) / W
        dR_deta = (dN_deta - R * dN_deta.sum()) / W
        return indices, R, dR_dxi, dR_deta

    def eval_point(self, xi: Tuple[float, float]) -> np.ndarray:
        """Physical point S(xi, eta)."""
        indices, R, _, _ = self.eval_rational_basis(xi)
        return R @ self._control_points[indices]

    def eval_jacobian(self, xi: Tuple[float, float]) -> Tuple[np.ndarray, np.ndarray]:
        """
        Physical point and Jacobian [dS/dxi, dS/deta].

        Returns:
            (point, jacobian) with jacobian of shape (d, 2)
        """
        indices, R, dR_dxi, dR_deta = self.eval_rational_basis(xi)
        P = self._control_points[indices]
        jacobian = np.column_stack([dR_dxi @ P, dR_deta @ P])
        return R @ P, jacobian
