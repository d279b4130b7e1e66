"""
Gauss-Legendre quadrature on the reference element [0,1]^d.

n points integrate polynomials up to degree 2n-1 exactly. Cells are
integrated with degree+1 points per direction and faces with degree+1
points along the face, which is exact for the mass matrix of affine
B-spline elements.
"""

import numpy as np
from typing import Tuple
from functools import lru_cache


@lru_cache(maxsize=16)
def gauss_legendre_1d(n: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Gauss-Legendre points and weights on [0, 1].

    Returns:
        (points, weights), weights sum to 1
    """
    if n < 1:
        raise ValueError("Need at least 1 quadrature point")
    points_std, weights_std = np.polynomial.legendre.leggauss(n)
    return 0.5 * (points_std + 1.0), 0.5 * weights_std


def gauss_legendre_2d(n_xi: int, n_eta: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Tensor-product rule on [0,1]^2, xi running fastest.

    Returns:
        (points of shape (n_xi * n_eta, 2), weights of shape (n_xi * n_eta,))
    """
    xi_pts, xi_wts = gauss_legendre_1d(n_xi)
    eta_pts, eta_wts = gauss_legendre_1d(n_eta)
    XI, ETA = np.meshgrid(xi_pts, eta_pts)
    points = np.column_stack([XI.ravel(), ETA.ravel()])
    weights = np.outer(eta_wts, xi_wts).ravel()
    return points, weights


class GaussQuadrature:
    """
    Quadrature rule for 1D (faces) or 2D (cells) reference elements.

    Attributes:
        n_points_per_dir: Number of points per parametric direction
    """

    def __init__(self, n_points_per_dir: Tuple[int, ...]):
        self.n_points_per_dir = tuple(n_points_per_dir)
        self.n_dim = len(self.n_points_per_dir)

        if self.n_dim == 1:
            pts, self._weights = gauss_legendre_1d(self.n_points_per_dir[0])
            self._points = pts.reshape(-1, 1)
        elif self.n_dim == 2:
            self._points, self._weights = gauss_legendre_2d(*self.n_points_per_dir)
        else:
            raise ValueError(f"Unsupported dimension: {self.n_dim}")

    @property
    def n_points(self) -> int:
        return len(self._weights)

    @property
    def points(self) -> np.ndarray:
        """Points on [0,1]^d, shape (n_points, n_dim)."""
        return self._points

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    @classmethod
    def for_degree(cls, degree: int, n_dim: int = 2) -> 'GaussQuadrature':
        """Rule with degree+1 points in each of n_dim directions."""
        return cls(tuple([degree + 1] * n_dim))
