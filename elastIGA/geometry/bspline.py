"""
B-spline basis function evaluation.

The i-th basis function of degree p follows the Cox-de Boor recursion

    N_{i,0}(xi) = 1 if xi_i <= xi < xi_{i+1}, else 0
    N_{i,p}(xi) = (xi - xi_i)/(xi_{i+p} - xi_i) N_{i,p-1}(xi)
                + (xi_{i+p+1} - xi)/(xi_{i+p+1} - xi_{i+1}) N_{i+1,p-1}(xi)

Only the p+1 functions that are non-zero on the span are computed.
Tensor-product bases are built from outer products of the 1D results.
"""

import numpy as np
from typing import Optional
from ..discretization.knot_vector import KnotVector


def eval_basis_1d(kv: KnotVector, xi: float,
                  span: Optional[int] = None) -> np.ndarray:
    """
    Non-zero basis functions N_{span-p}, ..., N_{span} at xi.

    Parameters:
        kv: Knot vector
        xi: Parameter value
        span: Optional pre-computed span index

    Returns:
        Array of shape (p+1,)
    """
    return eval_basis_ders_1d(kv, xi, 0, span)[0]


def eval_basis_ders_1d(kv: KnotVector, xi: float, n_ders: int,
                       span: Optional[int] = None) -> np.ndarray:
    """
    Basis functions and derivatives (Piegl & Tiller, Algorithm A2.3).

    Parameters:
        kv: Knot vector
        xi: Parameter value
        n_ders: Highest derivative order (0 = values only)
        span: Optional pre-computed span index

    Returns:
        Array of shape (n_ders+1, p+1); derivatives above p are zero
    """
    p = kv.degree
    knots = kv.knots
    if span is None:
        span = kv.find_span(xi)

    ders = np.zeros((n_ders + 1, p + 1))
    n_ders = min(n_ders, p)

    # ndu: basis functions in the lower triangle, knot differences above
    ndu = np.zeros((p + 1, p + 1))
    ndu[0, 0] = 1.0
    left = np.zeros(p + 1)
    right = np.zeros(p + 1)

    for j in range(1, p + 1):
        left[j] = xi - knots[span + 1 - j]
        right[j] = knots[span + j] - xi
        saved = 0.0
        for r in range(j):
            ndu[j, r] = right[r + 1] + left[j - r]
            temp = ndu[r, j - 1] / ndu[j, r]
            ndu[r, j] = saved + right[r + 1] * temp
            saved = left[j - r] * temp
        ndu[j, j] = saved

    ders[0, :] = ndu[:, p]

    a = np.zeros((2, p + 1))
    for r in range(p + 1):
        s1, s2 = 0, 1
        a[0, 0] = 1.0
        for k in range(1, n_ders + 1):
            d = 0.0
            rk = r - k
            pk = p - k
            if r >= k:
                a[s2, 0] = a[s1, 0] / ndu[pk + 1, rk]
                d = a[s2, 0] * ndu[rk, pk]
            j1 = 1 if rk >= -1 else -rk
            j2 = k - 1 if r - 1 <= pk else p - r
            for j in range(j1, j2 + 1):
                a[s2, j] = (a[s1, j] - a[s1, j - 1]) / ndu[pk + 1, rk + j]
                d += a[s2, j] * ndu[rk + j, pk]
            if r <= pk:
                a[s2, k] = -a[s1, k - 1] / ndu[pk + 1, r]
                d += a[s2, k] * ndu[r, pk]
            ders[k, r] = d
            s1, s2 = s2, s1

    factor = p
    for k in range(1, n_ders + 1):
        ders[k, :] *= factor
        factor *= (p - k)

    return ders
