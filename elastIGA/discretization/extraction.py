"""
Bézier extraction operators.

On every element the p+1 non-zero B-spline functions are a linear
combination of the degree-p Bernstein polynomials on [0,1]:

    N_local(xi) = C_e @ B(t),    t = (xi - xi_start) / h

so element routines only ever evaluate Bernstein polynomials and apply
C_e. In two dimensions the operator is the Kronecker product
C_e = C_eta ⊗ C_xi, matching the x-fastest ordering of local functions.

Reference:
- Borden et al., "Isogeometric finite element data structures
  based on Bézier extraction of NURBS"
"""

import numpy as np
from typing import List, Tuple
from .knot_vector import KnotVector


def compute_extraction_operators_1d(kv: KnotVector) -> List[np.ndarray]:
    """
    Extraction operators of all elements of a knot vector.

    The operator is found by evaluating both bases at p+1 Chebyshev points
    of the element and solving N = B @ C_e.T.

    Returns:
        List of (p+1, p+1) arrays, one per element
    """
    from ..geometry.bspline import eval_basis_1d

    p = kv.degree
    t_ref = 0.5 * (1.0 - np.cos(np.pi * np.arange(p + 1) / max(p, 1)))
    B_matrix = np.array([bernstein_basis(p, t) for t in t_ref])

    operators = []
    for e, (xi_start, xi_end) in enumerate(kv.elements):
        span = kv.element_to_span(e)
        xi_pts = xi_start + (xi_end - xi_start) * t_ref
        N_matrix = np.array([eval_basis_1d(kv, xi, span) for xi in xi_pts])
        C_e = np.linalg.solve(B_matrix, N_matrix).T
        # Exact zeros keep face restrictions clean
        C_e[np.abs(C_e) < 1e-14] = 0.0
        operators.append(C_e)

    return operators


def compute_extraction_operators_2d(kv_xi: KnotVector,
                                    kv_eta: KnotVector) -> List[np.ndarray]:
    """Tensor-product operators C_eta ⊗ C_xi, elements numbered x-fastest."""
    C_xi_list = compute_extraction_operators_1d(kv_xi)
    C_eta_list = compute_extraction_operators_1d(kv_eta)
    return [np.kron(C_eta, C_xi) for C_eta in C_eta_list for C_xi in C_xi_list]


def bernstein_basis(p: int, t: float) -> np.ndarray:
    """
    All Bernstein polynomials B_{i,p}(t) = C(p,i) t^i (1-t)^(p-i).

    Evaluated with the de Casteljau recurrence.
    """
    B = np.zeros(p + 1)
    B[0] = 1.0
    for j in range(1, p + 1):
        saved = 0.0
        for k in range(j):
            temp = B[k]
            B[k] = saved + (1.0 - t) * temp
            saved = t * temp
        B[j] = saved
    return B


def bernstein_basis_ders(p: int, t: float) -> np.ndarray:
    """
    Bernstein values and first derivatives.

    Uses d/dt B_{i,p} = p (B_{i-1,p-1} - B_{i,p-1}).

    Returns:
        Array of shape (2, p+1): row 0 values, row 1 derivatives
    """
    result = np.zeros((2, p + 1))
    result[0] = bernstein_basis(p, t)
    if p >= 1:
        lower = bernstein_basis(p - 1, t)
        result[1, 1:] += p * lower
        result[1, :-1] -= p * lower
    return result


class BernsteinBasis:
    """
    Tensor-product Bernstein basis on the reference element [0,1]^d.

    Local functions are ordered with the first direction running fastest,
    B_{i + j*(p_xi+1)}(t, s) = B_i(t) B_j(s).
    """

    def __init__(self, degrees: Tuple[int, ...]):
        self.degrees = tuple(degrees)
        self.n_dim = len(self.degrees)

    @property
    def n_basis(self) -> int:
        n = 1
        for p in self.degrees:
            n *= (p + 1)
        return n

    def eval_ders(self, t: Tuple[float, ...]) -> Tuple[np.ndarray, ...]:
        """
        Values and reference derivatives at a point.

        Returns:
            (B, dB_dt0, dB_dt1, ...) flat arrays of length n_basis
        """
        ders_1d = [bernstein_basis_ders(self.degrees[d], t[d])
                   for d in range(self.n_dim)]

        def product(rows):
            out = rows[-1]
            for d in range(self.n_dim - 2, -1, -1):
                out = np.outer(out, rows[d]).ravel()
            return out

        values = product([ders_1d[d][0] for d in range(self.n_dim)])
        result = [values]
        for k in range(self.n_dim):
            result.append(product([ders_1d[d][1 if d == k else 0]
                                   for d in range(self.n_dim)]))
        return tuple(result)
