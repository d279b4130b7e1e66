"""
Knot vectors for the tensor-product spline spaces used by the solver.

A knot vector is a non-decreasing sequence of parameter values. Together
with a degree p it fixes the univariate B-spline space:

- n_basis = len(knots) - p - 1 basis functions
- elements are the knot spans [xi_i, xi_{i+1}] of non-zero length
- open (clamped) vectors repeat the end knots p+1 times, so the first and
  last basis functions interpolate the boundary control points

Global mesh refinement is expressed here as uniform bisection of every
non-empty knot span.
"""

import numpy as np
from typing import List, Tuple
from dataclasses import dataclass


@dataclass
class KnotVector:
    """
    Univariate knot vector.

    Attributes:
        knots: The knot values (non-decreasing)
        degree: Polynomial degree p
    """
    knots: np.ndarray
    degree: int

    def __post_init__(self):
        self.knots = np.asarray(self.knots, dtype=np.float64)
        if self.degree < 0:
            raise ValueError(f"Degree must be non-negative, got {self.degree}")
        if len(self.knots) < 2 * (self.degree + 1):
            raise ValueError(
                f"Knot vector too short for degree {self.degree}: "
                f"need at least {2 * (self.degree + 1)} knots, got {len(self.knots)}"
            )
        if np.any(np.diff(self.knots) < 0):
            raise ValueError("Knot vector must be non-decreasing.")

        self._unique_knots = np.unique(self.knots)
        self._elements: List[Tuple[float, float]] = []
        self._spans: List[int] = []
        for xi_start, xi_end in zip(self._unique_knots[:-1], self._unique_knots[1:]):
            self._elements.append((float(xi_start), float(xi_end)))
            # last knot index equal to xi_start
            span = int(np.searchsorted(self.knots, xi_start, side='right')) - 1
            self._spans.append(max(self.degree, min(span, self.n_basis - 1)))

    @property
    def n_basis(self) -> int:
        """Number of basis functions."""
        return len(self.knots) - self.degree - 1

    @property
    def n_elements(self) -> int:
        """Number of non-empty knot spans."""
        return len(self._elements)

    @property
    def elements(self) -> List[Tuple[float, float]]:
        """Element intervals as (xi_start, xi_end)."""
        return list(self._elements)

    @property
    def unique_knots(self) -> np.ndarray:
        return self._unique_knots.copy()

    @property
    def domain(self) -> Tuple[float, float]:
        """Parametric domain (first knot, last knot)."""
        return (float(self._unique_knots[0]), float(self._unique_knots[-1]))

    def find_span(self, xi: float) -> int:
        """
        Knot span index i with xi in [xi_i, xi_{i+1}).

        The last span is closed so that xi at the right end of the domain
        belongs to the last element.
        """
        n = self.n_basis
        p = self.degree
        if xi >= self.knots[n]:
            return n - 1
        if xi <= self.knots[p]:
            return p

        low, high = p, n
        mid = (low + high) // 2
        while xi < self.knots[mid] or xi >= self.knots[mid + 1]:
            if xi < self.knots[mid]:
                high = mid
            else:
                low = mid
            mid = (low + high) // 2
        return mid

    def find_element(self, xi: float) -> int:
        """Index of the element containing xi (last element closed)."""
        lo, hi = self.domain
        if xi < lo or xi > hi:
            raise ValueError(f"Parameter {xi} outside domain {self.domain}")
        idx = int(np.searchsorted(self._unique_knots, xi, side='right')) - 1
        return min(idx, self.n_elements - 1)

    def element_to_span(self, element_idx: int) -> int:
        """Knot span index of an element."""
        return self._spans[element_idx]

    def active_basis_indices(self, element_idx: int) -> np.ndarray:
        """The p+1 basis function indices that are non-zero on an element."""
        span = self.element_to_span(element_idx)
        return np.arange(span - self.degree, span + 1)

    def greville_abscissae(self) -> np.ndarray:
        """
        Greville abscissae, the averages of p consecutive interior knots.

        Placing control points at these parameters reproduces the identity
        map, which is what makes a B-spline rectangle affine.
        """
        p = self.degree
        if p == 0:
            return 0.5 * (self.knots[:-1] + self.knots[1:])
        return np.array([np.mean(self.knots[i + 1:i + p + 1])
                         for i in range(self.n_basis)])


def make_open_knot_vector(n_basis: int, degree: int,
                          domain: Tuple[float, float] = (0.0, 1.0)) -> KnotVector:
    """
    Open uniform knot vector with n_basis functions of the given degree.

    Parameters:
        n_basis: Number of basis functions
        degree: Polynomial degree p
        domain: Parametric interval (start, end)
    """
    n_internal = n_basis - degree - 1
    if n_internal < 0:
        raise ValueError(
            f"Cannot create knot vector: n_basis={n_basis} too small for degree={degree}"
        )
    a, b = domain
    internal = np.linspace(a, b, n_internal + 2)[1:-1]
    knots = np.concatenate([[a] * (degree + 1), internal, [b] * (degree + 1)])
    return KnotVector(knots, degree)


def make_uniform_knot_vector(n_elements: int, degree: int,
                             domain: Tuple[float, float] = (0.0, 1.0)) -> KnotVector:
    """Open uniform knot vector with n_elements spans (maximal smoothness)."""
    if n_elements < 1:
        raise ValueError(f"Need at least one element, got {n_elements}")
    return make_open_knot_vector(n_elements + degree, degree, domain)


def refine_knot_vector_uniform(kv: KnotVector, times: int = 1) -> KnotVector:
    """
    Bisect every non-empty knot span `times` times.

    Each pass inserts the midpoint of every element once, doubling the
    element count while keeping the existing continuity at old knots.
    """
    if times < 0:
        raise ValueError(f"Number of refinements must be non-negative, got {times}")
    knots = kv.knots
    for _ in range(times):
        refined = KnotVector(knots, kv.degree)
        midpoints = [0.5 * (a + b) for a, b in refined.elements]
        knots = np.sort(np.concatenate([knots, midpoints]))
    return KnotVector(knots, kv.degree)
