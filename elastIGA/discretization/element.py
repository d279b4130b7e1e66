"""
Element abstraction.

An element is a non-empty knot span rectangle. It carries everything the
assembly loop needs and nothing about the global spline space:

- parametric bounds ((xi_min, xi_max), (eta_min, eta_max))
- ids of the control points whose functions are non-zero on it, in
  x-fastest order matching the rows of the extraction operator
- the Bézier extraction operator C_e
- boundary ids of the faces that lie on the domain boundary

Faces are numbered like the reference quadrilateral:
0 = xi_min, 1 = xi_max, 2 = eta_min, 3 = eta_max.
"""

import numpy as np
from typing import Dict, List, Optional, Tuple
from dataclasses import dataclass, field


FACE_XI_MIN = 0
FACE_XI_MAX = 1
FACE_ETA_MIN = 2
FACE_ETA_MAX = 3


@dataclass
class Element:
    """
    Analysis element with geometry cache.

    Attributes:
        id: Element identifier (x-fastest over the tensor grid)
        parametric_bounds: ((xi_min, xi_max), (eta_min, eta_max))
        control_point_ids: Control point ids of the local functions
        extraction_operator: C_e mapping Bernstein to spline basis
        degrees: (p_xi, p_eta)
        face_boundary_ids: Local face number -> boundary id, boundary faces only
    """
    id: int
    parametric_bounds: Tuple[Tuple[float, float], Tuple[float, float]]
    control_point_ids: List[int]
    extraction_operator: np.ndarray
    degrees: Tuple[int, int]
    face_boundary_ids: Dict[int, int] = field(default_factory=dict)

    _local_coordinates: Optional[np.ndarray] = field(default=None, repr=False)
    _local_weights: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def n_local_basis(self) -> int:
        return self.extraction_operator.shape[0]

    @property
    def control_points(self) -> Optional[np.ndarray]:
        """Local control point coordinates, shape (n_local, d)."""
        return self._local_coordinates

    @property
    def weights(self) -> Optional[np.ndarray]:
        """Local NURBS weights, shape (n_local,)."""
        return self._local_weights

    @property
    def sizes(self) -> Tuple[float, float]:
        """Parametric edge lengths (h_xi, h_eta)."""
        return tuple(b - a for a, b in self.parametric_bounds)

    def set_geometry_cache(self, coordinates: np.ndarray, weights: np.ndarray) -> None:
        self._local_coordinates = coordinates
        self._local_weights = weights

    def at_boundary(self) -> bool:
        return bool(self.face_boundary_ids)

    def boundary_id(self, face: int) -> Optional[int]:
        """Boundary id of a local face, None for interior faces."""
        return self.face_boundary_ids.get(face)

    def face_local_indices(self, face: int) -> np.ndarray:
        """
        Local function indices whose traces on a face do not vanish.

        With open knot vectors only the first (last) row of functions in
        the normal direction reaches the domain boundary.
        """
        p_xi, p_eta = self.degrees
        local = np.arange(self.n_local_basis).reshape(p_eta + 1, p_xi + 1)
        if face == FACE_XI_MIN:
            return local[:, 0].copy()
        if face == FACE_XI_MAX:
            return local[:, -1].copy()
        if face == FACE_ETA_MIN:
            return local[0, :].copy()
        if face == FACE_ETA_MAX:
            return local[-1, :].copy()
        raise ValueError(f"Unknown face number {face}")

    def face_reference_points(self, face: int, t: np.ndarray) -> np.ndarray:
        """Map 1D face coordinates t in [0,1] to reference points on the face."""
        t = np.asarray(t, dtype=np.float64)
        fixed = np.full_like(t, 0.0 if face in (FACE_XI_MIN, FACE_ETA_MIN) else 1.0)
        if face in (FACE_XI_MIN, FACE_XI_MAX):
            return np.column_stack([fixed, t])
        if face in (FACE_ETA_MIN, FACE_ETA_MAX):
            return np.column_stack([t, fixed])
        raise ValueError(f"Unknown face number {face}")

    def __hash__(self) -> int:
        return hash(self.id)

    def __eq__(self, other) -> bool:
        if isinstance(other, Element):
            return self.id == other.id
        return False
