"""
Analysis-ready mesh and degree-of-freedom numbering.

The Mesh owns the elements of a tensor-product spline surface together
with the boundary bookkeeping the solver needs:

- every boundary face carries a boundary id; for the rectangle the ids
  are "colorized": 0 = xi_min, 1 = xi_max, 2 = eta_min, 3 = eta_max
  (left, right, bottom, top)
- the control points on each boundary are recorded so that Dirichlet
  values can be interpolated

Vector-valued fields get n_components DOFs per control point, numbered
interleaved: dof = cp_id * n_components + component.
"""
from __future__ import annotations

import numpy as np
from typing import Callable, Dict, Iterator, List, Optional, Sequence, TYPE_CHECKING

from .element import (Element, FACE_XI_MIN, FACE_XI_MAX,
                      FACE_ETA_MIN, FACE_ETA_MAX)
from .extraction import compute_extraction_operators_1d

if TYPE_CHECKING:
    from ..geometry.nurbs import NURBSSurface


BOUNDARY_NAMES = {
    "left": FACE_XI_MIN,
    "right": FACE_XI_MAX,
    "bottom": FACE_ETA_MIN,
    "top": FACE_ETA_MAX,
}


class Mesh:
    """
    Analysis mesh over a NURBS surface.

    Attributes:
        surface: The geometry the mesh was built from
        n_dim_physical: Number of physical dimensions
    """

    def __init__(self,
                 surface: NURBSSurface,
                 elements: Dict[int, Element],
                 boundary_control_points: Dict[int, np.ndarray]):
        self.surface = surface
        self._elements = elements
        self._boundary_control_points = boundary_control_points
        self.n_dim_physical = surface.n_dim_physical

    @classmethod
    def build(cls, surface: NURBSSurface, include_geometry: bool = True) -> 'Mesh':
        """Build a mesh from a NURBS surface (see build_mesh_2d)."""
        return build_mesh_2d(surface, include_geometry)

    @property
    def elements(self) -> Dict[int, Element]:
        return self._elements

    @property
    def n_elements(self) -> int:
        return len(self._elements)

    @property
    def n_active_elements(self) -> int:
        """Number of cells taking part in assembly (all of them here)."""
        return len(self._elements)

    @property
    def n_control_points(self) -> int:
        return self.surface.n_control_points

    @property
    def control_points_array(self) -> np.ndarray:
        return self.surface.control_points

    @property
    def boundary_ids(self) -> List[int]:
        return sorted(self._boundary_control_points)

    def get_active_elements(self) -> Iterator[Element]:
        """Iterate over elements in a fixed (id) order."""
        for eid in sorted(self._elements):
            yield self._elements[eid]

    def get_element(self, element_id: int) -> Element:
        return self._elements[element_id]

    def boundary_control_point_ids(self, boundary_id: int) -> np.ndarray:
        """Control points whose functions do not vanish on a boundary."""
        if boundary_id not in self._boundary_control_points:
            raise ValueError(f"Unknown boundary id {boundary_id}; "
                             f"mesh has {self.boundary_ids}")
        return self._boundary_control_points[boundary_id].copy()

    def distribute_dofs(self, n_components: int) -> 'DoFMap':
        """Number the DOFs of an n_components-valued field."""
        return DoFMap(self, n_components)


class DoFMap:
    """
    Interleaved DOF numbering of a vector field on a mesh.

    dof = cp_id * n_components + component
    """

    def __init__(self, mesh: Mesh, n_components: int):
        if n_components < 1:
            raise ValueError(f"Need at least one component, got {n_components}")
        self.mesh = mesh
        self.n_components = n_components

    @property
    def n_dofs(self) -> int:
        return self.mesh.n_control_points * self.n_components

    def dof(self, cp_id: int, component: int) -> int:
        return cp_id * self.n_components + component

    def element_dofs(self, element: Element) -> np.ndarray:
        """Local-to-global map, local index = a * n_components + c."""
        cps = np.asarray(element.control_point_ids, dtype=int)
        return (cps[:, None] * self.n_components
                + np.arange(self.n_components)[None, :]).ravel()

    def component_dofs(self, component: int) -> np.ndarray:
        return np.arange(self.mesh.n_control_points) * self.n_components + component


def build_mesh_2d(surface: NURBSSurface, include_geometry: bool = True) -> Mesh:
    """
    Build the analysis mesh of a tensor-product NURBS surface.

    Elements are numbered x-fastest; each gets its extraction operator,
    local control point ids and, on the boundary, face boundary ids.

    Parameters:
        surface: NURBSSurface geometry
        include_geometry: Whether to cache local control points and weights

    Returns:
        Mesh ready for assembly
    """
    kv_xi, kv_eta = surface.knot_vectors
    p_xi, p_eta = surface.degrees
    n_xi, n_eta = surface.n_control_points_per_dir
    n_elem_xi, n_elem_eta = kv_xi.n_elements, kv_eta.n_elements

    C_xi_list = compute_extraction_operators_1d(kv_xi)
    C_eta_list = compute_extraction_operators_1d(kv_eta)

    elements: Dict[int, Element] = {}
    element_id = 0
    for ej in range(n_elem_eta):
        active_eta = kv_eta.active_basis_indices(ej)
        for ei in range(n_elem_xi):
            active_xi = kv_xi.active_basis_indices(ei)
            control_point_ids = [int(j * n_xi + i) for j in active_eta for i in active_xi]

            faces = {}
            if ei == 0:
                faces[FACE_XI_MIN] = FACE_XI_MIN
            if ei == n_elem_xi - 1:
                faces[FACE_XI_MAX] = FACE_XI_MAX
            if ej == 0:
                faces[FACE_ETA_MIN] = FACE_ETA_MIN
            if ej == n_elem_eta - 1:
                faces[FACE_ETA_MAX] = FACE_ETA_MAX

            elem = Element(
                id=element_id,
                parametric_bounds=(kv_xi.elements[ei], kv_eta.elements[ej]),
                control_point_ids=control_point_ids,
                extraction_operator=np.kron(C_eta_list[ej], C_xi_list[ei]),
                degrees=(p_xi, p_eta),
                face_boundary_ids=faces,
            )
            if include_geometry:
                elem.set_geometry_cache(surface.control_points[control_point_ids],
                                        surface.weights[control_point_ids])
            elements[element_id] = elem
            element_id += 1

    grid = np.arange(n_xi * n_eta).reshape(n_eta, n_xi)
    boundary_control_points = {
        FACE_XI_MIN: grid[:, 0].copy(),
        FACE_XI_MAX: grid[:, -1].copy(),
        FACE_ETA_MIN: grid[0, :].copy(),
        FACE_ETA_MAX: grid[-1, :].copy(),
    }

    return Mesh(surface, elements, boundary_control_points)


def interpolate_boundary_values(dof_map: DoFMap,
                                boundary_id: int,
                                function: Callable[[np.ndarray], Sequence[float]],
                                component_mask: Optional[Sequence[bool]] = None
                                ) -> Dict[int, float]:
    """
    Dirichlet values on a boundary as a {dof: value} map.

    The function is evaluated at the boundary control points. With open
    knot vectors this interpolates the boundary trace exactly for the
    constant (in particular zero) functions used as clamping conditions.

    Parameters:
        dof_map: DOF numbering of the field
        boundary_id: Boundary to constrain
        function: f(x) -> n_components values
        component_mask: Components to constrain, all by default
    """
    n_comp = dof_map.n_components
    if component_mask is None:
        component_mask = [True] * n_comp
    if len(component_mask) != n_comp:
        raise ValueError(f"Component mask needs {n_comp} entries, got {len(component_mask)}")

    mesh = dof_map.mesh
    values: Dict[int, float] = {}
    for cp_id in mesh.boundary_control_point_ids(boundary_id):
        f = np.atleast_1d(np.asarray(function(mesh.control_points_array[cp_id]),
                                     dtype=np.float64))
        if f.shape != (n_comp,):
            raise ValueError(f"Boundary function must return {n_comp} values, got {f.shape}")
        for c in range(n_comp):
            if component_mask[c]:
                values[dof_map.dof(int(cp_id), c)] = float(f[c])
    return values


def zero_function(n_components: int) -> Callable[[np.ndarray], np.ndarray]:
    """Function returning the zero vector, for homogeneous Dirichlet data."""
    def f(x: np.ndarray) -> np.ndarray:
        return np.zeros(n_components)
    return f
