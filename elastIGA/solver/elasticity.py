"""
Linear elasticity weak form for IGA.

Isotropic linear elasticity in 2D:
    rho u'' - div(sigma) = f    in Ω
                       u = 0    on Γ_D (clamped)
                 sigma·n = t    on Γ_N (traction)

    sigma = lambda tr(eps) I + 2 mu eps,  eps = (grad u + grad u^T) / 2

For vector basis functions phi_i = R_a e_{c_i} the stiffness integrand is

    K_ij = lambda d_{c_i} R_a d_{c_j} R_b
         + mu     d_{c_j} R_a d_{c_i} R_b
         + mu     (grad R_a · grad R_b) delta_{c_i c_j}

Symmetry of K follows from swapping (i, j); the assembler does not
symmetrize explicitly.

Local DOFs are interleaved, i = a * dim + c, matching DoFMap.element_dofs.
"""

import logging
import numpy as np
from scipy import sparse
from typing import Optional, Tuple

from .base import Assembler, IncompatibleElementError
from .loads import RampedTraction
from .material import MaterialParameters
from ..discretization.mesh import Mesh, DoFMap
from ..discretization.element import Element
from ..discretization.constraints import AffineConstraints
from ..discretization.values import CellValues, FaceValues
from ..quadrature.gauss import GaussQuadrature

logger = logging.getLogger(__name__)


class ElasticityAssembler(Assembler):
    """
    Assembler for the elastodynamics operators.

    Provides the stiffness matrix with the traction load (every step),
    and the mass matrix and gravity load (once, at setup).

    Example usage:
        surface = make_nurbs_rectangle((0, 1), (0, 0.2), p=1, n_elem_xi=5, n_elem_eta=1)
        mesh = build_mesh_2d(surface)
        dof_map = mesh.distribute_dofs(2)
        assembler = ElasticityAssembler(mesh, dof_map, MaterialParameters(),
                                        traction=RampedTraction(1e3))
        K, f = assembler.assemble_stiffness(time=0.02)
    """

    def __init__(self, mesh: Mesh, dof_map: DoFMap,
                 material: MaterialParameters,
                 traction: Optional[RampedTraction] = None,
                 traction_boundary_id: int = 3,
                 constraints: Optional[AffineConstraints] = None,
                 quadrature: Optional[GaussQuadrature] = None,
                 face_quadrature: Optional[GaussQuadrature] = None):
        """
        Parameters:
            mesh: Analysis mesh
            dof_map: Vector DOF numbering (n_components = spatial dimension)
            material: Lamé parameters
            traction: Boundary traction, none by default
            traction_boundary_id: Boundary id of the loaded faces
            constraints: Affine constraints condensed after each assembly pass
            quadrature: Cell rule, (p+1) points per direction by default
            face_quadrature: Face rule, (p+1) points by default
        """
        super().__init__(mesh, dof_map, quadrature)
        self.material = material
        self.traction = traction
        self.traction_boundary_id = traction_boundary_id
        self.dim = dof_map.n_components

        if constraints is None:
            constraints = AffineConstraints(dof_map.n_dofs)
            constraints.close()
        self.constraints = constraints

        if face_quadrature is None:
            first_elem = next(mesh.get_active_elements())
            face_quadrature = GaussQuadrature((first_elem.degrees[0] + 1,))
        self.face_values = FaceValues(face_quadrature)

    def compute_element_matrices(self, element: Element,
                                 cell_values: CellValues) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """Element stiffness matrix; elasticity has no cell load here."""
        dim = self.dim
        lam = self.material.lam
        mu = self.material.mu
        n_local = element.n_local_basis
        K_e = np.zeros((n_local * dim, n_local * dim))

        for q in range(cell_values.n_quadrature_points):
            G = cell_values.gradients[q]  # (n_local, dim)
            dV = cell_values.JxW[q]
            grad_grad = G @ G.T

            for ci in range(dim):
                for cj in range(dim):
                    block = (lam * np.outer(G[:, ci], G[:, cj])
                             + mu * np.outer(G[:, cj], G[:, ci]))
                    if ci == cj:
                        block += mu * grad_grad
                    K_e[ci::dim, cj::dim] += block * dV

        return K_e, None

    def mass_element_matrix(self, element: Element,
                            cell_values: CellValues) -> Tuple[np.ndarray, None]:
        """M_e[a*dim+c, b*dim+c] = ∫ R_a R_b (unit density)."""
        R = cell_values.values
        M_scalar = R.T @ (R * cell_values.JxW[:, None])
        return np.kron(M_scalar, np.eye(self.dim)), None

    def assemble_stiffness(self, time: float) -> Tuple[sparse.csr_matrix, np.ndarray]:
        """
        Stiffness matrix and traction load at the given time.

        Constraints are condensed once per call.

        Returns:
            (K, body_force)
        """
        K, _ = self.assemble()
        body_force = self.assemble_traction_load(time)
        K, body_force = self.constraints.condense(K, body_force)
        logger.debug("Assembled stiffness: nnz=%d, |f|=%.6e at t=%.6f",
                     K.nnz, np.linalg.norm(body_force), time)
        return K, body_force

    def assemble_mass_matrix(self) -> sparse.csr_matrix:
        """Condensed vector mass matrix."""
        M, _ = self.assemble_with(self.mass_element_matrix)
        return self.constraints.condense(M)

    def assemble_gravity_load(self, density: float, gravity: float) -> np.ndarray:
        """
        Weight of the body, f[a*dim + vertical] = -rho g ∫ R_a.

        Gravity acts along the last coordinate axis, downwards.
        """
        vertical = self.dim - 1

        def kernel(element, cell_values):
            n_local = element.n_local_basis
            f_e = np.zeros(n_local * self.dim)
            f_e[vertical::self.dim] = -density * gravity * (cell_values.values.T @ cell_values.JxW)
            return np.zeros((n_local * self.dim, n_local * self.dim)), f_e

        _, f = self.assemble_with(kernel)
        return f

    def assemble_traction_load(self, time: float) -> np.ndarray:
        """
        Load from the ramped traction on faces with traction_boundary_id.

        Each face contributes -traction(t, c) * R_a * JxW to DOF (a, c).

        Raises:
            IncompatibleElementError: face DOF count != n_face_q_points * dim
        """
        f = np.zeros(self.n_dofs)
        if self.traction is None:
            return f

        dim = self.dim
        n_face_q = self.face_values.n_quadrature_points
        traction = np.array([self.traction.value(time, c) for c in range(dim)])

        for element in self.mesh.get_active_elements():
            if not element.at_boundary():
                continue
            for face, boundary_id in element.face_boundary_ids.items():
                if boundary_id != self.traction_boundary_id:
                    continue

                self.face_values.reinit(element, face)
                face_dofs = self.face_values.face_dofs
                dofs_per_face = len(face_dofs) * dim
                if dofs_per_face != n_face_q * dim:
                    raise IncompatibleElementError(
                        f"Element {element.id} face {face}: {dofs_per_face} face DOFs "
                        f"but {n_face_q} x {dim} face quadrature values")

                # (n_face_local,) integrals of the face functions
                face_integrals = self.face_values.values.T @ self.face_values.JxW
                f_e = np.zeros(element.n_local_basis * dim)
                for k, a in enumerate(face_dofs):
                    f_e[a * dim:(a + 1) * dim] -= traction * face_integrals[k]

                np.add.at(f, self.dof_map.element_dofs(element), f_e)

        return f
