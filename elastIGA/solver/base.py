"""
Assembly and linear-algebra utilities shared by the IGA solvers.

Design principles:
1. Assembly operates element-by-element on Element objects
2. Shape values come from CellValues/FaceValues (extraction and
   geometry mapping happen there, not in the physics kernels)
3. Physics kernels return dense element matrices in the local
   interleaved numbering a * n_components + c
4. Kernels know NOTHING about knot vectors or spline types

The assembly loop is:
    for element in mesh.get_active_elements():
        # 1. cell_values.reinit(element)
        # 2. K_e, f_e = kernel(element, cell_values)
        # 3. Scatter to global triplets using dof_map.element_dofs(element)
    # 4. Build CSR matrix, sum duplicates

Dirichlet conditions are applied by elimination on a copy of the
system (apply_boundary_values), and systems are solved with a sparse
LU factorization unless an iterative method is requested explicitly.
"""

import logging
import numpy as np
from scipy import sparse
from scipy.sparse.linalg import splu, cg
from typing import Callable, Dict, Optional, Tuple
from abc import ABC, abstractmethod

from ..discretization.mesh import Mesh, DoFMap
from ..discretization.element import Element
from ..discretization.values import CellValues
from ..quadrature.gauss import GaussQuadrature

logger = logging.getLogger(__name__)

LINEAR_SOLVERS = ("direct", "cg")


class StepSequenceError(RuntimeError):
    """Per-step API called out of order (init/solve/finalize)."""


class SingularSystemError(RuntimeError):
    """Direct solve failed on a singular or near-singular system."""


class SolverConvergenceError(RuntimeError):
    """Iterative solve did not reach the requested tolerance."""


class IncompatibleElementError(ValueError):
    """Element and face quadrature do not fit the face-DOF mapping."""


ElementKernel = Callable[[Element, CellValues], Tuple[np.ndarray, Optional[np.ndarray]]]


class Assembler(ABC):
    """
    Abstract base class for element-by-element assembly.

    Subclasses implement a specific weak form by overriding
    compute_element_matrices; other bilinear forms on the same mesh
    (e.g. a mass matrix) are assembled with assemble_with().
    """

    def __init__(self, mesh: Mesh, dof_map: DoFMap,
                 quadrature: Optional[GaussQuadrature] = None):
        """
        Parameters:
            mesh: Analysis mesh
            dof_map: Numbering of the (vector) unknowns
            quadrature: Cell quadrature, (p+1) points per direction by default
        """
        self.mesh = mesh
        self.dof_map = dof_map
        self.n_dofs = dof_map.n_dofs

        if quadrature is None:
            first_elem = next(mesh.get_active_elements())
            quadrature = GaussQuadrature(tuple(p + 1 for p in first_elem.degrees))
        self.quadrature = quadrature
        self.cell_values = CellValues(quadrature)

    @abstractmethod
    def compute_element_matrices(self, element: Element,
                                 cell_values: CellValues) -> Tuple[np.ndarray, Optional[np.ndarray]]:
        """
        Element matrix and (optional) element load vector.

        Parameters:
            element: Element being assembled
            cell_values: Shape values already reinitialized on the element

        Returns:
            (K_e, f_e) with K_e of shape (n_local_dofs, n_local_dofs);
            f_e may be None when the form has no cell load
        """

    def assemble(self) -> Tuple[sparse.csr_matrix, np.ndarray]:
        """Assemble the form defined by compute_element_matrices."""
        return self.assemble_with(self.compute_element_matrices)

    def assemble_with(self, kernel: ElementKernel) -> Tuple[sparse.csr_matrix, np.ndarray]:
        """
        Assemble a global matrix and vector from an element kernel.

        Returns:
            (K, f) with K in CSR format
        """
        rows = []
        cols = []
        values = []
        f = np.zeros(self.n_dofs)

        for element in self.mesh.get_active_elements():
            self.cell_values.reinit(element)
            K_e, f_e = kernel(element, self.cell_values)

            global_dofs = self.dof_map.element_dofs(element)
            n_local = len(global_dofs)
            if K_e.shape != (n_local, n_local):
                raise ValueError(f"Element matrix of shape {K_e.shape} does not match "
                                 f"{n_local} local DOFs")

            rows.append(np.repeat(global_dofs, n_local))
            cols.append(np.tile(global_dofs, n_local))
            values.append(K_e.ravel())
            if f_e is not None:
                np.add.at(f, global_dofs, f_e)

        K = sparse.csr_matrix(
            (np.concatenate(values), (np.concatenate(rows), np.concatenate(cols))),
            shape=(self.n_dofs, self.n_dofs)
        )
        K.sum_duplicates()
        return K, f


def apply_boundary_values(matrix: sparse.spmatrix,
                          rhs: np.ndarray,
                          solution: np.ndarray,
                          boundary_values: Dict[int, float]
                          ) -> Tuple[sparse.csr_matrix, np.ndarray, np.ndarray]:
    """
    Apply Dirichlet values by elimination.

    The prescribed columns are moved to the right-hand side, then rows
    and columns of constrained DOFs are zeroed while keeping their
    diagonal entry (1 if it was zero). The modified system stays
    symmetric and its solution takes the prescribed values.

    Inputs are not modified; copies are returned.

    Parameters:
        matrix: System matrix
        rhs: Right-hand side
        solution: Solution vector (initial guess)
        boundary_values: {dof: value}

    Returns:
        (matrix, rhs, solution)
    """
    A = sparse.csr_matrix(matrix, dtype=np.float64, copy=True)
    b = np.array(rhs, dtype=np.float64)
    x = np.array(solution, dtype=np.float64)
    n = A.shape[0]
    if b.shape != (n,) or x.shape != (n,):
        raise ValueError(f"Vectors of length {b.shape}, {x.shape} do not match matrix of size {n}")
    if not boundary_values:
        return A, b, x

    dofs = np.array(sorted(boundary_values), dtype=int)
    values = np.array([boundary_values[d] for d in dofs], dtype=np.float64)
    if dofs[0] < 0 or dofs[-1] >= n:
        raise ValueError(f"Boundary DOF out of range [0, {n})")

    g = np.zeros(n)
    g[dofs] = values
    b -= A.dot(g)

    diag = A.diagonal()[dofs]
    diag[diag == 0.0] = 1.0

    keep = np.ones(n)
    keep[dofs] = 0.0
    D = sparse.diags(keep)
    A = (D @ A @ D).tocsr()
    A = A + sparse.csr_matrix((diag, (dofs, dofs)), shape=(n, n))

    b[dofs] = diag * values
    x[dofs] = values
    return A.tocsr(), b, x


def solve_linear_system(matrix: sparse.spmatrix,
                        rhs: np.ndarray,
                        method: str = "direct",
                        tolerance: float = 1e-12,
                        max_iterations: Optional[int] = None) -> np.ndarray:
    """
    Solve A x = b.

    Parameters:
        matrix: Sparse system matrix
        rhs: Right-hand side
        method: "direct" (sparse LU) or "cg" (conjugate gradients, SPD only)
        tolerance: Relative residual tolerance for "cg"
        max_iterations: Iteration limit for "cg"

    Returns:
        Solution vector

    Raises:
        SingularSystemError: LU factorization failed or produced non-finite values
        SolverConvergenceError: CG did not converge
    """
    if method == "direct":
        try:
            lu = splu(sparse.csc_matrix(matrix))
        except RuntimeError as exc:
            raise SingularSystemError(f"Direct solve failed: {exc}") from exc
        x = lu.solve(np.asarray(rhs, dtype=np.float64))
        if not np.all(np.isfinite(x)):
            raise SingularSystemError("Direct solve produced non-finite values")
        return x

    if method == "cg":
        x, info = cg(sparse.csr_matrix(matrix), rhs, rtol=tolerance, maxiter=max_iterations)
        if info != 0:
            raise SolverConvergenceError(f"CG did not converge (info={info})")
        logger.debug("CG converged, residual %.3e",
                     np.linalg.norm(matrix.dot(x) - rhs))
        return x

    raise ValueError(f"Unknown linear solver: {method}; expected one of {LINEAR_SOLVERS}")
