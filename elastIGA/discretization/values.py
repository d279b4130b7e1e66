"""
Shape function values on cells and faces.

For a quadrature point t on the reference element:

1. Evaluate the Bernstein basis B(t) and its reference derivatives
2. Apply extraction, N = C_e @ B, and scale derivatives by 1/h to the
   parametric element
3. Rationalize with the NURBS weights (quotient rule) to get R, dR/dxi
4. Map parametric derivatives to physical ones with the inverse Jacobian

    [dR/dx]   [dxi/dx  deta/dx] [dR/dxi ]
    [dR/dy] = [dxi/dy  deta/dy] [dR/deta]

The integration weight is JxW = w_q * |J_ref->param| * |J_param->phys|
on cells and w_q * h_t * |dS/dxi_t| on faces, xi_t being the tangential
parametric direction of the face.
"""

import numpy as np
from typing import Tuple

from .element import Element, FACE_XI_MIN, FACE_XI_MAX
from .extraction import BernsteinBasis
from ..quadrature.gauss import GaussQuadrature


def eval_element_basis(element: Element,
                       t_ref: Tuple[float, float]) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    """
    Rational basis on an element at a reference point.

    Returns:
        (R, dR_dparam, point, jacobian) with dR_dparam of shape (n_local, 2),
        point of shape (d,) and jacobian [dx/dxi, dx/deta] of shape (d, 2)
    """
    bernstein = BernsteinBasis(element.degrees)
    B, dB_dt, dB_ds = bernstein.eval_ders(t_ref)
    h_xi, h_eta = element.sizes
    C_e = element.extraction_operator

    w = element.weights
    N = (C_e @ B) * w
    dN = np.column_stack([(C_e @ dB_dt) / h_xi, (C_e @ dB_ds) / h_eta]) * w[:, None]

    W = N.sum()
    R = N / W
    dR = (dN - np.outer(R, dN.sum(axis=0))) / W

    P = element.control_points
    return R, dR, R @ P, P.T @ dR


class CellValues:
    """
    Values, physical gradients and JxW at the quadrature points of a cell.

    Usage:
        cell_values = CellValues(GaussQuadrature.for_degree(p))
        for element in mesh.get_active_elements():
            cell_values.reinit(element)
            ... cell_values.values, cell_values.gradients, cell_values.JxW
    """

    def __init__(self, quadrature: GaussQuadrature):
        if quadrature.n_dim != 2:
            raise ValueError("Cell quadrature must be two-dimensional")
        self.quadrature = quadrature
        self.values = None      # (n_q, n_local)
        self.gradients = None   # (n_q, n_local, 2)
        self.JxW = None         # (n_q,)
        self.points = None      # (n_q, d)

    @property
    def n_quadrature_points(self) -> int:
        return self.quadrature.n_points

    def reinit(self, element: Element) -> 'CellValues':
        n_q = self.quadrature.n_points
        n_local = element.n_local_basis
        self.values = np.zeros((n_q, n_local))
        self.gradients = np.zeros((n_q, n_local, 2))
        self.JxW = np.zeros(n_q)
        self.points = np.zeros((n_q, element.control_points.shape[1]))

        h_xi, h_eta = element.sizes
        for q in range(n_q):
            R, dR, point, jac = eval_element_basis(element, tuple(self.quadrature.points[q]))
            J = jac[:2, :2]
            det_J = J[0, 0] * J[1, 1] - J[0, 1] * J[1, 0]
            if det_J <= 0.0:
                raise ValueError(f"Non-positive Jacobian {det_J} in element {element.id}")

            self.values[q] = R
            # dR/dx = dR/dparam @ inv(J)
            self.gradients[q] = np.linalg.solve(J.T, dR.T).T
            self.JxW[q] = self.quadrature.weights[q] * h_xi * h_eta * det_J
            self.points[q] = point

        return self


class FaceValues:
    """
    Values and JxW at the quadrature points of one element face.

    Only the functions in `face_dofs` (local indices) have non-zero
    traces on the face; their values are stored in face order.
    """

    def __init__(self, quadrature: GaussQuadrature):
        if quadrature.n_dim != 1:
            raise ValueError("Face quadrature must be one-dimensional")
        self.quadrature = quadrature
        self.face_dofs = None   # (n_face_local,)
        self.values = None      # (n_q, n_face_local)
        self.JxW = None         # (n_q,)
        self.points = None      # (n_q, d)

    @property
    def n_quadrature_points(self) -> int:
        return self.quadrature.n_points

    def reinit(self, element: Element, face: int) -> 'FaceValues':
        n_q = self.quadrature.n_points
        t_face = self.quadrature.points[:, 0]
        ref_points = element.face_reference_points(face, t_face)
        tangent = 1 if face in (FACE_XI_MIN, FACE_XI_MAX) else 0
        h_t = element.sizes[tangent]

        self.face_dofs = element.face_local_indices(face)
        self.values = np.zeros((n_q, len(self.face_dofs)))
        self.JxW = np.zeros(n_q)
        self.points = np.zeros((n_q, element.control_points.shape[1]))

        for q in range(n_q):
            R, _, point, jac = eval_element_basis(element, tuple(ref_points[q]))
            self.values[q] = R[self.face_dofs]
            self.JxW[q] = self.quadrature.weights[q] * h_t * np.linalg.norm(jac[:, tangent])
            self.points[q] = point

        return self
