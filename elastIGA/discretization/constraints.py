"""
Affine constraints between degrees of freedom.

A constraint line expresses one DOF through others,

    u_i = sum_j c_ij u_j + b_i,

e.g. hanging-node or periodicity conditions. Assembled operators are
condensed so the constrained DOFs drop out of the system, and after a
solve `distribute` restores their values from the constraint lines.

Tensor-product spline meshes have no hanging nodes, so the solver's
constraint set is normally empty and condensation leaves the operators
unchanged.
"""

import numpy as np
from scipy import sparse
from typing import Dict, List, Optional, Tuple


class AffineConstraints:
    """
    Collection of constraint lines over n_dofs DOFs.

    Lines are added with add_line/add_entry/set_inhomogeneity and frozen
    with close(); condense and distribute require a closed object.
    """

    def __init__(self, n_dofs: int):
        self.n_dofs = n_dofs
        self._lines: Dict[int, List[Tuple[int, float]]] = {}
        self._inhomogeneities: Dict[int, float] = {}
        self._closed = False
        self._T = None
        self._g = None

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def is_constrained(self, dof: int) -> bool:
        return dof in self._lines

    def add_line(self, dof: int) -> None:
        self._check_open()
        self._check_dof(dof)
        self._lines.setdefault(dof, [])

    def add_entry(self, dof: int, column: int, weight: float) -> None:
        self._check_open()
        self._check_dof(column)
        if dof not in self._lines:
            raise ValueError(f"DOF {dof} has no constraint line")
        if column == dof:
            raise ValueError(f"DOF {dof} cannot be constrained to itself")
        self._lines[dof].append((column, float(weight)))

    def set_inhomogeneity(self, dof: int, value: float) -> None:
        self._check_open()
        if dof not in self._lines:
            raise ValueError(f"DOF {dof} has no constraint line")
        self._inhomogeneities[dof] = float(value)

    def close(self) -> None:
        """
        Resolve chains of constraints and build the transformation
        u = T @ u_free + g.
        """
        if self._closed:
            return

        resolved: Dict[int, Dict[int, float]] = {}
        offsets: Dict[int, float] = {}

        def resolve(dof, depth=0):
            if dof in resolved:
                return resolved[dof], offsets[dof]
            if depth > len(self._lines):
                raise ValueError(f"Cyclic constraint involving DOF {dof}")
            entries: Dict[int, float] = {}
            offset = self._inhomogeneities.get(dof, 0.0)
            for column, weight in self._lines[dof]:
                if column in self._lines:
                    sub_entries, sub_offset = resolve(column, depth + 1)
                    for c, w in sub_entries.items():
                        entries[c] = entries.get(c, 0.0) + weight * w
                    offset += weight * sub_offset
                else:
                    entries[column] = entries.get(column, 0.0) + weight
            resolved[dof] = entries
            offsets[dof] = offset
            return entries, offset

        for dof in self._lines:
            resolve(dof)

        rows, cols, vals = [], [], []
        for i in range(self.n_dofs):
            if i in resolved:
                for c, w in resolved[i].items():
                    rows.append(i)
                    cols.append(c)
                    vals.append(w)
            else:
                rows.append(i)
                cols.append(i)
                vals.append(1.0)
        self._T = sparse.csr_matrix((vals, (rows, cols)), shape=(self.n_dofs, self.n_dofs))
        self._g = np.zeros(self.n_dofs)
        for dof, value in offsets.items():
            self._g[dof] = value
        self._closed = True

    def condense(self, matrix: sparse.spmatrix,
                 vector: Optional[np.ndarray] = None):
        """
        Eliminate constrained DOFs from a matrix (and right-hand side).

        Computes T^T A T (and T^T (b - A g)); constrained rows and columns
        are then empty and receive a non-zero diagonal so the condensed
        system stays regular.

        Returns:
            Condensed matrix, or (matrix, vector) if a vector was given
        """
        self._check_closed()
        A = sparse.csr_matrix(matrix)
        if not self._lines:
            condensed = A.copy()
            if vector is None:
                return condensed
            return condensed, np.array(vector, dtype=np.float64)

        constrained = np.array(sorted(self._lines), dtype=int)
        condensed = (self._T.T @ A @ self._T).tolil()
        diag = A.diagonal()
        free = np.setdiff1d(np.arange(self.n_dofs), constrained)
        scale = np.mean(np.abs(diag[free])) if free.size and np.any(diag[free]) else 1.0
        for dof in constrained:
            condensed[dof, dof] = scale
        condensed = condensed.tocsr()

        if vector is None:
            return condensed
        b = self._T.T @ (np.asarray(vector, dtype=np.float64) - A @ self._g)
        b[constrained] = 0.0
        return condensed, b

    def distribute(self, vector: np.ndarray) -> np.ndarray:
        """Overwrite constrained entries with u_i = sum_j c_ij u_j + b_i."""
        self._check_closed()
        if not self._lines:
            return vector
        vector[:] = self._T @ vector + self._g
        return vector

    def _check_dof(self, dof: int) -> None:
        if not 0 <= dof < self.n_dofs:
            raise ValueError(f"DOF {dof} out of range [0, {self.n_dofs})")

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Constraints are closed; no further lines can be added")

    def _check_closed(self) -> None:
        if not self._closed:
            raise RuntimeError("Constraints must be closed before use")
