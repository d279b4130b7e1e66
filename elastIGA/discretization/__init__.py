"""
Discretization module for IGA.

Provides:
- KnotVector: Knot vector representation and uniform refinement
- Element: IGA element with extraction operator and face markers
- Bézier extraction operators
- CellValues/FaceValues: shape values and JxW at quadrature points
- AffineConstraints: condensation of constrained DOFs
"""

from .knot_vector import KnotVector, make_open_knot_vector, make_uniform_knot_vector
from .element import Element
from .extraction import (
    compute_extraction_operators_1d,
    compute_extraction_operators_2d,
    BernsteinBasis
)
from .constraints import AffineConstraints

# Import mesh components separately to avoid circular imports
# Users should import these directly: from elastIGA.discretization.mesh import ...
