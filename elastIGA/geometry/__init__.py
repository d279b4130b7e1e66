"""
Geometry module: B-spline basis, NURBS surfaces and domain factories.
"""

from .nurbs import NURBSSurface
from .primitives import make_nurbs_rectangle, make_nurbs_unit_square
