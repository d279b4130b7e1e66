"""
VTK export for visualization.

Fields are sampled on a regular parametric grid (VTK has no native
NURBS cells) and written as a legacy ASCII StructuredGrid that
ParaView and VisIt read directly. Vector fields with two components
are padded with a zero z-component.
"""

import logging
import numpy as np
from typing import Dict
from pathlib import Path

from .sampling import sample_vector_field_2d
from ..geometry.nurbs import NURBSSurface

logger = logging.getLogger(__name__)


def export_vtk_vector_field_2d(filename: str,
                               surface: NURBSSurface,
                               fields: Dict[str, np.ndarray],
                               n_xi: int = 50,
                               n_eta: int = 10,
                               n_components: int = 2,
                               title: str = "elastodynamics solution") -> Path:
    """
    Export interleaved vector fields to VTK StructuredGrid format.

    Parameters:
        filename: Output filename (will add .vtk extension if missing)
        surface: NURBS surface
        fields: {name: interleaved coefficient vector}
        n_xi, n_eta: Number of sample points
        n_components: Components per control point
        title: Header line of the file

    Returns:
        Path of the written file
    """
    path = Path(filename)
    if path.suffix != '.vtk':
        path = path.with_suffix('.vtk')
    if not fields:
        raise ValueError("Nothing to export: no fields given")

    sampled = {}
    points = None
    for name, coeffs in fields.items():
        points, values = sample_vector_field_2d(surface, coeffs, n_components, n_xi, n_eta)
        sampled[name] = values

    n_points = n_xi * n_eta
    coords = np.zeros((n_points, 3))
    coords[:, :points.shape[2]] = points.reshape(n_points, -1)

    with open(path, 'w') as f:
        f.write("# vtk DataFile Version 3.0\n")
        f.write(f"{title}\n")
        f.write("ASCII\n")
        f.write("DATASET STRUCTURED_GRID\n")
        f.write(f"DIMENSIONS {n_xi} {n_eta} 1\n")

        f.write(f"POINTS {n_points} double\n")
        for pt in coords:
            f.write(f"{pt[0]} {pt[1]} {pt[2]}\n")

        f.write(f"\nPOINT_DATA {n_points}\n")
        for name, values in sampled.items():
            vectors = np.zeros((n_points, 3))
            k = min(n_components, 3)
            vectors[:, :k] = values.reshape(n_points, n_components)[:, :k]
            f.write(f"VECTORS {name} double\n")
            for v in vectors:
                f.write(f"{v[0]} {v[1]} {v[2]}\n")
            f.write("\n")

    logger.info("Exported VTK file: %s", path)
    return path
