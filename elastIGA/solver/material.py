"""
Isotropic linear-elastic material.

Lamé parameters from Young's modulus E and Poisson's ratio nu:

    mu     = E / (2 (1 + nu))
    lambda = nu E / ((1 + nu)(1 - 2 nu))

The elasticity tensor is positive definite only for -1 < nu < 0.5;
nu -> 0.5 is the incompressible limit where lambda blows up.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class MaterialParameters:
    """
    Material constants, immutable for a run.

    Attributes:
        youngs_modulus: E > 0
        poisson_ratio: -1 < nu < 0.5
        mu: Shear modulus (derived)
        lam: First Lamé parameter (derived)
    """
    youngs_modulus: float = 1.4e6
    poisson_ratio: float = 0.4
    mu: float = field(init=False)
    lam: float = field(init=False)

    def __post_init__(self):
        E = self.youngs_modulus
        nu = self.poisson_ratio
        if not E > 0.0:
            raise ValueError(f"Young's modulus must be positive, got {E}")
        if not -1.0 < nu < 0.5:
            raise ValueError(f"Poisson ratio must lie in (-1, 0.5), got {nu}")

        object.__setattr__(self, "mu", E / (2.0 * (1.0 + nu)))
        object.__setattr__(self, "lam", nu * E / ((1.0 + nu) * (1.0 - 2.0 * nu)))
