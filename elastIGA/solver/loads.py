"""
Time-dependent loads.

The boundary traction is switched on smoothly: zero before `offset`,
a half cosine wave over `duration`, then the full magnitude,

    g(t) = 0                                        t < t0
    g(t) = g_max * (1 - cos(pi (t - t0) / T)) / 2     t0 <= t < t0 + T
    g(t) = g_max                                    t >= t0 + T

so both g and dg/dt are continuous. The traction acts along one axis
only (the vertical one); every other component is zero.
"""

import numpy as np
from dataclasses import dataclass


@dataclass(frozen=True)
class RampedTraction:
    """
    Ramped traction acting on a single component.

    Attributes:
        magnitude: Fully ramped traction value
        offset: Time at which the ramp starts
        duration: Length of the ramp (> 0)
        component: Loaded component
        n_components: Number of field components
    """
    magnitude: float
    offset: float = 0.01
    duration: float = 0.01
    component: int = 1
    n_components: int = 2

    def __post_init__(self):
        if not self.duration > 0.0:
            raise ValueError(f"Ramp duration must be positive, got {self.duration}")
        if not 0 <= self.component < self.n_components:
            raise ValueError(f"Loaded component {self.component} out of range "
                             f"[0, {self.n_components})")

    def ramp_factor(self, time: float) -> float:
        """Ramp in [0, 1] at the given time."""
        if time < self.offset:
            return 0.0
        if time >= self.offset + self.duration:
            return 1.0
        return 0.5 * (1.0 - np.cos(np.pi * (time - self.offset) / self.duration))

    def value(self, time: float, component: int) -> float:
        """Traction component at the given time."""
        if not 0 <= component < self.n_components:
            raise ValueError(f"Component {component} out of range [0, {self.n_components})")
        if component != self.component:
            return 0.0
        return self.magnitude * self.ramp_factor(time)

    def vector(self, time: float) -> np.ndarray:
        t = np.zeros(self.n_components)
        t[self.component] = self.magnitude * self.ramp_factor(time)
        return t
