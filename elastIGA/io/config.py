"""
Configuration and problem setup.

A simulation is described by a JSON document with four optional
sections; missing sections and keys take the parameter defaults:

    {
      "material":       {"youngs_modulus": 1.4e6, "poisson_ratio": 0.4},
      "discretization": {"degree": 1, "x_range": [0, 1], "y_range": [0, 0.2],
                         "subdivisions": [5, 1], "global_refinements": 1,
                         "dirichlet_boundary_id": 0, "traction_boundary_id": "top"},
      "time_stepping":  {"time_step": 0.005, "theta": 0.5, "final_time": 0.05},
      "output":         {"evaluation_point": [1.0, 0.1],
                         "output_directory": "results", "output_interval": 1}
    }

Boundary ids may be given as numbers or as names (left, right, bottom, top).
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union

from ..discretization.mesh import BOUNDARY_NAMES
from ..solver.material import MaterialParameters
from ..solver.elastodynamics import (DiscretizationParameters, TimeSteppingParameters,
                                     OutputParameters, ElastodynamicsSolver)

SECTIONS = {
    "material": MaterialParameters,
    "discretization": DiscretizationParameters,
    "time_stepping": TimeSteppingParameters,
    "output": OutputParameters,
}


def _init_fields(cls) -> set:
    return {f.name for f in fields(cls) if f.init}


def _resolve_boundary_id(value: Union[int, str]) -> int:
    if isinstance(value, str):
        try:
            return BOUNDARY_NAMES[value.lower()]
        except KeyError:
            raise ValueError(f"Unknown boundary name {value!r}; "
                             f"expected one of {sorted(BOUNDARY_NAMES)}") from None
    return int(value)


def _build_section(name: str, data: Dict[str, Any]):
    cls = SECTIONS[name]
    if not isinstance(data, dict):
        raise ValueError(f"Section '{name}' must be a mapping, got {type(data).__name__}")
    unknown = set(data) - _init_fields(cls)
    if unknown:
        raise ValueError(f"Unknown keys in section '{name}': {sorted(unknown)}")

    kwargs = dict(data)
    if name == "discretization":
        for key in ("dirichlet_boundary_id", "traction_boundary_id"):
            if key in kwargs:
                kwargs[key] = _resolve_boundary_id(kwargs[key])
    return cls(**kwargs)


@dataclass
class SimulationConfig:
    """The four parameter groups of a simulation."""
    material: MaterialParameters = field(default_factory=MaterialParameters)
    discretization: DiscretizationParameters = field(default_factory=DiscretizationParameters)
    time_stepping: TimeSteppingParameters = field(default_factory=TimeSteppingParameters)
    output: OutputParameters = field(default_factory=OutputParameters)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimulationConfig':
        """
        Build the parameter groups from a nested dictionary.

        Raises:
            ValueError: Unknown sections or keys, or invalid values
        """
        if not isinstance(data, dict):
            raise ValueError(f"Configuration must be a mapping, got {type(data).__name__}")
        unknown = set(data) - set(SECTIONS)
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

        return cls(**{name: _build_section(name, data[name]) for name in SECTIONS if name in data})

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Nested dictionary accepted by from_dict (JSON-serializable)."""
        result = {}
        for name in SECTIONS:
            params = getattr(self, name)
            section = {}
            for key in _init_fields(type(params)):
                value = getattr(params, key)
                section[key] = list(value) if isinstance(value, tuple) else value
            result[name] = section
        return result


def load_config(filename: Union[str, Path]) -> SimulationConfig:
    """
    Load a simulation configuration from a JSON file.

    Raises:
        ValueError: Malformed JSON or invalid parameters
    """
    path = Path(filename)
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    return SimulationConfig.from_dict(data)


def save_config(config: SimulationConfig, filename: Union[str, Path]) -> Path:
    """Write a configuration as JSON."""
    path = Path(filename)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)
    return path


def build_solver(config: SimulationConfig) -> ElastodynamicsSolver:
    """Solver for a configuration; setup happens in run() or setup_system()."""
    return ElastodynamicsSolver(config.discretization, config.time_stepping,
                                config.material, config.output)
