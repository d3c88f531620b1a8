"""Main springgrid package exposing the mass-spring simulation engine."""

from .engine import ConfigurationError, Grid, IntegrationMethod, Vec2, accumulate_forces, apply_spring, clamp, create_grid, set_point_position, step
from .presets import PRESETS, initialize
from .simulation import Frame, Results, Simulation, SimulationConfig, simulate

__all__ = [
    "Vec2",
    "Grid",
    "IntegrationMethod",
    "ConfigurationError",
    "create_grid",
    "apply_spring",
    "accumulate_forces",
    "step",
    "clamp",
    "set_point_position",
    "PRESETS",
    "initialize",
    "SimulationConfig",
    "Simulation",
    "Frame",
    "Results",
    "simulate",
]
