from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Tuple

import numpy as np

logger = logging.getLogger(__name__)

# =============================================================================
# PHYSICAL CONSTANTS AND CONFIGURATION
# =============================================================================


class PhysicalConstants:
    """Physical constants shared by every mass point."""

    # Mass of each point (scene units)
    MASS = 0.2

    # Fixed integration step, one frame at ~60 steps per second
    TIME_STEP = 0.016


class SimulationDefaults:
    """Default drawable area for grids created without explicit geometry."""

    WIDTH = 800.0
    HEIGHT = 600.0
    PADDING = 50.0


# Component indices into the trailing axis of the state arrays
X = 0
Y = 1


class ConfigurationError(ValueError):
    """Raised when a grid or simulation is configured with invalid values."""


# =============================================================================
# VECTOR AND SPRING TYPES
# =============================================================================


@dataclass(frozen=True)
class Vec2:
    """A 2D vector in scene coordinates."""

    x: float
    y: float

    def __add__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar: float) -> "Vec2":
        return Vec2(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def dot(self, other: "Vec2") -> float:
        return self.x * other.x + self.y * other.y

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    @classmethod
    def from_array(cls, values: np.ndarray) -> "Vec2":
        return cls(float(values[X]), float(values[Y]))


@dataclass(frozen=True)
class SpringParameters:
    """Rest length, stiffness and damping of one class of spring."""

    rest_length: float
    stiffness: float
    damping: float


class SpringConstants:
    """Spring constants, fixed for the lifetime of the process."""

    # Structural springs (horizontal + vertical neighbours)
    STRUCTURAL = SpringParameters(rest_length=50.0, stiffness=20.0, damping=0.1)

    # Shear springs (diagonals of each 2x2 block)
    SHEAR = SpringParameters(rest_length=50.0 * math.sqrt(2), stiffness=7.0, damping=0.05)


class SpringKind(str, Enum):
    STRUCTURAL = "structural"
    SHEAR = "shear"


class IntegrationMethod(str, Enum):
    """Time stepping schemes understood by :func:`step`."""

    SEMI_IMPLICIT_EULER = "euler"
    VERLET = "verlet"

    @classmethod
    def parse(cls, value: "IntegrationMethod | str") -> "IntegrationMethod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(f"Unknown integration method: {value!r}. Expected one of {[m.value for m in cls]}") from None


Index = Tuple[int, int]


@dataclass(frozen=True)
class Edge:
    """A spring between two grid points, as handed to a renderer."""

    start: Index
    end: Index
    kind: SpringKind


# =============================================================================
# GRID STATE
# =============================================================================


@dataclass(eq=False)
class Grid:
    """Per-point state of a rows x cols mass-spring lattice.

    All four arrays have shape ``(rows, cols, 2)`` and are mutated in place.
    ``forces`` holds force divided by mass, i.e. acceleration.
    """

    rows: int
    cols: int
    width: float
    height: float
    padding: float
    mass: float
    positions: np.ndarray
    velocities: np.ndarray
    prev_positions: np.ndarray
    forces: np.ndarray

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.rows, self.cols)

    def position(self, i: int, j: int) -> Vec2:
        return Vec2.from_array(self.positions[i, j])

    def velocity(self, i: int, j: int) -> Vec2:
        return Vec2.from_array(self.velocities[i, j])

    def previous_position(self, i: int, j: int) -> Vec2:
        return Vec2.from_array(self.prev_positions[i, j])

    def edges(self, include_shear: bool) -> List[Edge]:
        """Return every spring of the current topology."""
        return [Edge(a, b, kind) for a, b, _, kind in iter_springs(self.rows, self.cols, include_shear)]


def _validate_dimension(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1, got {value}")
    return int(value)


def _validate_finite(name: str, value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(value):
        raise ConfigurationError(f"{name} must be finite, got {value}")
    return value


def create_grid(rows: int, cols: int, width: float = SimulationDefaults.WIDTH, height: float = SimulationDefaults.HEIGHT, padding: float = SimulationDefaults.PADDING, mass: float = PhysicalConstants.MASS) -> Grid:
    """Lay out an evenly spaced lattice, vertically centred in the drawable area."""
    rows = _validate_dimension("rows", rows)
    cols = _validate_dimension("cols", cols)
    width = _validate_finite("width", width)
    height = _validate_finite("height", height)
    padding = _validate_finite("padding", padding)
    mass = _validate_finite("mass", mass)

    if padding < 0:
        raise ConfigurationError(f"padding must not be negative, got {padding}")
    if 2 * padding > width or 2 * padding > height:
        raise ConfigurationError(f"padding {padding} leaves no drawable area in a {width}x{height} canvas")
    if mass <= 0:
        raise ConfigurationError(f"mass must be positive, got {mass}")

    x_step = (width - 2 * padding) / (cols - 1) if cols > 1 else 0.0
    y_step = (height - 2 * padding) / (rows - 1) if rows > 1 else 0.0
    y_start = height / 2 - (rows - 1) * y_step / 2

    positions = np.zeros((rows, cols, 2))
    positions[:, :, X] = padding + np.arange(cols)[np.newaxis, :] * x_step
    positions[:, :, Y] = y_start + np.arange(rows)[:, np.newaxis] * y_step

    logger.debug("Created %dx%d grid (x step %.3f, y step %.3f)", rows, cols, x_step, y_step)

    return Grid(
        rows=rows,
        cols=cols,
        width=width,
        height=height,
        padding=padding,
        mass=mass,
        positions=positions,
        velocities=np.zeros_like(positions),
        prev_positions=positions.copy(),
        forces=np.zeros_like(positions),
    )


def set_point_position(grid: Grid, i: int, j: int, x: float, y: float) -> Vec2:
    """Overwrite one point's position from external drag input.

    The target is clamped to the padded bounds and the previous position is
    synchronised so Verlet sees the point momentarily at rest.
    """
    target = Vec2(float(x), float(y))
    if not target.is_finite():
        raise ValueError(f"Drag target must be finite, got ({x}, {y})")
    if not (0 <= i < grid.rows and 0 <= j < grid.cols):
        raise IndexError(f"Point ({i}, {j}) is outside a {grid.rows}x{grid.cols} grid")

    clamped = clamp(target, grid.padding, grid.width, grid.height)
    grid.positions[i, j] = clamped.as_tuple()
    grid.prev_positions[i, j] = clamped.as_tuple()
    return clamped


# =============================================================================
# BOUNDARY POLICY
# =============================================================================


def clamp(point: Vec2, padding: float, width: float, height: float) -> Vec2:
    """Clamp a point into [padding, width - padding] x [padding, height - padding]."""
    return Vec2(
        max(padding, min(width - padding, point.x)),
        max(padding, min(height - padding, point.y)),
    )


def _clamp_positions(grid: Grid) -> None:
    np.clip(grid.positions[:, :, X], grid.padding, grid.width - grid.padding, out=grid.positions[:, :, X])
    np.clip(grid.positions[:, :, Y], grid.padding, grid.height - grid.padding, out=grid.positions[:, :, Y])


# =============================================================================
# FORCES
# =============================================================================


def iter_springs(rows: int, cols: int, include_shear: bool) -> Iterator[Tuple[Index, Index, SpringParameters, SpringKind]]:
    """Yield every spring of a rows x cols lattice.

    Structural springs come first (right, then down neighbour of each point),
    followed by both diagonals of every 2x2 block when shear is enabled.
    """
    for i in range(rows):
        for j in range(cols):
            if j < cols - 1:
                yield (i, j), (i, j + 1), SpringConstants.STRUCTURAL, SpringKind.STRUCTURAL
            if i < rows - 1:
                yield (i, j), (i + 1, j), SpringConstants.STRUCTURAL, SpringKind.STRUCTURAL

    if include_shear:
        for i in range(rows - 1):
            for j in range(cols - 1):
                yield (i, j), (i + 1, j + 1), SpringConstants.SHEAR, SpringKind.SHEAR
                yield (i + 1, j), (i, j + 1), SpringConstants.SHEAR, SpringKind.SHEAR


def apply_spring(grid: Grid, a: Index, b: Index, params: SpringParameters) -> None:
    """Accumulate the spring and damper force between points ``a`` and ``b``.

    The force acts along the spring axis only. A stretched spring pulls the
    endpoints together and a compressed one pushes them apart. Coincident
    points contribute nothing.
    """
    d = grid.positions[b] - grid.positions[a]
    dist = math.hypot(d[X], d[Y])
    if dist == 0:
        return

    direction = d / dist

    spring_force = params.stiffness * (dist - params.rest_length)

    rel_velocity = grid.velocities[b] - grid.velocities[a]
    damping_force = params.damping * float(rel_velocity @ direction)

    f = (spring_force + damping_force) * direction / grid.mass
    grid.forces[a] += f
    grid.forces[b] -= f


def accumulate_forces(grid: Grid, include_shear: bool) -> None:
    """Zero the force array and rebuild it from every spring in the grid."""
    grid.forces.fill(0.0)
    for a, b, params, _ in iter_springs(grid.rows, grid.cols, include_shear):
        apply_spring(grid, a, b, params)


# =============================================================================
# INTEGRATORS
# =============================================================================


def integrate_euler(grid: Grid, h: float, enforce_bounds: bool = False) -> None:
    """Semi-implicit Euler: velocity first, then position from the new velocity.

    ``prev_positions`` is not advanced.
    """
    grid.velocities += grid.forces * h
    grid.positions += grid.velocities * h
    if enforce_bounds:
        _clamp_positions(grid)


def integrate_verlet(grid: Grid, h: float) -> None:
    """Position Verlet using the previous position instead of velocity.

    Velocities are a central-difference estimate kept for display only.
    """
    current = grid.positions.copy()
    new_positions = 2 * current - grid.prev_positions + grid.forces * h * h

    grid.velocities[...] = (new_positions - grid.prev_positions) / (2 * h)
    grid.prev_positions[...] = current
    grid.positions[...] = new_positions

    _clamp_positions(grid)


def step(grid: Grid, method: IntegrationMethod | str, include_shear: bool, h: float = PhysicalConstants.TIME_STEP, clamp_euler: bool = False) -> Grid:
    """Advance the grid by one accumulate + integrate (+ clamp) cycle."""
    method = IntegrationMethod.parse(method)
    if not (math.isfinite(h) and h > 0):
        raise ConfigurationError(f"Time step must be a positive finite number, got {h}")

    accumulate_forces(grid, include_shear)

    if method is IntegrationMethod.SEMI_IMPLICIT_EULER:
        integrate_euler(grid, h, enforce_bounds=clamp_euler)
    else:
        integrate_verlet(grid, h)

    return grid


def check_numerical_issues(grid: Grid, tick: int) -> List[str]:
    """Describe any non-finite state left behind by the last step."""
    issues = []
    if not np.all(np.isfinite(grid.positions)):
        issues.append(f"Numerical instability in positions at tick {tick}")
    if not np.all(np.isfinite(grid.velocities)):
        issues.append(f"Numerical instability in velocity at tick {tick}")
    for issue in issues:
        logger.warning(issue)
    return issues
