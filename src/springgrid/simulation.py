from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from .engine import ConfigurationError, Edge, Grid, IntegrationMethod, PhysicalConstants, SimulationDefaults, check_numerical_issues, set_point_position, step
from .presets import get_preset, initialize

logger = logging.getLogger(__name__)

# =============================================================================
# CONFIGURATION
# =============================================================================

DERIVED_CONFIG_FIELDS = frozenset({"include_shear"})


@dataclass
class SimulationConfig:
    """Everything a presentation layer may choose about a simulation."""

    preset_id: int = 1
    integration_method: IntegrationMethod = IntegrationMethod.SEMI_IMPLICIT_EULER
    shear_enabled: Optional[bool] = None  # None: follow the preset
    rows: Optional[int] = None  # free-form preset only
    cols: Optional[int] = None
    clamp_euler: bool = False
    # Displayed by the UI but not consumed by the force model
    restore_force: float = 1.0
    damping: float = 0.1

    def __post_init__(self):
        self.preset_id = get_preset(self.preset_id).id
        self.integration_method = IntegrationMethod.parse(self.integration_method)
        if self.shear_enabled is not None and not isinstance(self.shear_enabled, bool):
            raise ConfigurationError(f"shear_enabled must be a boolean or null, got {self.shear_enabled!r}")
        if not isinstance(self.clamp_euler, bool):
            raise ConfigurationError(f"clamp_euler must be a boolean, got {self.clamp_euler!r}")
        for name in ("rows", "cols"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 1):
                raise ConfigurationError(f"{name} must be an integer of at least 1, got {value!r}")
        for name in ("restore_force", "damping"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ConfigurationError(f"{name} must be a finite number, got {value!r}")
            setattr(self, name, float(value))

    @property
    def include_shear(self) -> bool:
        if self.shear_enabled is not None:
            return self.shear_enabled
        return get_preset(self.preset_id).shear

    def shape(self) -> Tuple[int, int]:
        return get_preset(self.preset_id).shape(self.rows, self.cols)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimulationConfig":
        known = {f for f in cls.__dataclass_fields__}
        # derived value emitted by to_dict
        data = {k: v for k, v in data.items() if k not in DERIVED_CONFIG_FIELDS}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration fields: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "preset_id": self.preset_id,
            "integration_method": self.integration_method.value,
            "shear_enabled": self.shear_enabled,
            "include_shear": self.include_shear,
            "rows": self.rows,
            "cols": self.cols,
            "clamp_euler": self.clamp_euler,
            "restore_force": self.restore_force,
            "damping": self.damping,
        }


# =============================================================================
# RESULTS
# =============================================================================


@dataclass(eq=False)
class Frame:
    """Snapshot of the grid after one tick, ready for a renderer."""

    tick: int
    time: float
    method: IntegrationMethod
    positions: np.ndarray  # (rows, cols, 2)
    velocities: np.ndarray
    edges: List[Edge]
    issues: List[str] = field(default_factory=list)

    @classmethod
    def capture(cls, grid: Grid, tick: int, h: float, method: IntegrationMethod, include_shear: bool, issues: Optional[List[str]] = None) -> "Frame":
        return cls(
            tick=tick,
            time=round(tick * h, 6),
            method=method,
            positions=grid.positions.copy(),
            velocities=grid.velocities.copy(),
            edges=grid.edges(include_shear),
            issues=list(issues or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tick": self.tick,
            "time": self.time,
            "method": self.method.value,
            "positions": self.positions.tolist(),
            "velocities": self.velocities.tolist(),
            "edges": [{"start": list(e.start), "end": list(e.end), "kind": e.kind.value} for e in self.edges],
            "issues": list(self.issues),
        }


@dataclass
class Results:
    """Frames recorded by a batch run."""

    frames: List[Frame]
    final_time: float = 0.0
    total_frames: int = 0

    def get_final_frame(self) -> Optional[Frame]:
        return self.frames[-1] if self.frames else None

    @property
    def issues(self) -> List[str]:
        return [issue for frame in self.frames for issue in frame.issues]


# =============================================================================
# SIMULATION
# =============================================================================


class Simulation:
    """Explicit simulation state: configuration, grid, run flag and clock."""

    def __init__(self, config: Optional[SimulationConfig] = None, width: float = SimulationDefaults.WIDTH, height: float = SimulationDefaults.HEIGHT, padding: float = SimulationDefaults.PADDING, time_step: float = PhysicalConstants.TIME_STEP, max_points: Optional[int] = None):
        if not (math.isfinite(time_step) and time_step > 0):
            raise ConfigurationError(f"time_step must be a positive finite number, got {time_step}")
        self.config = config or SimulationConfig()
        self.width = width
        self.height = height
        self.padding = padding
        self.time_step = time_step
        self.max_points = max_points
        # held by callers for the whole of a tick, drag or reconfiguration
        self.lock = threading.RLock()
        self.running = False
        self.tick_count = 0
        self.grid = self._build_grid()

    def _check_size(self, config: SimulationConfig) -> None:
        rows, cols = config.shape()
        if self.max_points is not None and rows * cols > self.max_points:
            raise ConfigurationError(f"A {rows}x{cols} grid exceeds the limit of {self.max_points} points")

    def _build_grid(self) -> Grid:
        self._check_size(self.config)
        rows, cols = self.config.shape()
        return initialize(self.config.preset_id, rows, cols, self.width, self.height, self.padding)

    # --- run / pause ----------------------------------------------------

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def toggle(self) -> bool:
        with self.lock:
            self.running = not self.running
            logger.debug("Simulation %s", "started" if self.running else "stopped")
            return self.running

    # --- stepping -------------------------------------------------------

    def _advance_one(self) -> Frame:
        method = self.config.integration_method
        include_shear = self.config.include_shear
        step(self.grid, method, include_shear, self.time_step, clamp_euler=self.config.clamp_euler)
        self.tick_count += 1
        issues = check_numerical_issues(self.grid, self.tick_count)
        return Frame.capture(self.grid, self.tick_count, self.time_step, method, include_shear, issues)

    def tick(self) -> Optional[Frame]:
        """One scheduled tick, gated on the running flag."""
        with self.lock:
            if not self.running:
                return None
            return self._advance_one()

    def advance(self, steps: int = 1) -> List[Frame]:
        """Step unconditionally, regardless of the running flag."""
        if isinstance(steps, bool) or not isinstance(steps, int) or steps < 0:
            raise ConfigurationError(f"steps must be a non-negative integer, got {steps!r}")
        with self.lock:
            return [self._advance_one() for _ in range(steps)]

    def snapshot(self) -> Frame:
        with self.lock:
            return Frame.capture(self.grid, self.tick_count, self.time_step, self.config.integration_method, self.config.include_shear)

    # --- external input -------------------------------------------------

    def drag(self, row: int, col: int, x: float, y: float):
        with self.lock:
            return set_point_position(self.grid, row, col, x, y)

    def reset(self) -> None:
        """Rebuild the grid from the current configuration and pause."""
        with self.lock:
            self.grid = self._build_grid()
            self.tick_count = 0
            self.running = False

    def configure(self, **changes: Any) -> bool:
        """Apply configuration changes, rebuilding the grid when topology changes.

        Changing the preset always rebuilds. Row/column edits only take effect
        under the free-form preset, as with the fixed presets the shape is
        dictated by the preset. Returns True when the grid was rebuilt.
        """
        with self.lock:
            new_config = replace(self.config, **changes)
            self._check_size(new_config)
            preset = get_preset(new_config.preset_id)

            rebuild = new_config.preset_id != self.config.preset_id
            if preset.is_free_form and new_config.shape() != self.grid.shape:
                rebuild = True
            if not preset.is_free_form and ("rows" in changes or "cols" in changes) and not rebuild:
                logger.debug("Ignoring rows/cols change for fixed preset %d", preset.id)

            self.config = new_config
            if rebuild:
                self.grid = self._build_grid()
                self.tick_count = 0
                logger.info("Rebuilt grid for preset %d as %dx%d", preset.id, self.grid.rows, self.grid.cols)
            return rebuild

    def to_dict(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "running": self.running,
                "config": self.config.to_dict(),
                "grid": {"rows": self.grid.rows, "cols": self.grid.cols, "width": self.width, "height": self.height, "padding": self.padding},
                "frame": self.snapshot().to_dict(),
            }


def simulate(config: Optional[SimulationConfig] = None, steps: int = 1000, time_step: float = PhysicalConstants.TIME_STEP, record_every: int = 1, width: float = SimulationDefaults.WIDTH, height: float = SimulationDefaults.HEIGHT, padding: float = SimulationDefaults.PADDING, stop_on_instability: bool = True, max_points: Optional[int] = None) -> Results:
    """Run a fresh simulation for ``steps`` ticks and record frames.

    The initial state is recorded as frame 0, followed by every
    ``record_every``-th tick and always the last one.
    """
    if isinstance(steps, bool) or not isinstance(steps, int) or steps < 0:
        raise ConfigurationError(f"steps must be a non-negative integer, got {steps!r}")
    if isinstance(record_every, bool) or not isinstance(record_every, int) or record_every < 1:
        raise ConfigurationError(f"record_every must be a positive integer, got {record_every!r}")

    sim = Simulation(config, width=width, height=height, padding=padding, time_step=time_step, max_points=max_points)
    frames = [sim.snapshot()]

    for _ in range(steps):
        frame = sim.advance(1)[0]
        if sim.tick_count % record_every == 0 or sim.tick_count == steps or frame.issues:
            frames.append(frame)
        if frame.issues and stop_on_instability:
            break

    final = frames[-1]
    return Results(frames=frames, final_time=final.time, total_frames=len(frames))
