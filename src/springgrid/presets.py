"""Task presets: grid shape, initial disturbance and shear topology."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .engine import ConfigurationError, Grid, SimulationDefaults, Vec2, X, Y, create_grid

logger = logging.getLogger(__name__)

FREE_FORM_PRESET = 5


@dataclass(frozen=True)
class Disturbance:
    """A one-off offset added to a single point right after grid creation."""

    row: int
    col: int
    offset: Vec2


@dataclass(frozen=True)
class Preset:
    id: int
    name: str
    description: str
    rows: Optional[int]  # None: user-chosen
    cols: Optional[int]
    shear: bool

    @property
    def is_free_form(self) -> bool:
        return self.rows is None or self.cols is None

    def shape(self, rows: Optional[int] = None, cols: Optional[int] = None) -> Tuple[int, int]:
        """Grid shape for this preset; user dimensions only count for free-form."""
        if self.is_free_form:
            return (rows if rows is not None else FreeFormDefaults.ROWS, cols if cols is not None else FreeFormDefaults.COLS)
        return (self.rows, self.cols)

    def disturbances(self, rows: int, cols: int) -> List[Disturbance]:
        if self.id == 1:
            return [Disturbance(0, 1, Vec2(20.0, 0.0))]
        if self.id in (2, 3):
            return [Disturbance(0, 1, Vec2(0.0, -30.0))]
        if self.id == 4:
            return [Disturbance(1, 1, Vec2(0.0, -40.0))]
        if self.id == FREE_FORM_PRESET:
            return [Disturbance(0, cols // 2, Vec2(0.0, -40.0))]
        return []

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "rows": self.rows,
            "cols": self.cols,
            "shear": self.shear,
        }


class FreeFormDefaults:
    ROWS = 5
    COLS = 5


PRESETS: Dict[int, Preset] = {
    1: Preset(1, "single-spring", "Two masses on one structural spring, right mass pulled sideways", 1, 2, shear=False),
    2: Preset(2, "square", "2x2 square of structural springs, top-right mass lifted", 2, 2, shear=False),
    3: Preset(3, "square-shear", "2x2 square braced by shear springs, top-right mass lifted", 2, 2, shear=True),
    4: Preset(4, "three-by-three", "3x3 cloth patch with the centre mass lifted", 3, 3, shear=True),
    FREE_FORM_PRESET: Preset(FREE_FORM_PRESET, "free-form", "User-sized grid with the middle of the top row lifted", None, None, shear=True),
}


def get_preset(preset_id) -> Preset:
    try:
        if isinstance(preset_id, bool) or (isinstance(preset_id, float) and not preset_id.is_integer()):
            raise TypeError(preset_id)
        return PRESETS[int(preset_id)]
    except (KeyError, TypeError, ValueError):
        raise ConfigurationError(f"Unknown preset: {preset_id!r}. Expected one of {sorted(PRESETS)}") from None


def apply_disturbances(grid: Grid, disturbances: List[Disturbance]) -> None:
    """Offset positions only; previous positions keep the lattice layout."""
    for d in disturbances:
        if not (0 <= d.row < grid.rows and 0 <= d.col < grid.cols):
            logger.debug("Skipping disturbance outside grid at (%d, %d)", d.row, d.col)
            continue
        grid.positions[d.row, d.col, X] += d.offset.x
        grid.positions[d.row, d.col, Y] += d.offset.y


def initialize(preset_id, rows: Optional[int] = None, cols: Optional[int] = None, width: float = SimulationDefaults.WIDTH, height: float = SimulationDefaults.HEIGHT, padding: float = SimulationDefaults.PADDING) -> Grid:
    """(Re)build the grid for a preset and apply its initial disturbance.

    Fixed presets ignore ``rows`` and ``cols``.
    """
    preset = get_preset(preset_id)
    rows, cols = preset.shape(rows, cols)
    grid = create_grid(rows, cols, width, height, padding)
    apply_disturbances(grid, preset.disturbances(grid.rows, grid.cols))
    logger.debug("Initialized preset %d (%s) as %dx%d grid", preset.id, preset.name, grid.rows, grid.cols)
    return grid
