"""
Presentation-ready heatmap assembled from a density grid.

Color comes from the vertical channel under the chosen scaling; opacity
comes from the horizontal channel. The colormap runs dark blue -> teal
-> orange-yellow -> red across five equal bands.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Sequence

from .density import DensityGrid, aggregation_mode_for, build_density
from .scaling import normalize, normalize_alpha


# (lower edge, rgb at lower edge, rgb at upper edge) for each band
_COLOR_BANDS = (
    (0.0, (30, 30, 60), (50, 50, 150)),
    (0.2, (50, 50, 150), (50, 150, 150)),
    (0.4, (50, 150, 150), (255, 200, 0)),
    (0.6, (255, 200, 0), (255, 150, 0)),
    (0.8, (255, 150, 50), (255, 50, 0)),
)
_BAND_WIDTH = 0.2
_BAND_EDGES = np.array([band[0] for band in _COLOR_BANDS])


def _band_index(color_value):
    index = np.searchsorted(_BAND_EDGES, color_value, side="right") - 1
    return np.clip(index, 0, len(_COLOR_BANDS) - 1)


@dataclass(frozen=True)
class CellInfo:
    """What a single heatmap cell represents."""
    counter_value: int
    time_start: int
    time_end: int
    vertical_count: int
    horizontal_count: int
    run_percentage: float
    total_runs: int
    color_value: float
    alpha_value: float

    @property
    def average_steps_per_run(self) -> Optional[float]:
        if self.vertical_count == 0:
            return None
        return self.horizontal_count / self.vertical_count


@dataclass(frozen=True)
class HeatmapData:
    """
    Scaled color and alpha grids plus the raw counts behind them.

    Attributes:
        color: Vertical density under `scaling`, in [0, 1]
        alpha: sqrt-normalized horizontal density, in [0, 1]
        density: Raw DensityGrid the scaled grids were computed from
        visualization_mode: Mode requested by the caller
        scaling: Color scaling applied
    """
    color: np.ndarray
    alpha: np.ndarray
    density: DensityGrid
    visualization_mode: str
    scaling: str

    @property
    def raw_vertical(self) -> np.ndarray:
        return self.density.vertical

    @property
    def raw_horizontal(self) -> np.ndarray:
        return self.density.horizontal

    @property
    def grid_width(self) -> int:
        return self.density.grid_width

    @property
    def grid_height(self) -> int:
        return self.density.grid_height

    @property
    def max_length(self) -> int:
        return self.density.max_length

    @property
    def total_runs(self) -> int:
        return self.density.total_runs

    @property
    def is_empty(self) -> bool:
        return self.density.is_empty

    def rescale(self, scaling: str) -> "HeatmapData":
        """Same grid under a different color scaling. No re-aggregation."""
        return HeatmapData(
            color=normalize(self.density.vertical, scaling),
            alpha=self.alpha,
            density=self.density,
            visualization_mode=self.visualization_mode,
            scaling=scaling
        )

    def inspect(self, y: int, x: int) -> Optional[CellInfo]:
        """
        Describe cell (y, x): counter value y during time bin x.

        Returns:
            CellInfo, or None for empty or out-of-range cells
        """
        if not (0 <= y < self.grid_height and 0 <= x < self.grid_width):
            return None
        vertical, horizontal = self.density.counts_at(y, x)
        if vertical == 0 and horizontal == 0:
            return None

        time_start = int(x / self.grid_width * self.max_length)
        time_end = int((x + 1) / self.grid_width * self.max_length)
        total = self.total_runs
        return CellInfo(
            counter_value=y,
            time_start=time_start,
            time_end=max(time_start + 1, time_end),
            vertical_count=vertical,
            horizontal_count=horizontal,
            run_percentage=vertical / total * 100.0 if total > 0 else 0.0,
            total_runs=total,
            color_value=float(self.color[y, x]),
            alpha_value=float(self.alpha[y, x])
        )


def create_heatmap(
    runs: Sequence[Sequence[int]],
    color_scaling: str,
    visualization_mode: str,
    target_value: int
) -> HeatmapData:
    """
    Aggregate runs and scale both channels.

    Args:
        runs: Completed run paths
        color_scaling: One of scaling.COLOR_SCALINGS
        visualization_mode: One of density.VISUALIZATION_MODES
        target_value: Highest counter value (grid height is target + 1)

    Raises:
        UnknownModeError: For an unrecognized mode or scaling.
        ValueError: If a run exceeds target_value.
    """
    grid = build_density(runs, aggregation_mode_for(visualization_mode), target_value + 1)
    return HeatmapData(
        color=normalize(grid.vertical, color_scaling),
        alpha=normalize_alpha(grid.horizontal),
        density=grid,
        visualization_mode=visualization_mode,
        scaling=color_scaling
    )


def heatmap_color(color_value: float, alpha_value: float) -> tuple[int, int, int, float]:
    """
    Map one scaled cell to an (r, g, b, a) tuple.

    rgb channels are 0-255 ints, a is in [0.1, 1]. A fully empty cell
    is transparent white.
    """
    if color_value == 0 and alpha_value == 0:
        return (255, 255, 255, 0.0)

    lower, start, end = _COLOR_BANDS[_band_index(color_value)]
    t = (color_value - lower) / _BAND_WIDTH
    r, g, b = (int(s + t * (e - s) + 0.5) for s, e in zip(start, end))
    alpha = min(0.1 + alpha_value * 0.9, 1.0)
    return (r, g, b, alpha)


def heatmap_rgba(heatmap: HeatmapData) -> np.ndarray:
    """
    Vectorized heatmap_color over the whole grid.

    Returns:
        Float array of shape (grid_height, grid_width, 4) in [0, 1],
        ready for matplotlib's imshow
    """
    color = np.asarray(heatmap.color, dtype=float)
    alpha = np.asarray(heatmap.alpha, dtype=float)
    rgba = np.zeros(color.shape + (4,), dtype=float)

    band_index = _band_index(color)
    for i, (lower, start, end) in enumerate(_COLOR_BANDS):
        in_band = band_index == i
        t = (color[in_band] - lower) / _BAND_WIDTH
        for channel in range(3):
            rgba[..., channel][in_band] = (start[channel] + t * (end[channel] - start[channel])) / 255.0

    rgba[..., 3] = np.minimum(0.1 + alpha * 0.9, 1.0)
    empty = (color == 0) & (alpha == 0)
    rgba[empty] = (1.0, 1.0, 1.0, 0.0)
    return rgba
