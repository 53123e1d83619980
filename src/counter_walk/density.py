"""
Density aggregation over a set of completed runs.

Grid layout:
    rows    = counter value, 0..grid_height-1
    columns = time bin,      0..grid_width-1 (grid_width <= MAX_GRID_WIDTH)

Path index i of any run lands in bin floor(i * grid_width / max_length),
where max_length is the length of the longest run. Short runs therefore
only touch the leading bins.

Two channels are built side by side:
    vertical   - how many distinct runs occupy the cell
    horizontal - how many raw (run, iteration) observations fell into it
so horizontal >= vertical everywhere.
"""

import numpy as np
from dataclasses import dataclass
from typing import Sequence

from .exceptions import UnknownModeError


MAX_GRID_WIDTH = 1000

VISUALIZATION_MODES = ("full", "peak", "lines", "combined")
AGGREGATION_MODES = ("full", "peak")

_AGGREGATION_FOR_VISUALIZATION = {
    "full": "full",
    "combined": "full",
    "lines": "full",
    "peak": "peak",
}


def aggregation_mode_for(visualization_mode: str) -> str:
    """Map a visualization mode onto the grid it is drawn from."""
    try:
        return _AGGREGATION_FOR_VISUALIZATION[visualization_mode]
    except KeyError:
        raise UnknownModeError("visualization mode", visualization_mode, VISUALIZATION_MODES) from None


@dataclass(frozen=True)
class DensityGrid:
    """
    Pair of read-only int64 grids of shape (grid_height, grid_width).

    Attributes:
        vertical: Distinct-run count per cell
        horizontal: Raw observation count per cell
        max_length: Length of the longest input run
        total_runs: Number of input runs
        mode: Aggregation mode used ("full" or "peak")
    """
    vertical: np.ndarray
    horizontal: np.ndarray
    max_length: int
    total_runs: int
    mode: str

    @property
    def grid_height(self) -> int:
        return self.vertical.shape[0]

    @property
    def grid_width(self) -> int:
        return self.vertical.shape[1]

    @property
    def is_empty(self) -> bool:
        return self.grid_width == 0

    def counts_at(self, y: int, x: int) -> tuple[int, int]:
        """(vertical, horizontal) counts of one cell."""
        return int(self.vertical[y, x]), int(self.horizontal[y, x])


def _bin_indices(length: int, grid_width: int, max_length: int) -> np.ndarray:
    return np.arange(length, dtype=np.int64) * grid_width // max_length


def _as_values(run, grid_height: int) -> np.ndarray:
    values = np.asarray(run, dtype=np.int64)
    if values.size and (values.min() < 0 or values.max() >= grid_height):
        raise ValueError(
            f"run value out of range for grid height {grid_height}: "
            f"min={int(values.min())}, max={int(values.max())}"
        )
    return values


def build_density(runs: Sequence[Sequence[int]], mode: str, grid_height: int) -> DensityGrid:
    """
    Aggregate runs into vertical and horizontal density grids.

    Args:
        runs: Completed run paths (counter values)
        mode: "full" counts every distinct value a run visits in a bin;
            "peak" counts only the run's highest value in each bin and
            credits that cell with all of the bin's observations
        grid_height: Number of rows, normally target_value + 1

    Returns:
        DensityGrid; width 0 when there are no runs

    Raises:
        UnknownModeError: If mode is not an aggregation mode.
        ValueError: If a run holds a value outside [0, grid_height).
    """
    if mode not in AGGREGATION_MODES:
        raise UnknownModeError("aggregation mode", mode, AGGREGATION_MODES)
    if grid_height < 1:
        raise ValueError("grid_height must be >= 1")

    max_length = max((len(run) for run in runs), default=0)
    grid_width = min(max_length, MAX_GRID_WIDTH)
    n_cells = grid_height * grid_width

    if grid_width == 0:
        empty = np.zeros((grid_height, 0), dtype=np.int64)
        return _freeze(empty, empty.copy(), max_length, len(runs), mode)

    # Cell keys are flat indices y * grid_width + x.
    vertical_keys = []
    horizontal_keys = []
    horizontal_weights = []

    for run in runs:
        values = _as_values(run, grid_height)
        if values.size == 0:
            continue
        bins = _bin_indices(values.size, grid_width, max_length)

        if mode == "full":
            keys = values * grid_width + bins
            vertical_keys.append(np.unique(keys))
            horizontal_keys.append(keys)
            horizontal_weights.append(np.ones(keys.size, dtype=np.int64))
        else:
            peaks = np.full(grid_width, -1, dtype=np.int64)
            np.maximum.at(peaks, bins, values)
            bin_counts = np.bincount(bins, minlength=grid_width)
            occupied = np.nonzero(peaks >= 0)[0]
            keys = peaks[occupied] * grid_width + occupied
            vertical_keys.append(keys)
            horizontal_keys.append(keys)
            horizontal_weights.append(bin_counts[occupied])

    if vertical_keys:
        vertical = np.bincount(np.concatenate(vertical_keys), minlength=n_cells)
        horizontal = np.bincount(
            np.concatenate(horizontal_keys),
            weights=np.concatenate(horizontal_weights),
            minlength=n_cells
        )
    else:
        vertical = np.zeros(n_cells, dtype=np.int64)
        horizontal = np.zeros(n_cells, dtype=np.int64)

    return _freeze(
        vertical.astype(np.int64).reshape(grid_height, grid_width),
        horizontal.astype(np.int64).reshape(grid_height, grid_width),
        max_length,
        len(runs),
        mode
    )


def _freeze(vertical, horizontal, max_length, total_runs, mode) -> DensityGrid:
    vertical.setflags(write=False)
    horizontal.setflags(write=False)
    return DensityGrid(
        vertical=vertical,
        horizontal=horizontal,
        max_length=max_length,
        total_runs=total_runs,
        mode=mode
    )
