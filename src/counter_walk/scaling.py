"""
Normalization of raw density grids to [0, 1].

Every scaling maps 0 to 0 and the grid maximum to 1, and preserves the
order of cells. Scalings only re-read the raw grid, so switching between
them never needs a new simulation.

    linear      v / max
    sqrt        sqrt(v) / sqrt(max)
    log         ln(v + 1) / ln(max + 1)
    percentile  rank of v among the distinct non-zero values / (n - 1)
"""

import numpy as np

from .exceptions import UnknownModeError


COLOR_SCALINGS = ("linear", "sqrt", "log", "percentile")


def _percentile_ranks(values: np.ndarray) -> np.ndarray:
    distinct = np.unique(values[values > 0])
    out = np.zeros(values.shape, dtype=float)
    if distinct.size < 2:
        # A lone distinct value has no spread to rank against.
        return out
    nonzero = values > 0
    ranks = np.searchsorted(distinct, values[nonzero])
    out[nonzero] = ranks / (distinct.size - 1)
    return out


def normalize(raw: np.ndarray, scaling: str = "linear") -> np.ndarray:
    """
    Scale a non-negative grid into [0, 1].

    Args:
        raw: Non-negative counts (any shape)
        scaling: One of COLOR_SCALINGS

    Returns:
        New float array of the same shape; all zeros if raw is all zero

    Raises:
        UnknownModeError: If scaling is not recognized.
        ValueError: If raw holds negative values.
    """
    if scaling not in COLOR_SCALINGS:
        raise UnknownModeError("color scaling", scaling, COLOR_SCALINGS)

    values = np.asarray(raw, dtype=float)
    if values.size and values.min() < 0:
        raise ValueError("density values must be non-negative")

    peak = values.max() if values.size else 0.0
    if peak <= 0:
        return np.zeros(values.shape, dtype=float)

    if scaling == "linear":
        return values / peak
    if scaling == "sqrt":
        return np.sqrt(values) / np.sqrt(peak)
    if scaling == "log":
        return np.log1p(values) / np.log1p(peak)
    return _percentile_ranks(values)


def normalize_alpha(horizontal: np.ndarray) -> np.ndarray:
    """Opacity channel: sqrt(v / max), independent of the color scaling."""
    values = np.asarray(horizontal, dtype=float)
    if values.size and values.min() < 0:
        raise ValueError("density values must be non-negative")
    peak = values.max() if values.size else 0.0
    if peak <= 0:
        return np.zeros(values.shape, dtype=float)
    return np.sqrt(values / peak)
