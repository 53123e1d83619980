"""
Injectable sources of uniform random draws.

The simulator never calls a global RNG. It asks a RandomSource for one
uniform value in [0, 1) per step, so a fixed seed reproduces every path
exactly and tests can script the draws.

Determinism Guarantee:
- Given identical (seed, parameters), a NumpyRandomSource produces
  identical paths.
- No dependence on wall-clock time.
"""

import numpy as np
from typing import Iterable, Optional, Protocol, runtime_checkable


@runtime_checkable
class RandomSource(Protocol):
    """Anything that can hand out uniform floats in [0, 1)."""

    def uniform(self) -> float:
        ...


class NumpyRandomSource:
    """
    Seeded source backed by numpy's PCG64 generator.

    Draws are pulled from the generator in blocks, which is much faster
    than one generator call per simulator step and yields the same
    sequence as calling `Generator.random()` one value at a time.
    """

    BLOCK_SIZE = 4096

    def __init__(self, seed: Optional[int] = None):
        """
        Args:
            seed: Random seed for reproducibility (None = OS entropy)
        """
        self._seed = seed
        self._rng = np.random.Generator(np.random.PCG64(seed))
        self._block = np.empty(0)
        self._pos = 0
        self._draw_count = 0

    @property
    def seed(self) -> Optional[int]:
        """Return the seed used for this source."""
        return self._seed

    @property
    def draw_count(self) -> int:
        """Number of values handed out since construction or reset."""
        return self._draw_count

    def reset(self, seed: Optional[int] = None) -> None:
        """
        Reset RNG state.

        Args:
            seed: New seed (uses original seed if None)
        """
        if seed is not None:
            self._seed = seed
        self._rng = np.random.Generator(np.random.PCG64(self._seed))
        self._block = np.empty(0)
        self._pos = 0
        self._draw_count = 0

    def uniform(self) -> float:
        if self._pos >= len(self._block):
            self._block = self._rng.random(self.BLOCK_SIZE)
            self._pos = 0
        value = self._block[self._pos]
        self._pos += 1
        self._draw_count += 1
        return float(value)


class SequenceRandomSource:
    """
    Replays a fixed list of draws, cycling when exhausted.

    Handy for driving the simulator through an exact path.
    """

    def __init__(self, values: Iterable[float]):
        self._values = [float(v) for v in values]
        if not self._values:
            raise ValueError("SequenceRandomSource needs at least one value")
        for v in self._values:
            if not 0.0 <= v < 1.0:
                raise ValueError(f"draws must lie in [0, 1), got {v}")
        self._pos = 0

    def uniform(self) -> float:
        value = self._values[self._pos % len(self._values)]
        self._pos += 1
        return value
