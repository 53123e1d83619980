"""
Active-time accounting with pause support.

Budgets measure simulation time only: wall-clock time minus every
interval during which the batch was paused (explicit stop, or the gap
between one scheduler invocation and its continuation).
"""

import time
from typing import Callable, List, Optional, Tuple


class ActiveClock:
    """
    Wall clock that can be paused and resumed.

    active_elapsed() == wall_elapsed() - paused_elapsed() at all times.
    The underlying time source is injectable so tests can drive it.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self._started_at: Optional[float] = None
        self._paused_at: Optional[float] = None
        self._paused_total = 0.0
        self.paused_intervals: List[Tuple[float, float]] = []

    @property
    def is_started(self) -> bool:
        return self._started_at is not None

    @property
    def is_paused(self) -> bool:
        return self._paused_at is not None

    def start(self) -> None:
        """Start the clock, or resume it if it is paused."""
        if self._started_at is None:
            self._started_at = self._clock()
        else:
            self.resume()

    def pause(self) -> None:
        """Open a paused interval. No-op if already paused or not started."""
        if self._started_at is not None and self._paused_at is None:
            self._paused_at = self._clock()

    def resume(self) -> None:
        """Close the open paused interval, if any."""
        if self._paused_at is None:
            return
        now = self._clock()
        self._paused_total += now - self._paused_at
        self.paused_intervals.append((self._paused_at, now))
        self._paused_at = None

    def wall_elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    def paused_elapsed(self) -> float:
        total = self._paused_total
        if self._paused_at is not None:
            total += self._clock() - self._paused_at
        return total

    def active_elapsed(self) -> float:
        return self.wall_elapsed() - self.paused_elapsed()

    def copy(self) -> "ActiveClock":
        """Independent clock with the same history and time source."""
        clone = ActiveClock(self._clock)
        clone._started_at = self._started_at
        clone._paused_at = self._paused_at
        clone._paused_total = self._paused_total
        clone.paused_intervals = list(self.paused_intervals)
        return clone
