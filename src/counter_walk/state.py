"""
Data model for attempts, phases and batches.

RunPath:
    Tuple of counter values, path[0] == 0. Consecutive values differ by
    +1 or -1, except for the 0 -> 0 self-loop at the floor.

Phase budgets (seconds):
    initial    2.0 total,  0.5 per attempt
    extended  10.0 total,  2.0 per attempt
    unlimited  none,      30.0 per attempt (iteration cap lifted)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .timing import ActiveClock


RunPath = Tuple[int, ...]


class TerminationReason(Enum):
    """Why a single attempt ended."""
    SUCCESS = "success"
    ITERATION_LIMIT = "iteration_limit"
    TIME_LIMIT = "time_limit"


@dataclass(frozen=True)
class PhaseBudget:
    """
    Resource limits of one phase.

    Attributes:
        total_time_s: Active-time budget for the phase (None = no cap)
        attempt_time_s: Wall-time cap for one attempt
        unbounded_iterations: Lift the per-attempt iteration safety cap
        yield_interval_s: Max time between cooperative yields
    """
    total_time_s: Optional[float]
    attempt_time_s: float
    unbounded_iterations: bool
    yield_interval_s: float


class Phase(Enum):
    """Time-budget tier of a batch. Only ever moves forward."""
    INITIAL = "initial"
    EXTENDED = "extended"
    UNLIMITED = "unlimited"

    @property
    def budget(self) -> PhaseBudget:
        return PHASE_BUDGETS[self]

    @property
    def order(self) -> int:
        return _PHASE_ORDER.index(self)

    def next(self) -> Optional["Phase"]:
        """Following phase, or None after UNLIMITED."""
        idx = self.order + 1
        return _PHASE_ORDER[idx] if idx < len(_PHASE_ORDER) else None


_PHASE_ORDER = [Phase.INITIAL, Phase.EXTENDED, Phase.UNLIMITED]

PHASE_BUDGETS = {
    Phase.INITIAL: PhaseBudget(
        total_time_s=2.0, attempt_time_s=0.5,
        unbounded_iterations=False, yield_interval_s=0.25
    ),
    Phase.EXTENDED: PhaseBudget(
        total_time_s=10.0, attempt_time_s=2.0,
        unbounded_iterations=False, yield_interval_s=0.25
    ),
    Phase.UNLIMITED: PhaseBudget(
        total_time_s=None, attempt_time_s=30.0,
        unbounded_iterations=True, yield_interval_s=0.1
    ),
}


@dataclass(frozen=True)
class AttemptResult:
    """
    Outcome of one simulator invocation.

    Attributes:
        path: Visited counter values (pre-transition values, plus the
            target itself when completed)
        completed: Whether the counter reached the target
        iterations: Number of transitions taken
        elapsed_s: Wall time spent in the attempt
        termination_reason: SUCCESS iff completed
    """
    path: RunPath
    completed: bool
    iterations: int
    elapsed_s: float
    termination_reason: TerminationReason


@dataclass(frozen=True)
class ProgressUpdate:
    """Snapshot sent to progress observers. Never alters scheduler state."""
    successful_attempts: int
    desired_count: int
    total_attempts: int
    elapsed_active_s: float
    phase: Phase
    current_attempt_iterations: Optional[int] = None


def path_is_valid(path: Sequence[int]) -> bool:
    """Check the RunPath step invariant."""
    if len(path) == 0 or path[0] != 0:
        return False
    for prev, cur in zip(path, path[1:]):
        if cur < 0:
            return False
        delta = cur - prev
        if delta == 0 and prev != 0:
            return False
        if abs(delta) > 1:
            return False
    return True


@dataclass
class BatchState:
    """
    Mutable accumulator for one logical "seek N successes" operation.

    Owned by a single BatchScheduler. Continuations work on a copy, so a
    BatchResult handed out earlier never changes.
    """
    phase: Phase
    clock: ActiveClock
    completed_runs: List[RunPath] = field(default_factory=list)
    failed_attempts: List[AttemptResult] = field(default_factory=list)
    all_attempts: List[AttemptResult] = field(default_factory=list)
    total_attempts: int = 0
    successful_attempts: int = 0
    phase_started_active_s: float = 0.0
    safety_warnings: set = field(default_factory=set)

    @property
    def elapsed_active_s(self) -> float:
        return self.clock.active_elapsed()

    @property
    def phase_elapsed_s(self) -> float:
        return self.clock.active_elapsed() - self.phase_started_active_s

    def enter_phase(self, phase: Phase) -> None:
        """
        Move to `phase`, keeping every attempt recorded so far.

        Raises:
            ValueError: If `phase` comes before the current phase.
        """
        if phase.order < self.phase.order:
            raise ValueError(
                f"Phase cannot regress from {self.phase.value} to {phase.value}"
            )
        if phase is not self.phase:
            self.phase = phase
            self.phase_started_active_s = self.clock.active_elapsed()
            self.safety_warnings = set()

    def begin_attempt(self) -> None:
        self.total_attempts += 1

    def record(self, attempt: AttemptResult) -> None:
        """Append an attempt in issue order."""
        self.all_attempts.append(attempt)
        if attempt.completed:
            self.completed_runs.append(attempt.path)
            self.successful_attempts += 1
        else:
            self.failed_attempts.append(attempt)

    def copy(self) -> "BatchState":
        return BatchState(
            phase=self.phase,
            clock=self.clock.copy(),
            completed_runs=list(self.completed_runs),
            failed_attempts=list(self.failed_attempts),
            all_attempts=list(self.all_attempts),
            total_attempts=self.total_attempts,
            successful_attempts=self.successful_attempts,
            phase_started_active_s=self.phase_started_active_s,
            safety_warnings=set(self.safety_warnings)
        )


@dataclass(frozen=True)
class BatchResult:
    """
    Immutable outcome of one scheduler invocation.

    `state` is the accumulator behind the result; pass the result back
    as a continuation to keep going without losing prior work.
    """
    completed_runs: Tuple[RunPath, ...]
    failed_attempts: Tuple[AttemptResult, ...]
    all_attempts: Tuple[AttemptResult, ...]
    desired_count: int
    total_attempts: int
    successful_attempts: int
    reached_desired_count: bool
    hit_time_limit: bool
    was_stopped: bool
    aborted_for_safety: bool
    phase: Phase
    elapsed_active_s: float
    phase_elapsed_s: float
    state: BatchState = field(repr=False, compare=False)

    @classmethod
    def from_state(
        cls,
        state: BatchState,
        desired_count: int,
        hit_time_limit: bool = False,
        was_stopped: bool = False,
        aborted_for_safety: bool = False
    ) -> "BatchResult":
        return cls(
            completed_runs=tuple(state.completed_runs),
            failed_attempts=tuple(state.failed_attempts),
            all_attempts=tuple(state.all_attempts),
            desired_count=desired_count,
            total_attempts=state.total_attempts,
            successful_attempts=state.successful_attempts,
            reached_desired_count=state.successful_attempts == desired_count,
            hit_time_limit=hit_time_limit,
            was_stopped=was_stopped,
            aborted_for_safety=aborted_for_safety,
            phase=state.phase,
            elapsed_active_s=state.elapsed_active_s,
            phase_elapsed_s=state.phase_elapsed_s,
            state=state
        )

    @property
    def has_any_data(self) -> bool:
        return self.successful_attempts > 0

    @property
    def total_incomplete(self) -> int:
        return len(self.failed_attempts)

    @property
    def completion_rate(self) -> float:
        """Successful attempts as a percentage of all attempts."""
        if self.total_attempts == 0:
            return 0.0
        return self.successful_attempts / self.total_attempts * 100.0

    @property
    def average_iterations(self) -> float:
        if not self.all_attempts:
            return 0.0
        return sum(a.iterations for a in self.all_attempts) / len(self.all_attempts)

    @property
    def average_successful_length(self) -> float:
        if not self.completed_runs:
            return 0.0
        return sum(len(run) for run in self.completed_runs) / len(self.completed_runs)

    @property
    def average_run_time_s(self) -> float:
        if not self.all_attempts:
            return 0.0
        return sum(a.elapsed_s for a in self.all_attempts) / len(self.all_attempts)
