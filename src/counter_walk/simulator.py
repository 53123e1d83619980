"""
Single-attempt simulator for the state-dependent counter walk.

Transition rule (memoryless given the counter c):
    p_up(c) = clamp(initial_prob * decay_factor ** c, 0, 1)
    up   with probability p_up(c):      c -> c + 1
    down with probability 1 - p_up(c):  c -> max(0, c - 1)

decay_factor < 1 gives diminishing returns, > 1 gives positive feedback,
= 1 is a plain biased walk.

Hitting the iteration or time cap is a normal, reportable outcome and
never raises.
"""

import time
from typing import Callable, Optional

from .config import SimulationParameters
from .random_source import NumpyRandomSource, RandomSource
from .state import AttemptResult, TerminationReason


CHECKPOINT_ITERATIONS = 1000

CheckpointCallback = Callable[[int, int, float], None]


class RunSimulator:
    """
    Produces one attempt per call.

    Holds no per-attempt state; the only shared state is the random
    source, which advances with every draw.
    """

    def __init__(
        self,
        random_source: Optional[RandomSource] = None,
        clock: Callable[[], float] = time.perf_counter
    ):
        """
        Args:
            random_source: Uniform draws (default: unseeded NumpyRandomSource)
            clock: Monotonic time source in seconds
        """
        self.random_source = random_source if random_source is not None else NumpyRandomSource()
        self.clock = clock

    def simulate(
        self,
        params: SimulationParameters,
        iteration_cap: Optional[int] = None,
        time_limit_s: Optional[float] = None,
        on_checkpoint: Optional[CheckpointCallback] = None
    ) -> AttemptResult:
        """
        Run the walk from 0 until it reaches the target or a cap.

        Args:
            params: Validated simulation parameters
            iteration_cap: Overrides params.iteration_safety_cap
            time_limit_s: Per-attempt wall-time cap, checked every
                CHECKPOINT_ITERATIONS iterations
            on_checkpoint: Called as (iterations, counter, elapsed_s) every
                CHECKPOINT_ITERATIONS iterations

        Returns:
            AttemptResult whose path ends at the target iff completed
        """
        cap = params.iteration_safety_cap if iteration_cap is None else iteration_cap
        target = params.target_value
        # p_up only depends on the counter, so tabulate it once.
        p_up = [params.up_probability(c) for c in range(target)]
        uniform = self.random_source.uniform

        start = self.clock()
        path = []
        counter = 0
        iterations = 0
        timed_out = False

        while counter < target and iterations < cap:
            if iterations and iterations % CHECKPOINT_ITERATIONS == 0:
                elapsed = self.clock() - start
                if time_limit_s is not None and elapsed > time_limit_s:
                    timed_out = True
                    break
                if on_checkpoint is not None:
                    on_checkpoint(iterations, counter, elapsed)

            path.append(counter)
            if uniform() < p_up[counter]:
                counter += 1
            elif counter > 0:
                counter -= 1
            iterations += 1

        completed = counter == target
        if completed:
            path.append(target)
            reason = TerminationReason.SUCCESS
        elif timed_out:
            reason = TerminationReason.TIME_LIMIT
        else:
            reason = TerminationReason.ITERATION_LIMIT

        return AttemptResult(
            path=tuple(path),
            completed=completed,
            iterations=iterations,
            elapsed_s=self.clock() - start,
            termination_reason=reason
        )


def simulate_run(
    params: SimulationParameters,
    random_source: Optional[RandomSource] = None,
    iteration_cap: Optional[int] = None
) -> AttemptResult:
    """
    Convenience function to run one attempt.

    Args:
        params: Simulation parameters.
        random_source: Source of draws (default: unseeded).
        iteration_cap: Overrides params.iteration_safety_cap.
    """
    return RunSimulator(random_source).simulate(params, iteration_cap=iteration_cap)
