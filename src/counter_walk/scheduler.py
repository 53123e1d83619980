"""
Batch scheduler: repeat attempts until N successes or a budget runs out.

Phase machine (per logical seek, possibly spanning several invocations):

    initial --budget exceeded--> extended --budget exceeded--> unlimited

Reaching the target or a stop request ends the current invocation
immediately. A continuation re-enters with the previous BatchResult and
keeps every attempt already made. The unlimited phase has no total budget
but logs a warning at 60 s and 120 s of phase time and aborts at 300 s.

Suspension happens only at two points:
    - inside an attempt, every CHECKPOINT_ITERATIONS iterations
    - between attempts, after the phase's yield interval or after every
      YIELD_EVERY_SUCCESSES new successes
At each one the observer gets a ProgressUpdate and the host's yield_point
capability is called. A yield never reorders or discards results.
"""

import sys
import threading
import time
from typing import Callable, Optional, Union

from .config import SimulationParameters, validate_parameters
from .simulator import RunSimulator
from .state import BatchResult, BatchState, Phase, ProgressUpdate
from .timing import ActiveClock
from .utils.logger.logger import Logger


YIELD_EVERY_SUCCESSES = 2

UNLIMITED_WARNING_S = 60.0
UNLIMITED_ADVISORY_S = 120.0
UNLIMITED_ABORT_S = 300.0

LONG_ATTEMPT_S = 10.0

ProgressObserver = Callable[[ProgressUpdate], None]


def plan_next_phase(result: BatchResult) -> Optional[Phase]:
    """
    Decide where a logical seek goes after `result`.

    Returns:
        The phase a continuation should run in (the same phase after a
        stop, the next phase after an exhausted budget), or None when the
        seek is finished.
    """
    if result.reached_desired_count or result.aborted_for_safety:
        return None
    if result.was_stopped:
        return result.phase
    if result.hit_time_limit:
        return result.phase.next()
    return None


class BatchScheduler:
    """
    Drives the RunSimulator for one logical seek at a time.

    All mutable batch state lives in a BatchState owned by this instance.
    request_stop() may be called from an observer, from the yield point,
    or from another thread.
    """

    def __init__(
        self,
        simulator: Optional[RunSimulator] = None,
        observer: Optional[ProgressObserver] = None,
        yield_point: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.perf_counter
    ):
        """
        Args:
            simulator: Attempt producer (default: RunSimulator on `clock`)
            observer: Receives ProgressUpdate at every yield point
            yield_point: Host suspension capability (default: no-op)
            clock: Monotonic time source in seconds
        """
        self.clock = clock
        self.simulator = simulator if simulator is not None else RunSimulator(clock=clock)
        self.observer = observer
        self.yield_point = yield_point
        self._stop_event = threading.Event()
        self._state: Optional[BatchState] = None
        self._last_yield = 0.0

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    @property
    def state(self) -> Optional[BatchState]:
        """Accumulator of the batch currently (or most recently) running."""
        return self._state

    def request_stop(self) -> None:
        """
        Ask the running batch to stop after the current attempt.

        The batch's active clock is paused right away, so time spent
        finishing the attempt and waiting for a resume is not charged
        against the phase budget.

        Does not log, so it is safe to call from a signal handler that
        interrupts a Logger write. The batch loop logs the stop instead.
        """
        self._stop_event.set()
        if self._state is not None:
            self._state.clock.pause()

    def resume(self) -> None:
        """Clear a stop request. Continue with seek_successes(continuation=...)."""
        Logger.log("Resume requested", Logger.LogPriority.INFO)
        self._stop_event.clear()

    def seek_successes(
        self,
        desired_count: int,
        params: SimulationParameters,
        phase: Phase = Phase.INITIAL,
        continuation: Optional[Union[BatchResult, BatchState]] = None
    ) -> BatchResult:
        """
        Run attempts in `phase` until the target or a limit is reached.

        Args:
            desired_count: Number of successful attempts wanted
            params: Simulation parameters (validated before any attempt)
            phase: Phase to run in
            continuation: Previous result (or state) of the same logical
                seek; its attempts and successes carry over

        Returns:
            BatchResult with every attempt made so far, in issue order

        Raises:
            ConfigValidationError: If params are out of range.
            ValueError: If desired_count < 1 or the phase would regress.
        """
        if desired_count < 1:
            raise ValueError("desired_count must be >= 1")
        validate_parameters(params)

        if continuation is None:
            # Only a fresh seek drops a pending stop; continuations honor it.
            self._stop_event.clear()
            state = BatchState(phase=phase, clock=ActiveClock(self.clock))
        else:
            source = continuation.state if isinstance(continuation, BatchResult) else continuation
            state = source.copy()
            state.enter_phase(phase)

        self._state = state
        state.clock.start()

        budget = phase.budget
        iteration_cap = sys.maxsize if budget.unbounded_iterations else params.iteration_safety_cap

        Logger.log(
            f"Starting {phase.value} phase: seeking {desired_count} successes "
            f"({state.successful_attempts} carried over, {state.total_attempts} attempts so far)",
            Logger.LogPriority.INFO
        )

        hit_time_limit = False
        aborted = False
        self._last_yield = self.clock()

        long_attempt_notice_s = LONG_ATTEMPT_S

        def on_checkpoint(iterations, counter, elapsed):
            nonlocal long_attempt_notice_s
            if elapsed >= long_attempt_notice_s:
                Logger.log(
                    f"Long attempt in progress: {iterations} steps, {elapsed:.1f}s, counter at {counter}",
                    Logger.LogPriority.INFO
                )
                long_attempt_notice_s += LONG_ATTEMPT_S
            self._yield(state, desired_count, current_attempt_iterations=iterations)

        while state.successful_attempts < desired_count and not self._stop_event.is_set():
            phase_elapsed = state.phase_elapsed_s
            if budget.total_time_s is not None and phase_elapsed > budget.total_time_s:
                Logger.log(
                    f"Hit {phase.value} time limit at {phase_elapsed:.3f}s "
                    f"with {state.successful_attempts}/{desired_count} successes",
                    Logger.LogPriority.INFO
                )
                hit_time_limit = True
                break
            if budget.total_time_s is None and self._check_safety(state, phase_elapsed):
                aborted = True
                break

            state.begin_attempt()
            long_attempt_notice_s = LONG_ATTEMPT_S
            attempt = self.simulator.simulate(
                params,
                iteration_cap=iteration_cap,
                time_limit_s=budget.attempt_time_s,
                on_checkpoint=on_checkpoint
            )
            state.record(attempt)

            if attempt.elapsed_s > LONG_ATTEMPT_S:
                Logger.log(
                    f"Long attempt finished: {attempt.elapsed_s:.1f}s ({attempt.iterations} steps)",
                    Logger.LogPriority.INFO
                )

            since_yield = self.clock() - self._last_yield
            new_milestone = (
                attempt.completed
                and state.successful_attempts % YIELD_EVERY_SUCCESSES == 0
            )
            if since_yield > budget.yield_interval_s or new_milestone:
                self._yield(state, desired_count)

        state.clock.pause()
        if self._stop_event.is_set():
            Logger.log(
                f"Stop request honored after attempt {state.total_attempts}",
                Logger.LogPriority.INFO
            )
        result = BatchResult.from_state(
            state,
            desired_count,
            hit_time_limit=hit_time_limit,
            was_stopped=self._stop_event.is_set(),
            aborted_for_safety=aborted
        )

        Logger.log(
            f"Batch {'stopped' if result.was_stopped else 'finished'} in {phase.value} phase: "
            f"{result.successful_attempts}/{desired_count} successes in {result.total_attempts} attempts "
            f"({result.completion_rate:.1f}% efficiency, {result.elapsed_active_s:.3f}s active)",
            Logger.LogPriority.INFO
        )
        return result

    def seek_with_escalation(
        self,
        desired_count: int,
        params: SimulationParameters,
        start_phase: Phase = Phase.INITIAL
    ) -> BatchResult:
        """
        Run a whole logical seek, escalating phases as budgets run out.

        Returns early, with was_stopped set, if a stop is requested; pass
        that result to continue_batch() to pick up where it left off.
        """
        result = self.seek_successes(desired_count, params, phase=start_phase)
        return self._escalate(result, params)

    def continue_batch(self, result: BatchResult, params: SimulationParameters) -> BatchResult:
        """
        Resume a stopped batch, or escalate one that exhausted its budget.

        Returns `result` unchanged when the seek is already finished.
        """
        next_phase = plan_next_phase(result)
        if next_phase is None:
            return result
        self.resume()
        resumed = self.seek_successes(
            result.desired_count, params, phase=next_phase, continuation=result
        )
        return self._escalate(resumed, params)

    def _escalate(self, result: BatchResult, params: SimulationParameters) -> BatchResult:
        while not result.was_stopped:
            next_phase = plan_next_phase(result)
            if next_phase is None:
                break
            Logger.log(
                f"Escalating from {result.phase.value} to {next_phase.value} phase with "
                f"{result.successful_attempts}/{result.desired_count} successes",
                Logger.LogPriority.INFO
            )
            result = self.seek_successes(
                result.desired_count, params, phase=next_phase, continuation=result
            )
        return result

    def _check_safety(self, state: BatchState, phase_elapsed: float) -> bool:
        """Apply the unlimited-phase wall-time thresholds. True means abort."""
        if phase_elapsed > UNLIMITED_ABORT_S:
            Logger.log(
                f"Stopping unlimited batch after {phase_elapsed:.0f}s for safety "
                f"({state.successful_attempts} successes kept)",
                Logger.LogPriority.CRITICAL
            )
            return True
        if phase_elapsed > UNLIMITED_ADVISORY_S and "advisory" not in state.safety_warnings:
            state.safety_warnings.add("advisory")
            Logger.log(
                f"Unlimited batch running for {phase_elapsed:.0f}s - consider stopping",
                Logger.LogPriority.WARNING
            )
        elif phase_elapsed > UNLIMITED_WARNING_S and "warning" not in state.safety_warnings:
            state.safety_warnings.add("warning")
            Logger.log(
                f"Unlimited batch passed {UNLIMITED_WARNING_S:.0f}s of active time",
                Logger.LogPriority.WARNING
            )
        return False

    def _yield(
        self,
        state: BatchState,
        desired_count: int,
        current_attempt_iterations: Optional[int] = None
    ) -> None:
        progress = ProgressUpdate(
            successful_attempts=state.successful_attempts,
            desired_count=desired_count,
            total_attempts=state.total_attempts,
            elapsed_active_s=state.elapsed_active_s,
            phase=state.phase,
            current_attempt_iterations=current_attempt_iterations
        )
        self._notify(progress)
        if self.yield_point is not None:
            self.yield_point()
        self._last_yield = self.clock()

    def _notify(self, progress: ProgressUpdate) -> None:
        if self.observer is None:
            return
        try:
            self.observer(progress)
        except Exception as ex:
            Logger.log(f"Progress observer failed: {ex!r}", Logger.LogPriority.ERROR)
