"""
Tests for the batch scheduler.

A stub simulator advances a fake clock by a fixed amount per attempt, so
phase budgets, yields and pause/resume can be driven exactly.
"""

import threading

import pytest

from counter_walk.config import SimulationParameters
from counter_walk.exceptions import ConfigValidationError
from counter_walk.random_source import SequenceRandomSource
from counter_walk.scheduler import BatchScheduler, plan_next_phase, YIELD_EVERY_SUCCESSES
from counter_walk.simulator import RunSimulator
from counter_walk.state import (
    AttemptResult, BatchResult, BatchState, Phase, TerminationReason
)
from counter_walk.timing import ActiveClock
from counter_walk.utils.logger import Logger, MemoryStrategy


PARAMS = SimulationParameters(initial_prob=0.5, decay_factor=1.0, target_value=3)


class StubSimulator:
    """Returns canned attempts, each taking `duration` seconds of fake time."""

    def __init__(self, clock, duration, succeed=True):
        self.clock = clock
        self.duration = duration
        self.succeed = succeed
        self.calls = []

    def simulate(self, params, iteration_cap=None, time_limit_s=None, on_checkpoint=None):
        self.calls.append((iteration_cap, time_limit_s))
        self.clock.advance(self.duration)
        if self.succeed:
            return AttemptResult(
                path=(0, 1, 2, 3), completed=True, iterations=3,
                elapsed_s=self.duration, termination_reason=TerminationReason.SUCCESS
            )
        return AttemptResult(
            path=(0, 1, 0), completed=False, iterations=3,
            elapsed_s=self.duration, termination_reason=TerminationReason.ITERATION_LIMIT
        )


def _scheduler(fake_clock, duration, succeed=True, observer=None, yield_point=None):
    return BatchScheduler(
        simulator=StubSimulator(fake_clock, duration, succeed),
        observer=observer,
        yield_point=yield_point,
        clock=fake_clock
    )


class TestSeekSuccesses:
    """Single-phase behavior."""

    def test_stops_at_desired_count(self, fake_clock):
        """Five 50 ms successes finish well inside the 2 s budget."""
        scheduler = _scheduler(fake_clock, 0.05)
        result = scheduler.seek_successes(5, PARAMS, phase=Phase.INITIAL)
        assert result.successful_attempts == 5
        assert result.total_attempts == 5
        assert result.reached_desired_count
        assert not result.hit_time_limit
        assert not result.was_stopped
        assert result.elapsed_active_s == pytest.approx(0.25)
        assert len(result.completed_runs) == 5

    def test_budget_exhaustion(self, fake_clock):
        scheduler = _scheduler(fake_clock, 0.5, succeed=False)
        result = scheduler.seek_successes(5, PARAMS, phase=Phase.INITIAL)
        assert result.hit_time_limit
        assert not result.has_any_data
        assert result.total_attempts == 5
        assert result.total_incomplete == 5
        assert plan_next_phase(result) == Phase.EXTENDED

    def test_phase_caps_passed_to_simulator(self, fake_clock):
        scheduler = _scheduler(fake_clock, 0.05)
        scheduler.seek_successes(1, PARAMS, phase=Phase.EXTENDED)
        assert scheduler.simulator.calls == [(PARAMS.iteration_safety_cap, 2.0)]

    def test_invalid_params_rejected_before_any_attempt(self, fake_clock):
        scheduler = _scheduler(fake_clock, 0.05)
        bad = SimulationParameters(initial_prob=0.0, decay_factor=1.0, target_value=3)
        with pytest.raises(ConfigValidationError):
            scheduler.seek_successes(5, bad)
        assert scheduler.simulator.calls == []

    def test_desired_count_must_be_positive(self, fake_clock):
        with pytest.raises(ValueError):
            _scheduler(fake_clock, 0.05).seek_successes(0, PARAMS)

    def test_attempts_kept_in_issue_order(self, fake_clock):
        simulator = RunSimulator(SequenceRandomSource([0.1, 0.9, 0.1, 0.1, 0.1]), clock=fake_clock)
        scheduler = BatchScheduler(simulator=simulator, clock=fake_clock)
        params = SimulationParameters(initial_prob=0.5, decay_factor=1.0, target_value=2)
        result = scheduler.seek_successes(2, params)
        assert [a.path for a in result.all_attempts] == [(0, 1, 0, 1, 2), (0, 1, 2)]


class TestEscalation:
    """Phase progression across a logical seek."""

    def test_escalates_to_extended(self, fake_clock):
        scheduler = _scheduler(fake_clock, 0.5, succeed=False)
        first = scheduler.seek_successes(3, PARAMS, phase=Phase.INITIAL)
        second = scheduler.seek_successes(3, PARAMS, phase=Phase.EXTENDED, continuation=first)
        assert first.total_attempts == 5
        assert second.total_attempts == 5 + 21
        assert second.phase == Phase.EXTENDED
        assert second.phase_elapsed_s == pytest.approx(10.5)
        assert second.elapsed_active_s == pytest.approx(13.0)
        # Earlier result is untouched by the continuation
        assert first.total_attempts == 5
        assert len(first.all_attempts) == 5

    def test_unlimited_phase_aborts_for_safety(self, fake_clock, memory_log):
        scheduler = _scheduler(fake_clock, 10.0, succeed=False)
        result = scheduler.seek_with_escalation(3, PARAMS)
        assert result.phase == Phase.UNLIMITED
        assert result.aborted_for_safety
        assert not result.hit_time_limit
        assert result.total_attempts == 1 + 2 + 31
        assert len(memory_log.messages("WARNING")) == 2
        assert len(memory_log.messages("CRITICAL")) == 1
        assert plan_next_phase(result) is None

    def test_unlimited_phase_lifts_iteration_cap(self, fake_clock):
        scheduler = _scheduler(fake_clock, 10.0, succeed=False)
        scheduler.seek_with_escalation(1, PARAMS)
        iteration_caps = {cap for cap, _ in scheduler.simulator.calls}
        assert PARAMS.iteration_safety_cap in iteration_caps
        assert max(iteration_caps) > PARAMS.iteration_safety_cap

    def test_escalation_keeps_successes(self, fake_clock):
        outcomes = iter([True] + [False] * 5 + [True, True])

        class MixedSimulator(StubSimulator):
            def simulate(self, params, **kwargs):
                self.succeed = next(outcomes)
                return super().simulate(params, **kwargs)

        scheduler = BatchScheduler(simulator=MixedSimulator(fake_clock, 0.5), clock=fake_clock)
        result = scheduler.seek_with_escalation(3, PARAMS)
        assert result.reached_desired_count
        assert result.phase == Phase.EXTENDED
        assert result.successful_attempts == 3
        assert result.total_attempts == 8

    def test_phase_cannot_regress(self, fake_clock):
        scheduler = _scheduler(fake_clock, 0.05)
        result = scheduler.seek_successes(2, PARAMS, phase=Phase.EXTENDED)
        with pytest.raises(ValueError):
            scheduler.seek_successes(4, PARAMS, phase=Phase.INITIAL, continuation=result)


class TestPauseResume:
    """Stop requests, continuation and active time."""

    def test_stop_and_continue(self, fake_clock):
        stopped = []

        def observer(progress):
            if progress.successful_attempts >= 3 and not stopped:
                stopped.append(progress.successful_attempts)
                scheduler.request_stop()

        scheduler = _scheduler(fake_clock, 0.3, observer=observer)
        paused = scheduler.seek_with_escalation(5, PARAMS)
        assert paused.was_stopped
        assert paused.successful_attempts == 3
        assert paused.total_attempts == 3
        assert plan_next_phase(paused) == Phase.INITIAL

        fake_clock.advance(100.0)
        final = scheduler.continue_batch(paused, PARAMS)

        assert final.reached_desired_count
        assert final.successful_attempts == 5
        assert final.total_attempts == 5
        assert final.elapsed_active_s == pytest.approx(1.5)
        assert paused.successful_attempts == 3

        clock = final.state.clock
        total_paused = sum(end - start for start, end in clock.paused_intervals)
        assert total_paused == pytest.approx(100.0)
        assert final.elapsed_active_s == pytest.approx(clock.wall_elapsed() - total_paused)

    def test_resume_clears_flag(self, fake_clock):
        scheduler = _scheduler(fake_clock, 0.05)
        scheduler.request_stop()
        assert scheduler.stop_requested
        scheduler.resume()
        assert not scheduler.stop_requested

    def test_continue_finished_batch_is_noop(self, fake_clock):
        scheduler = _scheduler(fake_clock, 0.05)
        result = scheduler.seek_successes(2, PARAMS)
        assert scheduler.continue_batch(result, PARAMS) is result


class TestYieldingAndProgress:
    """Yield points and observer isolation."""

    def test_yield_every_second_success(self, fake_clock):
        updates = []
        yields = []
        scheduler = _scheduler(
            fake_clock, 0.01, observer=updates.append, yield_point=lambda: yields.append(1)
        )
        scheduler.seek_successes(6, PARAMS)
        assert YIELD_EVERY_SUCCESSES == 2
        assert [u.successful_attempts for u in updates] == [2, 4, 6]
        assert len(yields) == 3
        assert all(u.desired_count == 6 for u in updates)

    def test_yield_after_interval(self, fake_clock):
        updates = []
        scheduler = _scheduler(fake_clock, 0.3, succeed=False, observer=updates.append)
        scheduler.seek_successes(1, PARAMS)
        # Every 0.3 s failure exceeds the 0.25 s yield interval
        assert len(updates) == len(scheduler.simulator.calls) == 7
        assert [u.total_attempts for u in updates] == list(range(1, len(updates) + 1))

    def test_mid_attempt_progress(self, fake_clock):
        updates = []

        def observer(progress):
            updates.append(progress)
            scheduler.request_stop()

        params = SimulationParameters(
            initial_prob=0.001, decay_factor=1.0, target_value=50, iteration_safety_cap=5000
        )
        simulator = RunSimulator(SequenceRandomSource([0.99]), clock=fake_clock)
        scheduler = BatchScheduler(simulator=simulator, observer=observer, clock=fake_clock)
        result = scheduler.seek_successes(1, params)

        assert [u.current_attempt_iterations for u in updates] == [1000, 2000, 3000, 4000]
        assert all(u.total_attempts == 1 for u in updates)
        assert result.was_stopped
        assert result.total_attempts == 1

    def test_observer_errors_are_isolated(self, fake_clock, memory_log):
        def observer(progress):
            raise RuntimeError("display went away")

        scheduler = _scheduler(fake_clock, 0.05, observer=observer)
        result = scheduler.seek_successes(4, PARAMS)
        assert result.reached_desired_count
        errors = memory_log.messages("ERROR")
        assert len(errors) == 2
        assert "display went away" in errors[0]


class TestPlanNextPhase:
    """Pure phase planning."""

    def _result(self, fake_clock, phase, **flags):
        state = BatchState(phase=phase, clock=ActiveClock(fake_clock))
        return BatchResult.from_state(state, desired_count=3, **flags)

    def test_time_limit_moves_forward(self, fake_clock):
        assert plan_next_phase(self._result(fake_clock, Phase.INITIAL, hit_time_limit=True)) == Phase.EXTENDED
        assert plan_next_phase(self._result(fake_clock, Phase.EXTENDED, hit_time_limit=True)) == Phase.UNLIMITED
        assert plan_next_phase(self._result(fake_clock, Phase.UNLIMITED, hit_time_limit=True)) is None

    def test_stop_stays_in_phase(self, fake_clock):
        assert plan_next_phase(self._result(fake_clock, Phase.EXTENDED, was_stopped=True)) == Phase.EXTENDED

    def test_abort_is_final(self, fake_clock):
        assert plan_next_phase(self._result(fake_clock, Phase.UNLIMITED, aborted_for_safety=True)) is None


class TickingSource:
    """Always draws 0.99 and advances the fake clock on every draw."""

    def __init__(self, clock, seconds_per_draw):
        self.clock = clock
        self.seconds_per_draw = seconds_per_draw

    def uniform(self):
        self.clock.advance(self.seconds_per_draw)
        return 0.99


STUCK_PARAMS = SimulationParameters(
    initial_prob=0.001, decay_factor=1.0, target_value=50, iteration_safety_cap=5000
)


class TestStopRequests:
    """Budget carried across a resume, and stop requests at awkward moments."""

    def test_resumed_phase_keeps_consumed_budget(self, fake_clock, memory_log):
        stopped = []

        def observer(progress):
            if progress.total_attempts == 6 and not stopped:
                stopped.append(True)
                scheduler.request_stop()

        scheduler = _scheduler(fake_clock, 0.3, succeed=False, observer=observer)
        paused = scheduler.seek_successes(3, PARAMS, phase=Phase.INITIAL)
        assert paused.was_stopped
        assert not paused.hit_time_limit
        assert paused.total_attempts == 6
        assert paused.phase_elapsed_s == pytest.approx(1.8)
        assert any("Stop request honored after attempt 6" in m for m in memory_log.messages("INFO"))

        fake_clock.advance(50.0)
        scheduler.resume()
        resumed = scheduler.seek_successes(3, PARAMS, phase=Phase.INITIAL, continuation=paused)

        # One more 0.3 s attempt exhausts the 2 s budget started before the stop
        assert resumed.hit_time_limit
        assert resumed.total_attempts == 7
        assert resumed.phase_elapsed_s == pytest.approx(2.1)
        assert resumed.elapsed_active_s == pytest.approx(2.1)
        assert plan_next_phase(resumed) == Phase.EXTENDED

    def test_stop_mid_attempt_pauses_budget(self, fake_clock):
        stopped = []

        def observer(progress):
            if not stopped:
                stopped.append(progress.current_attempt_iterations)
                scheduler.request_stop()

        simulator = RunSimulator(TickingSource(fake_clock, 0.0001), clock=fake_clock)
        scheduler = BatchScheduler(simulator=simulator, observer=observer, clock=fake_clock)
        result = scheduler.seek_successes(1, STUCK_PARAMS)

        assert stopped == [1000]
        assert result.was_stopped
        assert result.total_attempts == 1
        # The attempt runs on to its cap, but only the first 1000 draws count
        assert result.all_attempts[0].elapsed_s == pytest.approx(0.5)
        assert result.all_attempts[0].termination_reason == TerminationReason.ITERATION_LIMIT
        assert result.elapsed_active_s == pytest.approx(0.1)
        assert result.phase_elapsed_s == pytest.approx(0.1)

    def test_stop_during_log_write_does_not_block(self, fake_clock):
        scheduler = _scheduler(fake_clock, 0.05)

        class InterruptingStorage(MemoryStrategy):
            """Requests a stop while Logger holds its lock, as SIGINT can."""

            def store_log(self, message, priority, timestamp):
                super().store_log(message, priority, timestamp)
                scheduler.request_stop()

        storage = InterruptingStorage()
        Logger.set_log_storage_strategy(storage)
        writer = threading.Thread(target=Logger.log, args=("Long attempt in progress",), daemon=True)
        writer.start()
        writer.join(timeout=3)

        assert not writer.is_alive()
        assert scheduler.stop_requested
        assert storage.messages() == ["Long attempt in progress"]

    def test_stop_after_resume_is_honored_by_continuation(self, fake_clock):
        stopped = []

        def observer(progress):
            if progress.successful_attempts >= 2 and not stopped:
                stopped.append(True)
                scheduler.request_stop()

        scheduler = _scheduler(fake_clock, 0.3, observer=observer)
        paused = scheduler.seek_successes(5, PARAMS)
        assert paused.total_attempts == 2

        scheduler.resume()
        scheduler.request_stop()
        resumed = scheduler.seek_successes(5, PARAMS, phase=paused.phase, continuation=paused)

        assert resumed.was_stopped
        assert resumed.total_attempts == 2
        assert len(scheduler.simulator.calls) == 2

    def test_fresh_seek_drops_stale_stop(self, fake_clock):
        scheduler = _scheduler(fake_clock, 0.05)
        scheduler.request_stop()
        result = scheduler.seek_successes(2, PARAMS)
        assert result.reached_desired_count
        assert not result.was_stopped

    def test_long_attempt_notices_are_throttled(self, fake_clock, memory_log):
        stopped = []

        def observer(progress):
            if not stopped:
                stopped.append(True)
                scheduler.request_stop()

        # 4.5 s per 1000 draws: checkpoints at 4.5, 9, ..., 27 s; the 30 s cap ends it at 31.5 s
        simulator = RunSimulator(TickingSource(fake_clock, 0.0045), clock=fake_clock)
        scheduler = BatchScheduler(simulator=simulator, observer=observer, clock=fake_clock)
        result = scheduler.seek_successes(1, STUCK_PARAMS, phase=Phase.UNLIMITED)

        assert result.all_attempts[0].termination_reason == TerminationReason.TIME_LIMIT
        assert result.all_attempts[0].iterations == 7000
        notices = [m for m in memory_log.messages() if m.startswith("Long attempt in progress")]
        assert len(notices) == 2
        assert "13.5s" in notices[0]
        assert "22.5s" in notices[1]
