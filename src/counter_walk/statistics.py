"""
Scalar summaries of a batch result, plus parameter advice.

Path-length figures are computed over completed runs only; iteration
and timing averages cover every attempt.
"""

import numpy as np
from dataclasses import dataclass, asdict
from typing import List

from .config import SimulationParameters
from .state import BatchResult


HIGH_EFFICIENCY_PERCENT = 80.0


@dataclass(frozen=True)
class RunStatistics:
    """Summary figures for one BatchResult."""
    completion_rate: float
    desired_runs: int
    actual_successes: int
    total_attempts: int
    reached_target: bool
    hit_limit: bool
    avg_length: float
    median_length: int
    max_length: int
    min_length: int
    avg_iterations: float
    avg_run_time_s: float
    elapsed_active_s: float
    phase: str
    has_data: bool

    def to_dict(self) -> dict:
        return asdict(self)


def calculate_stats(result: BatchResult) -> RunStatistics:
    """
    Summarize a batch.

    Median is the upper median (sorted[n // 2]) so it is always an
    observed length.
    """
    if result.completed_runs:
        lengths = np.sort(np.array([len(run) for run in result.completed_runs]))
        avg_length = float(lengths.mean())
        median_length = int(lengths[len(lengths) // 2])
        max_length = int(lengths[-1])
        min_length = int(lengths[0])
    else:
        avg_length = 0.0
        median_length = max_length = min_length = 0

    return RunStatistics(
        completion_rate=result.completion_rate,
        desired_runs=result.desired_count,
        actual_successes=result.successful_attempts,
        total_attempts=result.total_attempts,
        reached_target=result.reached_desired_count,
        hit_limit=result.hit_time_limit,
        avg_length=avg_length,
        median_length=median_length,
        max_length=max_length,
        min_length=min_length,
        avg_iterations=result.average_iterations,
        avg_run_time_s=result.average_run_time_s,
        elapsed_active_s=result.elapsed_active_s,
        phase=result.phase.value,
        has_data=result.has_any_data
    )


def suggest_adjustments(result: BatchResult, params: SimulationParameters) -> List[str]:
    """
    Advice on moving parameters toward a useful success rate.

    Returns:
        Human-readable suggestions; empty when nothing stands out
    """
    suggestions = []

    if not result.has_any_data:
        if params.decay_factor < 0.9:
            suggestions.append(f"increase decay factor ({params.decay_factor} -> 0.95+)")
        if params.initial_prob < 0.5:
            suggestions.append(f"increase initial probability ({params.initial_prob} -> 0.6+)")
        if params.target_value > 25:
            suggestions.append(f"lower target value ({params.target_value} -> 20)")
        if not suggestions:
            suggestions.append("parameters may be too challenging")
        return suggestions

    if result.hit_time_limit and not result.reached_desired_count:
        suggestions.append(
            f"got {result.successful_attempts}/{result.desired_count} successes in "
            f"{result.total_attempts} attempts ({result.completion_rate:.1f}% efficiency); "
            f"consider easier parameters"
        )
        return suggestions

    if result.completion_rate > HIGH_EFFICIENCY_PERCENT:
        if params.decay_factor > 1.0:
            suggestions.append(f"lower decay factor ({params.decay_factor} -> 0.98)")
        if params.initial_prob > 0.7:
            suggestions.append(f"lower initial probability ({params.initial_prob} -> 0.5)")
        if params.target_value < 25:
            suggestions.append(f"increase target ({params.target_value} -> 30+)")

    return suggestions
