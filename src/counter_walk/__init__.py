"""
Counter Walk - batch simulation of state-dependent random walks.

A counter starts at 0 and steps up with probability
initial_prob * decay_factor ** counter (clamped to [0, 1]), otherwise
down with a floor at 0, until it reaches a target value. Batches of
successful runs are collected under a tiered time budget and aggregated
into counter-value x time density heatmaps.
"""

__version__ = "0.1.0"

# Simulation core
from .config import (
    SimulationParameters,
    BatchConfig,
    VisualizationConfig,
    OutputConfig,
    RunConfig,
    validate_parameters,
    config_from_dict,
    load_config
)
from .random_source import RandomSource, NumpyRandomSource, SequenceRandomSource
from .state import (
    AttemptResult,
    BatchResult,
    BatchState,
    Phase,
    ProgressUpdate,
    TerminationReason,
    path_is_valid
)
from .simulator import RunSimulator, simulate_run
from .scheduler import BatchScheduler, plan_next_phase

# Aggregation and presentation
from .density import DensityGrid, build_density, aggregation_mode_for
from .scaling import normalize, normalize_alpha
from .heatmap import CellInfo, HeatmapData, create_heatmap, heatmap_color
from .statistics import RunStatistics, calculate_stats, suggest_adjustments

from .exceptions import ConfigValidationError, UnknownPresetError, UnknownModeError
