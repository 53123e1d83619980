"""
Configuration loading and validation for counter walk simulations.

Loads a YAML config and checks every parameter against its documented
range before any simulation starts. Validation collects every problem
instead of stopping at the first, so callers can show the full list.
"""

import yaml
from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict
from pathlib import Path

from .exceptions import ConfigValidationError
from .scaling import COLOR_SCALINGS
from .density import VISUALIZATION_MODES


DEFAULT_ITERATION_SAFETY_CAP = 10_000_000

MIN_TARGET_VALUE = 1
MAX_TARGET_VALUE = 100
MIN_DESIRED_SUCCESSES = 1
MAX_DESIRED_SUCCESSES = 5000


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class SimulationParameters:
    """
    Parameters of the state-dependent walk.

    The up-probability at counter value c is
    initial_prob * decay_factor ** c, clamped to [0, 1].
    """
    initial_prob: float
    decay_factor: float
    target_value: int
    iteration_safety_cap: int = DEFAULT_ITERATION_SAFETY_CAP

    def validate(self) -> tuple[bool, list[str]]:
        errors = []
        if not _is_number(self.initial_prob) or not 0 < self.initial_prob <= 1:
            errors.append("Initial probability must be between 0 and 1")
        if not _is_number(self.decay_factor) or not 0 < self.decay_factor <= 2:
            errors.append("Decay factor must be between 0 and 2")
        if not _is_int(self.target_value) or not MIN_TARGET_VALUE <= self.target_value <= MAX_TARGET_VALUE:
            errors.append(
                f"Target value must be between {MIN_TARGET_VALUE} and {MAX_TARGET_VALUE}"
            )
        if not _is_int(self.iteration_safety_cap) or self.iteration_safety_cap < 1:
            errors.append("Iteration safety cap must be a positive integer")
        return not errors, errors

    def up_probability(self, counter: int) -> float:
        """Clamped probability of stepping up from `counter`."""
        p_up = self.initial_prob * self.decay_factor ** counter
        return max(0.0, min(1.0, p_up))


@dataclass
class BatchConfig:
    """How many successes to seek and how to seed the random source."""
    desired_successes: int = 100
    seed: Optional[int] = 42
    auto_escalate: bool = True

    def validate(self) -> tuple[bool, list[str]]:
        errors = []
        if (not _is_int(self.desired_successes)
                or not MIN_DESIRED_SUCCESSES <= self.desired_successes <= MAX_DESIRED_SUCCESSES):
            errors.append(
                f"Number of runs must be between {MIN_DESIRED_SUCCESSES} and {MAX_DESIRED_SUCCESSES}"
            )
        if self.seed is not None and (not _is_int(self.seed) or self.seed < 0):
            errors.append("seed must be a non-negative integer or null")
        return not errors, errors


@dataclass
class VisualizationConfig:
    """Display preferences. Changing these never requires re-simulation."""
    mode: Literal["full", "peak", "lines", "combined"] = "full"
    color_scaling: Literal["linear", "sqrt", "log", "percentile"] = "linear"

    def validate(self) -> tuple[bool, list[str]]:
        errors = []
        if self.mode not in VISUALIZATION_MODES:
            errors.append(
                f"Visualization mode must be one of: {', '.join(VISUALIZATION_MODES)}"
            )
        if self.color_scaling not in COLOR_SCALINGS:
            errors.append(
                f"Color scaling must be one of: {', '.join(COLOR_SCALINGS)}"
            )
        return not errors, errors


@dataclass
class OutputConfig:
    """Output configuration."""
    out_dir: str = "output"
    run_name: str = "counter_walk_run"
    export_png: bool = True

    def validate(self) -> tuple[bool, list[str]]:
        errors = []
        if not self.run_name:
            errors.append("run_name must not be empty")
        return not errors, errors


@dataclass
class RunConfig:
    """Complete configuration for one CLI run."""
    simulation: SimulationParameters
    batch: BatchConfig = field(default_factory=BatchConfig)
    visualization: VisualizationConfig = field(default_factory=VisualizationConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def validate(self) -> tuple[bool, list[str]]:
        errors = []
        for section_name in ["simulation", "batch", "visualization", "output"]:
            section = getattr(self, section_name)
            _, section_errors = section.validate()
            errors.extend(f"{section_name}: {error}" for error in section_errors)
        return not errors, errors


def validate_parameters(params: SimulationParameters) -> SimulationParameters:
    """
    Check simulation parameters once, before any run starts.

    Raises:
        ConfigValidationError: With every failing check in `.errors`.
    """
    is_valid, errors = params.validate()
    if not is_valid:
        raise ConfigValidationError(errors)
    return params


def config_from_dict(raw: Optional[Dict[str, Any]]) -> RunConfig:
    """
    Build and validate a RunConfig from a plain dict (e.g. parsed YAML).

    Missing sections and keys fall back to defaults.

    Raises:
        ConfigValidationError: If any value is out of range.
    """
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigValidationError(["configuration must be a mapping of sections"])
    for section_name in ["simulation", "batch", "visualization", "output"]:
        if not isinstance(raw.get(section_name) or {}, dict):
            raise ConfigValidationError([f"{section_name}: section must be a mapping"])

    sim_raw = raw.get("simulation", {}) or {}
    simulation = SimulationParameters(
        initial_prob=sim_raw.get("initial_prob", 0.5),
        decay_factor=sim_raw.get("decay_factor", 0.95),
        target_value=sim_raw.get("target_value", 20),
        iteration_safety_cap=sim_raw.get("iteration_safety_cap", DEFAULT_ITERATION_SAFETY_CAP)
    )

    batch_raw = raw.get("batch", {}) or {}
    batch = BatchConfig(
        desired_successes=batch_raw.get("desired_successes", 100),
        seed=batch_raw.get("seed", 42),
        auto_escalate=batch_raw.get("auto_escalate", True)
    )

    vis_raw = raw.get("visualization", {}) or {}
    visualization = VisualizationConfig(
        mode=vis_raw.get("mode", "full"),
        color_scaling=vis_raw.get("color_scaling", "linear")
    )

    out_raw = raw.get("output", {}) or {}
    output = OutputConfig(
        out_dir=out_raw.get("out_dir", "output"),
        run_name=out_raw.get("run_name", "counter_walk_run"),
        export_png=out_raw.get("export_png", True)
    )

    config = RunConfig(
        simulation=simulation,
        batch=batch,
        visualization=visualization,
        output=output
    )

    is_valid, errors = config.validate()
    if not is_valid:
        raise ConfigValidationError(errors)

    return config


def read_config_dict(path: Path) -> Dict[str, Any]:
    """
    Parse a YAML config file without validating it.

    Raises:
        FileNotFoundError: If file doesn't exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, 'r') as f:
        raw = yaml.safe_load(f)
    return raw or {}


def load_config(path: Path) -> RunConfig:
    """
    Load and validate configuration from YAML file.

    Raises:
        ConfigValidationError: If config is invalid.
        FileNotFoundError: If file doesn't exist.
    """
    return config_from_dict(read_config_dict(path))


def config_to_dict(config: RunConfig) -> dict:
    """Convert config to a serializable dict (inverse of config_from_dict)."""
    return {
        "simulation": {
            "initial_prob": config.simulation.initial_prob,
            "decay_factor": config.simulation.decay_factor,
            "target_value": config.simulation.target_value,
            "iteration_safety_cap": config.simulation.iteration_safety_cap
        },
        "batch": {
            "desired_successes": config.batch.desired_successes,
            "seed": config.batch.seed,
            "auto_escalate": config.batch.auto_escalate
        },
        "visualization": {
            "mode": config.visualization.mode,
            "color_scaling": config.visualization.color_scaling
        },
        "output": {
            "out_dir": config.output.out_dir,
            "run_name": config.output.run_name,
            "export_png": config.output.export_png
        }
    }
