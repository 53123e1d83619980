"""
Named parameter combinations for common walk behaviors.

Each preset fixes initial_prob and decay_factor; the target value stays
a free choice of the caller.
"""

from dataclasses import dataclass
from typing import Dict, List

from .config import DEFAULT_ITERATION_SAFETY_CAP, SimulationParameters
from .exceptions import UnknownPresetError


@dataclass(frozen=True)
class Preset:
    """
    A curated parameter preset.

    Attributes:
        name: Short identifier (e.g., "classic-easy")
        display_name: Human-readable name
        initial_prob: Up-probability at counter 0
        decay_factor: Per-step multiplier of the up-probability
        description: What this preset demonstrates
    """
    name: str
    display_name: str
    initial_prob: float
    decay_factor: float
    description: str

    def to_parameters(
        self,
        target_value: int,
        iteration_safety_cap: int = DEFAULT_ITERATION_SAFETY_CAP
    ) -> SimulationParameters:
        return SimulationParameters(
            initial_prob=self.initial_prob,
            decay_factor=self.decay_factor,
            target_value=target_value,
            iteration_safety_cap=iteration_safety_cap
        )


PRESETS: Dict[str, Preset] = {}


def _register_preset(preset: Preset) -> None:
    """Register a preset in the global registry."""
    PRESETS[preset.name] = preset


_register_preset(Preset(
    name="classic-easy",
    display_name="Classic Easy",
    initial_prob=0.6,
    decay_factor=0.95,
    description="Easier starting probability with traditional decay; good for quick results"
))

_register_preset(Preset(
    name="classic-hard",
    display_name="Classic Hard",
    initial_prob=0.5,
    decay_factor=0.95,
    description="Traditional diminishing returns; shows why high values are hard to reach under decay"
))

_register_preset(Preset(
    name="balanced",
    display_name="Balanced",
    initial_prob=0.7,
    decay_factor=0.98,
    description="Reasonable difficulty curve; good for seeing typical probability patterns"
))

_register_preset(Preset(
    name="accelerating",
    display_name="Slow Start, Accelerating",
    initial_prob=0.3,
    decay_factor=1.05,
    description="Initially challenging, becomes easier; demonstrates momentum effects"
))

_register_preset(Preset(
    name="fast-decay",
    display_name="Fast Start, Decaying",
    initial_prob=0.9,
    decay_factor=0.90,
    description="Strong start but rapid difficulty increase"
))

_register_preset(Preset(
    name="extreme-acceleration",
    display_name="Extreme Acceleration",
    initial_prob=0.1,
    decay_factor=1.15,
    description="Nearly impossible start, exponential improvement; shows sharp phase transitions"
))


def list_presets() -> List[str]:
    """List available preset names in registration order."""
    return list(PRESETS.keys())


def get_preset(name: str) -> Preset:
    """
    Get a preset by name.

    Raises:
        UnknownPresetError: If preset not found.
    """
    if name not in PRESETS:
        raise UnknownPresetError(name)
    return PRESETS[name]


def get_preset_display_names() -> Dict[str, str]:
    """Mapping of preset names to display names."""
    return {name: p.display_name for name, p in PRESETS.items()}


__all__ = [
    "Preset",
    "PRESETS",
    "list_presets",
    "get_preset",
    "get_preset_display_names",
]
