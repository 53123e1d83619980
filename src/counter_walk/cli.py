"""
Command-line interface for counter walk batches.

Usage:
    counter-walk --preset balanced --runs 200 --target 30 --out output/
    counter-walk --config examples/classic.yaml --scaling log
    python -m counter_walk.cli --list-presets

Ctrl-C stops the batch after the current attempt; whatever finished is
still summarized and exported.
"""

import argparse
import signal
import sys
from pathlib import Path

import yaml

from .config import config_from_dict, read_config_dict
from .density import VISUALIZATION_MODES
from .exceptions import ConfigValidationError, UnknownPresetError
from .exporters import export_results
from .heatmap import create_heatmap
from .presets import PRESETS, get_preset
from .random_source import NumpyRandomSource
from .scaling import COLOR_SCALINGS
from .scheduler import BatchScheduler
from .simulator import RunSimulator
from .state import Phase
from .statistics import calculate_stats, suggest_adjustments
from .utils.logger.logger import Logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="counter-walk",
        description="Simulate state-dependent counter walks and build density heatmaps"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to YAML configuration file"
    )
    parser.add_argument(
        "--preset", "-p",
        type=str,
        default=None,
        help="Named parameter preset (see --list-presets)"
    )
    parser.add_argument("--runs", type=int, default=None, help="Number of successful runs to collect")
    parser.add_argument("--target", type=int, default=None, help="Target counter value")
    parser.add_argument("--initial-prob", type=float, default=None, help="Up-probability at counter 0")
    parser.add_argument("--decay", type=float, default=None, help="Per-step decay factor")
    parser.add_argument("--mode", choices=VISUALIZATION_MODES, default=None, help="Visualization mode")
    parser.add_argument("--scaling", choices=COLOR_SCALINGS, default=None, help="Color scaling")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--no-escalate",
        action="store_true",
        help="Stay in the initial phase instead of extending the time budget"
    )
    parser.add_argument(
        "--out", "-o",
        type=Path,
        default=None,
        help="Output directory (overrides config)"
    )
    parser.add_argument(
        "--name", "-n",
        type=str,
        default=None,
        help="Run name (overrides config)"
    )
    parser.add_argument("--no-png", action="store_true", help="Skip the heatmap figure")
    parser.add_argument("--list-presets", action="store_true", help="List presets and exit")
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress output except errors"
    )
    return parser


def _apply_overrides(raw: dict, args: argparse.Namespace) -> dict:
    """Layer preset and command-line values over the file config."""
    merged = {
        section: dict(raw.get(section) or {})
        for section in ["simulation", "batch", "visualization", "output"]
    }
    sim = merged["simulation"]

    if args.preset is not None:
        preset = get_preset(args.preset)
        sim["initial_prob"] = preset.initial_prob
        sim["decay_factor"] = preset.decay_factor

    overrides = [
        (sim, "initial_prob", args.initial_prob),
        (sim, "decay_factor", args.decay),
        (sim, "target_value", args.target),
        (merged["batch"], "desired_successes", args.runs),
        (merged["batch"], "seed", args.seed),
        (merged["visualization"], "mode", args.mode),
        (merged["visualization"], "color_scaling", args.scaling),
        (merged["output"], "run_name", args.name),
    ]
    for section, key, value in overrides:
        if value is not None:
            section[key] = value
    if args.out is not None:
        merged["output"]["out_dir"] = str(args.out)
    if args.no_escalate:
        merged["batch"]["auto_escalate"] = False
    if args.no_png:
        merged["output"]["export_png"] = False
    return merged


def _print_presets() -> None:
    width = max(len(name) for name in PRESETS)
    for name, preset in PRESETS.items():
        print(f"  {name:<{width}}  p0={preset.initial_prob:<4} decay={preset.decay_factor:<4}  "
              f"{preset.description}")


def main(argv=None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    args = build_parser().parse_args(argv)

    if args.list_presets:
        _print_presets()
        return 0

    try:
        raw = read_config_dict(args.config) if args.config is not None else {}
        config = config_from_dict(_apply_overrides(raw, args))
    except FileNotFoundError:
        print(f"Error: Config file not found: {args.config}", file=sys.stderr)
        return 1
    except yaml.YAMLError as e:
        print(f"Error: Could not parse config: {e}", file=sys.stderr)
        return 1
    except UnknownPresetError as e:
        print(f"Error: {e.args[0]}. Available: {', '.join(PRESETS)}", file=sys.stderr)
        return 1
    except ConfigValidationError as e:
        print("Error: Invalid configuration:", file=sys.stderr)
        for error in e.errors:
            print(f"  - {error}", file=sys.stderr)
        return 1

    Logger.initialize()
    params = config.simulation
    Logger.log(
        f"CLI run: p0={params.initial_prob}, decay={params.decay_factor}, "
        f"target={params.target_value}, runs={config.batch.desired_successes}, seed={config.batch.seed}",
        Logger.LogPriority.INFO
    )

    def report(progress):
        print(
            f"\r  [{progress.phase.value}] {progress.successful_attempts}/{progress.desired_count} "
            f"successes, {progress.total_attempts} attempts, {progress.elapsed_active_s:.1f}s",
            end="",
            flush=True
        )

    scheduler = BatchScheduler(
        simulator=RunSimulator(NumpyRandomSource(config.batch.seed)),
        observer=None if args.quiet else report
    )

    if not args.quiet:
        print("Running counter walk batch...")
        print(f"  Initial probability: {params.initial_prob}")
        print(f"  Decay factor: {params.decay_factor}")
        print(f"  Target value: {params.target_value}")
        print(f"  Desired successes: {config.batch.desired_successes}")

    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: scheduler.request_stop())
    try:
        if config.batch.auto_escalate:
            result = scheduler.seek_with_escalation(config.batch.desired_successes, params)
        else:
            result = scheduler.seek_successes(config.batch.desired_successes, params, phase=Phase.INITIAL)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    stats = calculate_stats(result)
    heatmap = create_heatmap(
        result.completed_runs,
        config.visualization.color_scaling,
        config.visualization.mode,
        params.target_value
    )
    paths = export_results(
        result, heatmap, config,
        Path(config.output.out_dir), config.output.run_name,
        export_png=config.output.export_png
    )

    if not args.quiet:
        print()
        print()
        print("=" * 50)
        if result.was_stopped:
            print("BATCH STOPPED")
        elif result.aborted_for_safety:
            print("BATCH ABORTED (SAFETY LIMIT)")
        else:
            print("BATCH COMPLETE")
        print("=" * 50)
        print(f"  Successes: {stats.actual_successes}/{stats.desired_runs}")
        print(f"  Attempts: {stats.total_attempts} ({stats.completion_rate:.1f}% efficiency)")
        print(f"  Phase reached: {stats.phase}")
        print(f"  Active time: {stats.elapsed_active_s:.2f} s")
        if stats.has_data:
            print(f"  Path length: mean {stats.avg_length:.0f}, median {stats.median_length}, "
                  f"min {stats.min_length}, max {stats.max_length}")
        for suggestion in suggest_adjustments(result, params):
            print(f"  Suggestion: {suggestion}")
        print()
        print("Output files:")
        for name, path in paths.items():
            print(f"  {name}: {path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
