"""
Export batch results to CSV, JSON and PNG.

attempts CSV columns (exact schema):
    attempt, completed, iterations, path_length, elapsed_s, termination_reason

density CSV columns (long format, non-empty cells only):
    counter_value, time_bin, vertical, horizontal, color, alpha
"""

import json
import subprocess
from datetime import datetime
from pathlib import Path
from typing import Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .config import RunConfig, config_to_dict
from .heatmap import HeatmapData, heatmap_rgba
from .state import BatchResult
from .statistics import calculate_stats
from .utils.logger.logger import Logger


ATTEMPT_COLUMNS = [
    "attempt",
    "completed",
    "iterations",
    "path_length",
    "elapsed_s",
    "termination_reason"
]

DENSITY_COLUMNS = [
    "counter_value",
    "time_bin",
    "vertical",
    "horizontal",
    "color",
    "alpha"
]

# Raw-path overlays are thinned to at most this many points per run.
MAX_LINE_POINTS = 5000


def export_attempts_csv(result: BatchResult, path: Path) -> None:
    """
    Export one row per attempt, in issue order.

    Args:
        result: Batch result.
        path: Output CSV path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows = [
        {
            "attempt": i + 1,
            "completed": int(attempt.completed),
            "iterations": attempt.iterations,
            "path_length": len(attempt.path),
            "elapsed_s": attempt.elapsed_s,
            "termination_reason": attempt.termination_reason.value
        }
        for i, attempt in enumerate(result.all_attempts)
    ]
    pd.DataFrame(rows, columns=ATTEMPT_COLUMNS).to_csv(path, index=False)


def export_density_csv(heatmap: HeatmapData, path: Path) -> None:
    """
    Export the non-empty cells of a heatmap in long format.

    Args:
        heatmap: Assembled heatmap.
        path: Output CSV path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    ys, xs = np.nonzero((heatmap.raw_vertical > 0) | (heatmap.raw_horizontal > 0))
    df = pd.DataFrame({
        "counter_value": ys,
        "time_bin": xs,
        "vertical": heatmap.raw_vertical[ys, xs],
        "horizontal": heatmap.raw_horizontal[ys, xs],
        "color": heatmap.color[ys, xs],
        "alpha": heatmap.alpha[ys, xs]
    }, columns=DENSITY_COLUMNS)
    df.to_csv(path, index=False)


def get_git_commit() -> Optional[str]:
    """Get current git commit hash if available."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5
        )
        if result.returncode == 0:
            return result.stdout.strip()[:12]
    except (OSError, subprocess.SubprocessError):
        return None
    return None


def export_metadata(result: BatchResult, config: RunConfig, path: Path) -> None:
    """
    Export metadata JSON with config and summary statistics.

    Args:
        result: Batch result.
        config: Configuration the batch ran with.
        path: Output JSON path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    metadata = {
        "timestamp": datetime.now().isoformat(),
        "git_commit": get_git_commit(),
        "config": config_to_dict(config),
        "summary": calculate_stats(result).to_dict(),
        "outcome": {
            "was_stopped": result.was_stopped,
            "aborted_for_safety": result.aborted_for_safety,
            "total_incomplete": result.total_incomplete
        }
    }

    with open(path, 'w') as f:
        json.dump(metadata, f, indent=2)


def export_heatmap_png(heatmap: HeatmapData, runs, path: Path, title: Optional[str] = None) -> None:
    """
    Render the heatmap (and raw-path overlay, by mode) to a PNG.

    "full" and "peak" draw the grid, "lines" draws only the raw paths and
    "combined" draws both.

    Args:
        heatmap: Assembled heatmap.
        runs: Completed run paths, used for the line overlay.
        path: Output PNG path.
        title: Figure title.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    mode = heatmap.visualization_mode
    fig, ax = plt.subplots(figsize=(10, 6))

    if heatmap.is_empty:
        ax.text(0.5, 0.5, "No completed runs to display", ha="center", va="center",
                transform=ax.transAxes)
        ax.set_axis_off()
    else:
        extent = (0, heatmap.max_length, 0, heatmap.grid_height)
        if mode in ("full", "peak", "combined"):
            ax.imshow(heatmap_rgba(heatmap), origin="lower", aspect="auto",
                      extent=extent, interpolation="nearest")
        if mode in ("lines", "combined"):
            line_alpha = 0.02 if mode == "combined" else 0.05
            for run in runs:
                stride = max(1, len(run) // MAX_LINE_POINTS)
                ax.plot(np.arange(0, len(run), stride), np.asarray(run)[::stride],
                        color="purple", alpha=line_alpha, linewidth=1)
        ax.set_xlim(0, heatmap.max_length)
        ax.set_ylim(0, heatmap.grid_height)
        ax.set_xlabel("Time step")
        ax.set_ylabel("Counter value")

    if title:
        ax.set_title(title)

    plt.tight_layout()
    plt.savefig(path, dpi=300, bbox_inches='tight', facecolor='white')
    plt.close(fig)


def export_results(
    result: BatchResult,
    heatmap: HeatmapData,
    config: RunConfig,
    out_dir: Path,
    run_name: str,
    export_png: bool = True
) -> dict:
    """
    Export all results to output directory.

    Args:
        result: Batch result.
        heatmap: Heatmap built from result.completed_runs.
        config: Configuration the batch ran with.
        out_dir: Output directory.
        run_name: Base name for output files.
        export_png: Also render the heatmap figure.

    Returns:
        Dict with paths to exported files.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    paths = {
        "attempts": out_dir / f"{run_name}_attempts.csv",
        "density": out_dir / f"{run_name}_density.csv",
        "metadata": out_dir / f"{run_name}_metadata.json",
    }

    export_attempts_csv(result, paths["attempts"])
    export_density_csv(heatmap, paths["density"])
    export_metadata(result, config, paths["metadata"])

    if export_png:
        paths["png"] = out_dir / f"{run_name}_heatmap.png"
        title = (
            f"{result.successful_attempts} runs to {config.simulation.target_value} "
            f"(p0={config.simulation.initial_prob}, decay={config.simulation.decay_factor}, "
            f"{heatmap.visualization_mode}/{heatmap.scaling})"
        )
        export_heatmap_png(heatmap, result.completed_runs, paths["png"], title=title)

    Logger.log(f"Exported {len(paths)} files to {out_dir}", Logger.LogPriority.INFO)
    return {name: str(p) for name, p in paths.items()}
