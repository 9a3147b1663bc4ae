"""
Compare longitudinal G derivative methods on a real log.

This script parses a data-logger file, computes longitudinal G with the
central-difference and Savitzky-Golay methods, and reports how they differ
from each other and, when the logger records one, from its native
accelerometer channel.

Usage:
    python3 compare_derivative_methods.py --log-file "data/session.vbo"
    python3 compare_derivative_methods.py --log-file "data/session.csv" --poly-window 21
    python3 compare_derivative_methods.py --log-file "data/session.csv" --no-plot
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from lapsync import GForceConfig, ParseError, compute_derived_channels, parse_log
from lapsync.log import configure_logging

NATIVE_LON_G = "Lon G (Native)"
METHODS = ["central", "savgol"]


def build_comparison_frame(log_file: Path, config: GForceConfig) -> pd.DataFrame:
    """
    Parse a log and compute longitudinal G with each method.

    Args:
        log_file: Path to any supported log format
        config: Base G-force configuration; the method is overridden per run

    Returns:
        DataFrame with time_s, speed_mph, one column per method and, when
        present, the native longitudinal G channel
    """
    session = parse_log(log_file.read_bytes(), log_file.name)
    samples = session.samples

    data = {
        "time_s": [s.t / 1000.0 for s in samples],
        "speed_mph": [s.speed_mph for s in samples],
    }
    for method in METHODS:
        derived = compute_derived_channels(samples, replace(config, longitudinal_method=method))
        if derived.longitudinal_method != method:
            print(f"Warning: {method} fell back to {derived.longitudinal_method} (too few samples)")
        data[method] = list(derived.lon_g)

    if NATIVE_LON_G in session.fields:
        data["native"] = [s.channels.get(NATIVE_LON_G, np.nan) for s in samples]

    return pd.DataFrame(data)


def summarize(df: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    """
    Per-method error and roughness figures.

    roughness_g is the mean absolute second difference, a measure of how
    noisy the trace is. rms_vs_native_g is only present with a native channel.
    """
    summary = {}
    for method in METHODS:
        values = df[method].to_numpy(dtype=float)
        stats = {
            "max_abs_g": float(np.nanmax(np.abs(values))) if values.size else np.nan,
            "std_g": float(np.nanstd(values)) if values.size else np.nan,
            "roughness_g": float(np.nanmean(np.abs(np.diff(values, n=2)))) if values.size > 2 else np.nan,
        }
        if "native" in df:
            native = df["native"].to_numpy(dtype=float)
            mask = np.isfinite(native)
            stats["rms_vs_native_g"] = (
                float(np.sqrt(np.mean((values[mask] - native[mask]) ** 2))) if mask.any() else np.nan
            )
        summary[method] = stats
    return summary


def print_summary(summary: Dict[str, Dict[str, float]], log_file: Path) -> None:
    print(f"\n{'='*70}")
    print(f"LONGITUDINAL G METHODS: {log_file.name}")
    print(f"{'='*70}")

    metric_names = sorted({key for stats in summary.values() for key in stats})
    header = f"{'Metric':<20}" + "".join(f"{method.upper():>15}" for method in summary)
    print(header)
    print("-" * len(header))
    for metric in metric_names:
        row = f"{metric:<20}"
        for method in summary:
            value = summary[method].get(metric, np.nan)
            row += f"{'N/A':>15}" if np.isnan(value) else f"{value:>15.4f}"
        print(row)
    print(f"{'='*70}\n")


def create_comparison_plot(df: pd.DataFrame, log_file: Path, output_path: Path,
                           window: Optional[slice] = None) -> None:
    """
    Plot speed and the longitudinal G traces on a shared time axis.

    Args:
        df: Frame from build_comparison_frame()
        log_file: Log being analysed, used in the title
        output_path: Path to save the plot
        window: Optional row slice to zoom into
    """
    view = df.iloc[window] if window is not None else df

    fig, (ax_speed, ax_g) = plt.subplots(2, 1, figsize=(16, 8), sharex=True)

    ax_speed.plot(view["time_s"], view["speed_mph"], color="#2E86AB", linewidth=1.2)
    ax_speed.set_ylabel("Speed [mph]", fontsize=11, fontweight="bold")
    ax_speed.grid(True, alpha=0.3, linestyle="--")

    colors = {"central": "#A23B72", "savgol": "#F18F01", "native": "#6A994E"}
    for column in [*METHODS, "native"]:
        if column in view:
            ax_g.plot(view["time_s"], view[column], label=column.upper(),
                      color=colors[column], linewidth=1.0, alpha=0.9)
    ax_g.axhline(0.0, color="black", linewidth=0.8)
    ax_g.set_xlabel("Time [s]", fontsize=11, fontweight="bold")
    ax_g.set_ylabel("Longitudinal G", fontsize=11, fontweight="bold")
    ax_g.grid(True, alpha=0.3, linestyle="--")
    ax_g.legend(loc="upper right")

    plt.suptitle(f"Longitudinal G Method Comparison: {log_file.name}",
                 fontsize=14, fontweight="bold")
    plt.tight_layout()
    plt.savefig(output_path, dpi=200, bbox_inches="tight")
    print(f"Saved comparison plot to: {output_path}")
    plt.close(fig)


def main():
    parser = argparse.ArgumentParser(
        description="Compare central-difference and Savitzky-Golay longitudinal G"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        required=True,
        help="Path to a data-logger file in any supported format"
    )
    parser.add_argument(
        "--poly-window",
        type=int,
        default=GForceConfig().poly_window,
        help="Savitzky-Golay window length in samples (default: 15)"
    )
    parser.add_argument(
        "--poly-order",
        type=int,
        default=GForceConfig().poly_order,
        help="Savitzky-Golay polynomial order (default: 3)"
    )
    parser.add_argument(
        "--smoothing-window",
        type=int,
        default=GForceConfig().smoothing_window,
        help="Moving-average window for the central-difference trace (default: 5)"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="derivative_comparison",
        help="Output directory for the plot and CSV files (default: derivative_comparison)"
    )
    parser.add_argument(
        "--no-plot",
        action="store_true",
        help="Skip the matplotlib plot"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        help="Console log level for the parsers (default: WARNING)"
    )

    args = parser.parse_args()
    configure_logging(args.log_level)

    log_file = Path(args.log_file)
    if not log_file.exists():
        print(f"Error: Log file not found: {log_file}")
        sys.exit(1)

    output_dir = Path(args.output_dir)
    output_dir.mkdir(exist_ok=True)

    config = GForceConfig(
        poly_window=args.poly_window,
        poly_order=args.poly_order,
        smoothing_window=args.smoothing_window,
    )

    try:
        df = build_comparison_frame(log_file, config)
    except ParseError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    summary = summarize(df)
    print_summary(summary, log_file)

    trace_path = output_dir / f"{log_file.stem}_lon_g.csv"
    df.to_csv(trace_path, index=False)
    print(f"Saved traces to: {trace_path}")

    summary_path = output_dir / f"{log_file.stem}_lon_g_summary.csv"
    pd.DataFrame(summary).T.rename_axis("method").to_csv(summary_path)
    print(f"Saved summary to: {summary_path}")

    if not args.no_plot:
        plot_path = output_dir / f"{log_file.stem}_lon_g_comparison.png"
        create_comparison_plot(df, log_file, plot_path)


if __name__ == "__main__":
    main()
