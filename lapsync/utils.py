"""
Utility Functions for Telemetry Processing

This module provides helper functions for data conversion, rounding, clamping
and series smoothing used throughout the pipeline.
"""

import numpy as np
import pandas as pd
from typing import Optional, Sequence


def safe_float(value) -> float:
    """
    Safely convert a value to float, returning NaN on failure.

    Args:
        value: Value to convert (string, number, etc.).

    Returns:
        Float value, or np.nan if conversion fails.
    """
    try:
        return float(value)
    except (TypeError, ValueError):
        return np.nan


def is_finite(value) -> bool:
    """Return True if value is a real, finite number."""
    return value is not None and bool(np.isfinite(value))


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def round_float(value, digits: int = 3) -> Optional[float]:
    """
    Round a float value, handling None, NaN, and Inf.

    Args:
        value: Value to round.
        digits: Number of decimal places. Default 3.

    Returns:
        Rounded float, or None if value is None, NaN, or Inf.
    """
    if value is None or (isinstance(value, float) and (np.isnan(value) or np.isinf(value))):
        return None
    return round(float(value), digits)


def preserve_precision(value, digits: Optional[int] = None) -> Optional[float]:
    """
    Preserve or round precision of a float value.

    Args:
        value: Value to process.
        digits: Number of decimal places. If None, preserves original precision.

    Returns:
        Float value (rounded if digits specified), or None if value is None or NaN.
    """
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    if digits is None:
        return float(value)
    return round(float(value), digits)


def moving_average(values: Sequence[float], window: int) -> np.ndarray:
    """
    Centered moving average that shrinks its window at the sequence edges.

    Args:
        values: Values to smooth.
        window: Window size. Values below 2 return the input unchanged.

    Returns:
        Smoothed values as a float array of the same length.
    """
    series = pd.Series(np.asarray(values, dtype=float))
    if window < 2 or series.empty:
        return series.to_numpy()
    # Odd window keeps the average centered on the sample
    if window % 2 == 0:
        window += 1
    return series.rolling(window=window, center=True, min_periods=1).mean().to_numpy()
