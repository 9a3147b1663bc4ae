"""Tests for the longitudinal G comparison script."""

import math

import pytest

from compare_derivative_methods import build_comparison_frame, summarize
from conftest import make_line_samples, samples_to_csv
from lapsync.config import GForceConfig


@pytest.fixture
def log_file(tmp_path):
    # Speed oscillating 15 +/- 5 m/s over 6 s
    speeds = [15.0 + 5.0 * math.sin(2 * math.pi * i / 60) for i in range(120)]
    path = tmp_path / "session.csv"
    path.write_text(samples_to_csv(make_line_samples(speeds)), encoding="utf-8")
    return path


def test_comparison_frame(log_file):
    df = build_comparison_frame(log_file, GForceConfig())
    assert list(df.columns) == ["time_s", "speed_mph", "central", "savgol"]
    assert len(df) == 120
    assert df["time_s"].iloc[-1] == pytest.approx(11.9)


def test_methods_agree_on_smooth_trace(log_file):
    df = build_comparison_frame(log_file, GForceConfig())
    interior = df.iloc[10:-10]
    assert (interior["central"] - interior["savgol"]).abs().max() < 0.05


def test_summary(log_file):
    summary = summarize(build_comparison_frame(log_file, GForceConfig()))
    assert set(summary) == {"central", "savgol"}
    assert set(summary["central"]) == {"max_abs_g", "std_g", "roughness_g"}
    # Peak dv/dt is 5 * 2pi / 6 m/s^2
    assert summary["savgol"]["max_abs_g"] == pytest.approx(5 * 2 * math.pi / 6 / 9.80665, rel=0.1)
