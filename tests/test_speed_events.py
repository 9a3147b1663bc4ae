"""Tests for speed peak/valley detection."""

import math

import pytest

from conftest import make_line_samples
from lapsync.config import SpeedEventConfig
from lapsync.speed_events import detect_speed_events

MPH = 2.23694


def _sine_speed(period_s=10.0, mean_mph=40.0, amplitude_mph=10.0, duration_s=30.0, hz=10):
    """Peaks at period/4 + k*period, valleys half a period later."""
    n = int(duration_s * hz)
    mph = [mean_mph + amplitude_mph * math.sin(2 * math.pi * (i / hz) / period_s) for i in range(n)]
    return make_line_samples([v / MPH for v in mph], hz=hz)


class TestDetectSpeedEvents:
    def test_alternating_peaks_and_valleys(self):
        events = detect_speed_events(_sine_speed())

        assert [e.kind for e in events] == ["peak", "valley"] * 3
        assert [e.t for e in events] == pytest.approx([2500, 7500, 12500, 17500, 22500, 27500], abs=200)
        assert events[0].speed_mph == pytest.approx(50.0, abs=0.5)
        assert events[1].speed_mph == pytest.approx(30.0, abs=0.5)

    def test_event_position_comes_from_sample(self):
        samples = _sine_speed()
        event = detect_speed_events(samples)[0]
        assert (event.lat, event.lon, event.t) == (samples[event.index].lat, samples[event.index].lon,
                                                   samples[event.index].t)

    def test_min_separation_drops_close_events(self):
        config = SpeedEventConfig(min_separation_ms=6000.0)
        events = detect_speed_events(_sine_speed(), config)
        # Each valley is 5 s after the peak before it
        assert [e.kind for e in events] == ["peak"] * 3

    def test_index_offset(self):
        samples = _sine_speed()
        plain = detect_speed_events(samples)
        shifted = detect_speed_events(samples, index_offset=100)
        assert [e.index for e in shifted] == [e.index + 100 for e in plain]

    def test_small_swing_ignored(self):
        assert detect_speed_events(_sine_speed(amplitude_mph=1.0)) == []

    def test_flat_speed(self):
        assert detect_speed_events(make_line_samples([20.0] * 100)) == []

    def test_too_few_samples(self):
        assert detect_speed_events(make_line_samples([10.0, 30.0])) == []

    def test_starts_with_valley_when_slowing(self):
        samples = _sine_speed()[50:]
        events = detect_speed_events(samples)
        assert events[0].kind == "valley"
        assert events[0].t == pytest.approx(7500, abs=200)
