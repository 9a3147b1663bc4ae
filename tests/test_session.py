"""Tests for the session analysis pipeline."""

import json
import math
from dataclasses import replace

import pytest

from conftest import make_session, samples_to_csv
from lapsync.config import AnalysisConfig, LapConfig
from lapsync.session import (
    analyse_session,
    build_session_payload,
    load_session,
    recompute_laps,
    with_config,
)


@pytest.fixture
def wavy_loop(square_loop):
    """Square loop with a speed trace that swings every 10 s."""
    return [replace(s, speed_mps=20.0 + 4.0 * math.sin(2 * math.pi * s.t / 10000.0)) for s in square_loop]


class TestAnalyseSession:
    def test_all_stages(self, square_loop, square_course):
        analysis = analyse_session(make_session(square_loop), square_course)

        assert len(analysis["laps"]) == 3
        assert analysis["optimal_lap"].lap_time_ms == pytest.approx(40000.0, abs=1.0)
        assert analysis["session"].fields[:2] == ("Lat G", "Lon G")
        assert analysis["parsed"].fields == ()
        assert analysis["braking_zones"] == []
        assert len(analysis["braking_g"]) == len(square_loop)
        assert analysis["course"] is square_course

    def test_no_course(self, square_loop):
        analysis = analyse_session(make_session(square_loop))
        assert analysis["laps"] == []
        assert analysis["optimal_lap"] is None

    def test_speed_events_stay_inside_laps(self, wavy_loop, square_course):
        analysis = analyse_session(make_session(wavy_loop), square_course)
        laps = analysis["laps"]
        events = analysis["speed_events"]

        assert events
        for event in events:
            assert any(lap.start_index <= event.index <= lap.end_index for lap in laps)
            assert analysis["session"].samples[event.index].t == event.t

    def test_speed_events_whole_session_without_laps(self, wavy_loop):
        events = analyse_session(make_session(wavy_loop))["speed_events"]
        assert events[0].kind == "peak"
        assert events[0].t == pytest.approx(2500.0, abs=200.0)


class TestRecompute:
    def test_recompute_laps(self, square_loop, square_course):
        analysis = analyse_session(make_session(square_loop))
        updated = recompute_laps(analysis, square_course)

        assert len(updated["laps"]) == 3
        assert updated["optimal_lap"] is not None
        assert updated["braking_g"] is analysis["braking_g"]
        # Original result untouched
        assert analysis["laps"] == []

    def test_unbind_course(self, square_loop, square_course):
        analysis = analyse_session(make_session(square_loop), square_course)
        updated = recompute_laps(analysis, None)
        assert updated["laps"] == []
        assert updated["course"] is None

    def test_with_config(self, square_loop, square_course):
        analysis = analyse_session(make_session(square_loop), square_course)
        updated = with_config(analysis, AnalysisConfig(laps=LapConfig(min_lap_time_ms=50000.0)))
        assert [lap.lap_time_ms for lap in updated["laps"]] == pytest.approx([80000.0], abs=1.0)


class TestLoadAndPayload:
    def test_load_session_from_csv(self, square_loop, square_course):
        analysis = load_session(samples_to_csv(square_loop), "loop.csv", square_course)
        assert analysis["session"].format_name == "CSV"
        assert len(analysis["laps"]) == 3

    def test_payload_is_json(self, square_loop, square_course):
        payload = build_session_payload(analyse_session(make_session(square_loop), square_course))
        json.dumps(payload, allow_nan=False)

        assert payload["format"] == "test"
        assert payload["course"] == "Square"
        assert payload["start_date"] is None
        assert len(payload["telemetry"]) == len(square_loop)
        assert len(payload["laps"]) == 3
        assert payload["optimal_lap"]["lap_time_ms"] == pytest.approx(40000.0, abs=1.0)
        assert payload["track"]["type"] == "FeatureCollection"
        assert set(payload["bounds"]) == {"min_lat", "max_lat", "min_lon", "max_lon"}

    def test_hidden_fields_from_config(self, square_loop):
        analysis = analyse_session(make_session(square_loop), config=AnalysisConfig(hidden_fields=("lat_g",)))
        payload = build_session_payload(analysis)
        assert payload["fields"] == ["Lon G"]
        assert set(payload["telemetry"][5]["channels"]) == {"Lon G"}

    def test_hidden_fields_override(self, square_loop):
        analysis = analyse_session(make_session(square_loop), config=AnalysisConfig(hidden_fields=("lat_g",)))
        payload = build_session_payload(analysis, ["LonG"])
        # Unknown ids and display names hide nothing
        assert payload["fields"] == ["Lat G", "Lon G"]
        assert build_session_payload(analysis, ["lon_g"])["fields"] == ["Lat G"]
