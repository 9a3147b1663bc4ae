"""
Session Builder for Telemetry Analysis

This module orchestrates the complete analysis pipeline, combining all
processing steps into one analysis result per uploaded log and shaping it
into a JSON payload.
"""

from dataclasses import asdict
from typing import Dict, Iterable, List, Optional

from . import braking
from . import derived
from . import fields
from . import laps as lap_detection
from . import speed_events
from . import telemetry
from . import utils
from .config import AnalysisConfig
from .log import get_logger
from .models import Course, ParsedSession, SpeedEvent
from .parsers import parse_log
from .parsers.base import Content

logger = get_logger(__name__)


def _detect_speed_events(session: ParsedSession, laps: List, config: AnalysisConfig) -> List[SpeedEvent]:
    """Per-lap events when laps exist, so peaks never straddle a lap boundary."""
    if not laps:
        return speed_events.detect_speed_events(session.samples, config.speed_events)

    events: List[SpeedEvent] = []
    for lap in laps:
        events.extend(speed_events.detect_speed_events(
            lap_detection.lap_samples(session.samples, lap),
            config.speed_events,
            index_offset=lap.start_index,
        ))
    return events


def analyse_session(session: ParsedSession, course: Optional[Course] = None,
                    config: AnalysisConfig = AnalysisConfig()) -> Dict:
    """
    Run every analysis stage over a parsed session.

    Args:
        session: Output of a format parser.
        course: Course to time laps against; None means no laps.
        config: Configuration for every stage.

    Returns:
        Dictionary containing:
        - parsed: the session as the parser produced it
        - session: the session with Lat G / Lon G channels attached
        - course: the course used for lap timing
        - laps: list of Lap
        - optimal_lap: OptimalLap or None
        - speed_events: list of SpeedEvent
        - braking_zones: list of BrakingZone
        - braking_g: smoothed longitudinal G per sample
        - config: the configuration used
    """
    enriched = derived.attach_derived_channels(session, config.gforce)
    laps = lap_detection.calculate_laps(enriched.samples, course, config.laps)

    analysis = {
        "parsed": session,
        "session": enriched,
        "course": course,
        "laps": laps,
        "optimal_lap": lap_detection.calculate_optimal_lap(laps),
        "speed_events": _detect_speed_events(enriched, laps, config),
        "braking_zones": braking.detect_braking_zones(enriched.samples, config.braking),
        "braking_g": braking.compute_braking_g_series(enriched.samples, config.braking),
        "config": config,
    }
    logger.info(
        "Analysed {} session: {} samples, {} laps, {} braking zones",
        enriched.format_name, len(enriched.samples), len(laps), len(analysis["braking_zones"]),
    )
    return analysis


def recompute_laps(analysis: Dict, course: Optional[Course]) -> Dict:
    """
    Rebind the course and recompute everything that depends on laps.

    Lap results are replaced wholesale; braking zones and derived channels
    do not depend on the course and are reused.
    """
    config = analysis["config"]
    session = analysis["session"]
    laps = lap_detection.calculate_laps(session.samples, course, config.laps)
    updated = dict(analysis)
    updated.update(
        course=course,
        laps=laps,
        optimal_lap=lap_detection.calculate_optimal_lap(laps),
        speed_events=_detect_speed_events(session, laps, config),
    )
    return updated


def load_session(content: Content, filename: Optional[str] = None,
                 course: Optional[Course] = None,
                 config: AnalysisConfig = AnalysisConfig()) -> Dict:
    """Parse a raw log and analyse it. Parse errors propagate."""
    return analyse_session(parse_log(content, filename), course, config)


def build_session_payload(analysis: Dict, hidden_fields: Optional[Iterable[str]] = None) -> Dict:
    """
    Shape an analysis result into a JSON-serializable payload.

    Channels whose canonical id is hidden are dropped from "fields" and from
    every telemetry record. hidden_fields overrides the analysis config.

    Returns:
        Dictionary containing:
        - format, fields, bounds, duration_ms, start_date
        - track: GeoJSON FeatureCollection of the driven path
        - telemetry: list of telemetry records
        - laps: list of lap records
        - lap_features: GeoJSON features for each lap
        - optimal_lap: sum of best sectors, or None
        - speed_events: list of peak/valley records
        - braking_zones: GeoJSON FeatureCollection of braking zones
        - braking_g: smoothed deceleration series
    """
    session: ParsedSession = analysis["session"]
    laps = analysis["laps"]
    optimal = analysis["optimal_lap"]
    if hidden_fields is None:
        hidden_fields = analysis["config"].hidden_fields
    hidden = list(hidden_fields)

    return {
        "format": session.format_name,
        "fields": fields.visible_fields(session.fields, hidden),
        "bounds": asdict(session.bounds),
        "duration_ms": session.duration_ms,
        "start_date": session.start_date.isoformat() if session.start_date else None,
        "course": analysis["course"].name if analysis["course"] else None,
        "track": telemetry.telemetry_to_geojson(session.samples),
        "telemetry": telemetry.build_telemetry_records(session, hidden),
        "laps": [telemetry.lap_to_record(lap) for lap in laps],
        "lap_features": telemetry.laps_to_geojson(session.samples, laps),
        "optimal_lap": asdict(optimal) if optimal else None,
        "speed_events": telemetry.speed_events_to_records(analysis["speed_events"]),
        "braking_zones": telemetry.braking_zones_to_geojson(analysis["braking_zones"]),
        "braking_g": [utils.round_float(g, digits=4) for g in analysis["braking_g"]],
    }


def with_config(analysis: Dict, config: AnalysisConfig) -> Dict:
    """Re-run the pipeline on the parsed samples with new settings."""
    return analyse_session(analysis["parsed"], analysis["course"], config)
