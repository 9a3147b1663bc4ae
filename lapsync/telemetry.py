"""
Telemetry and GeoJSON Conversion

This module converts parsed samples and analysis results into plain
telemetry records and GeoJSON structures suitable for API responses.
"""

from typing import Dict, Iterable, List, Sequence, Union

from . import fields
from . import utils
from .models import BrakingZone, Lap, ParsedSession, Sample, SpeedEvent


def build_telemetry_records(session: Union[ParsedSession, Sequence[Sample]],
                            hidden_fields: Iterable[str] = ()) -> List[Dict]:
    """
    Convert samples to a list of telemetry record dictionaries.

    Formats every sample into a flat, JSON-serializable record with rounded
    values. Auxiliary channels are nested under "channels".

    Args:
        session: A ParsedSession or a plain sample sequence.
        hidden_fields: Canonical channel ids to leave out.

    Returns:
        List of dictionaries, one per sample, with time, position, speed in
        all three units, heading and channels.
    """
    samples = session.samples if isinstance(session, ParsedSession) else session
    hidden = set(hidden_fields)
    records = []

    for sample in samples:
        record = {
            "t": utils.round_float(sample.t, digits=1),
            "lat": utils.preserve_precision(sample.lat),
            "lon": utils.preserve_precision(sample.lon),
            "speed_mps": utils.round_float(sample.speed_mps),
            "speed_mph": utils.round_float(sample.speed_mph),
            "speed_kph": utils.round_float(sample.speed_kph),
            "heading": utils.round_float(sample.heading, digits=2),
            "channels": {
                name: utils.round_float(value, digits=4)
                for name, value in sample.channels.items()
                if not fields.is_field_hidden(name, hidden)
            },
        }
        records.append(record)

    return records


def telemetry_to_geojson(samples: Sequence[Sample]) -> Dict:
    """
    Convert samples to a GeoJSON FeatureCollection.

    Creates a LineString feature representing the driven path and a Point
    feature marking the first fix.

    Args:
        samples: Normalized samples.

    Returns:
        GeoJSON FeatureCollection with:
        - LineString feature: the complete path
        - Point feature: start marker

    Raises:
        ValueError: If there are no samples.
    """
    coordinates = [[sample.lon, sample.lat] for sample in samples]

    if not coordinates:
        raise ValueError("No coordinates to build a track from.")

    line_feature = {
        "type": "Feature",
        "geometry": {
            "type": "LineString",
            "coordinates": coordinates,
        },
        "properties": {
            "sampleCount": len(coordinates),
        },
    }

    start_feature = {
        "type": "Feature",
        "geometry": {
            "type": "Point",
            "coordinates": coordinates[0],
        },
        "properties": {"marker": "start"},
    }

    return {
        "type": "FeatureCollection",
        "features": [line_feature, start_feature],
    }


# ============================================================================
# LAP & ZONE FEATURES
# ============================================================================

def speed_band_color(speed_mph: float) -> str:
    """
    Map speed to a color for visualization, interpolating between bands.

    Color bands:
    - < 20 mph: Blue
    - 20-35 mph: Green
    - 35-50 mph: Yellow
    - 50-70 mph: Orange
    - >= 70 mph: Red

    Args:
        speed_mph: Speed in miles per hour.

    Returns:
        Hex color code string.
    """
    bands = [
        (0,   (0, 136, 255)),   # Blue (#0088ff)
        (20,  (0, 255, 0)),     # Green (#00ff00)
        (35,  (255, 255, 0)),   # Yellow (#ffff00)
        (50,  (255, 136, 0)),   # Orange (#ff8800)
        (70,  (255, 0, 0)),     # Red (#ff0000)
    ]

    if speed_mph <= bands[0][0]:
        rgb = bands[0][1]
    elif speed_mph >= bands[-1][0]:
        rgb = bands[-1][1]
    else:
        for (spd0, col0), (spd1, col1) in zip(bands, bands[1:]):
            if spd0 <= speed_mph < spd1:
                f = (speed_mph - spd0) / (spd1 - spd0)
                rgb = tuple(int(col0[j] + f * (col1[j] - col0[j])) for j in range(3))
                break

    return "#{:02x}{:02x}{:02x}".format(*rgb)


def laps_to_geojson(samples: Sequence[Sample], laps: Sequence[Lap]) -> Dict:
    """
    Build one LineString feature per lap with speed-based segment colors.

    Args:
        samples: Normalized samples the laps index into.
        laps: Laps from calculate_laps().

    Returns:
        GeoJSON FeatureCollection; laps spanning fewer than two samples
        are skipped.
    """
    palette = ["#ff2d55", "#00ffa3", "#ffd60a", "#28a2ff", "#b28dff", "#ff8a5b"]
    features = []

    for idx, lap in enumerate(laps):
        window = samples[lap.start_index:lap.end_index + 1]
        if len(window) < 2:
            continue

        coords = [[s.lon, s.lat] for s in window]
        segment_colors = [speed_band_color(s.speed_mph) for s in window[1:]]

        features.append({
            "type": "Feature",
            "geometry": {"type": "LineString", "coordinates": coords},
            "properties": {
                "lap_number": lap.lap_number,
                "lap_time_ms": lap.lap_time_ms,
                "segment_colors": segment_colors,
                "stroke": palette[idx % len(palette)],
                "stroke_width": 5,
            },
        })

    return {"type": "FeatureCollection", "features": features}


def braking_zones_to_geojson(zones: Sequence[BrakingZone]) -> Dict:
    """LineString per braking zone, with entry/exit speeds and duration."""
    features = []
    for zone in zones:
        coords = [[p.lon, p.lat] for p in zone.path]
        if len(coords) < 2:
            continue
        features.append({
            "type": "Feature",
            "geometry": {"type": "LineString", "coordinates": coords},
            "properties": {
                "start_t": zone.start.t,
                "end_t": zone.end.t,
                "duration_ms": zone.duration_ms,
                "entry_speed_mps": utils.round_float(zone.start.speed_mps),
                "exit_speed_mps": utils.round_float(zone.end.speed_mps),
                "speed_delta_mps": utils.round_float(zone.speed_delta_mps),
            },
        })
    return {"type": "FeatureCollection", "features": features}


def speed_events_to_records(events: Sequence[SpeedEvent]) -> List[Dict]:
    return [
        {
            "kind": event.kind,
            "index": event.index,
            "lat": event.lat,
            "lon": event.lon,
            "t": event.t,
            "speed_mph": utils.round_float(event.speed_mph, digits=1),
            "speed_kph": utils.round_float(event.speed_kph, digits=1),
        }
        for event in events
    ]


def lap_to_record(lap: Lap) -> Dict:
    """Flatten a Lap into a JSON-friendly dict."""
    sectors = None
    if lap.sectors is not None:
        sectors = {"s1": lap.sectors.s1, "s2": lap.sectors.s2, "s3": lap.sectors.s3}
    return {
        "lap_number": lap.lap_number,
        "start_time": lap.start_time,
        "end_time": lap.end_time,
        "lap_time_ms": lap.lap_time_ms,
        "start_index": lap.start_index,
        "end_index": lap.end_index,
        "max_speed_mph": utils.round_float(lap.max_speed_mph, digits=1),
        "min_speed_mph": utils.round_float(lap.min_speed_mph, digits=1),
        "sectors": sectors,
    }
