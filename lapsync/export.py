"""
Export Functions for Telemetry Sessions

This module provides functions to export lap data to CSV for external
analysis or backup.
"""

import csv
import io
from typing import Sequence

from . import utils
from .models import Lap, ParsedSession


def export_lap_csv(session: ParsedSession, laps: Sequence[Lap], lap_number: int) -> str:
    """
    Export a single lap's samples to CSV format.

    Columns are the fixed sample fields followed by one column per auxiliary
    channel in the session's field order. Missing channel values are blank.

    Args:
        session: Parsed (and optionally derived-channel enriched) session.
        laps: Laps computed for the session.
        lap_number: Lap number to export (1-indexed).

    Returns:
        CSV string with the lap's samples.

    Raises:
        ValueError: If lap_number is not found.
    """
    lap = next((lap for lap in laps if lap.lap_number == lap_number), None)
    if lap is None:
        raise ValueError(f"Lap {lap_number} not found")

    buffer = io.StringIO()
    writer = csv.writer(buffer)

    # Write header
    writer.writerow([
        "t_ms",
        "lap_number",
        "lap_elapsed_s",
        "lat",
        "lon",
        "speed_mph",
        "speed_kph",
        "heading",
        *session.fields,
    ])

    # Write data rows
    for sample in session.samples[lap.start_index:lap.end_index + 1]:
        writer.writerow([
            sample.t,
            lap.lap_number,
            utils.round_float((sample.t - lap.start_time) / 1000.0),
            sample.lat,
            sample.lon,
            utils.round_float(sample.speed_mph),
            utils.round_float(sample.speed_kph),
            utils.round_float(sample.heading, digits=2),
            *(sample.channels.get(name, "") for name in session.fields),
        ])

    return buffer.getvalue()
