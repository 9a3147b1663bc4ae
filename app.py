"""
FastAPI Web Application for Lap Telemetry

This module provides a REST API over the lapsync pipeline: uploading logs,
binding a course, reading laps, speed events, braking zones and pace, lap
CSV export, and the persisted video sync record of each session.
"""

from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

import lapsync
from lapsync.log import get_logger
from lapsync.session import build_session_payload, load_session, recompute_laps
from lapsync.telemetry import lap_to_record, speed_events_to_records, braking_zones_to_geojson

logger = get_logger(__name__)


# ============================================================================
# APPLICATION SETUP
# ============================================================================

app = FastAPI(title="lapsync")

# Persisted video sync records (session_id -> offset and video)
sync_store = lapsync.JsonSyncStore()


# ============================================================================
# REQUEST BODIES
# ============================================================================

class TimingLinePayload(BaseModel):
    a_lat: str
    a_lon: str
    b_lat: str
    b_lon: str


class CoursePayload(BaseModel):
    name: str
    start_finish: TimingLinePayload
    sector_2: Optional[TimingLinePayload] = None
    sector_3: Optional[TimingLinePayload] = None


class VideoSyncPayload(BaseModel):
    sync_offset_ms: float
    video_name: str
    video_handle: Optional[str] = None


# ============================================================================
# SESSION LOADING & CACHING
# ============================================================================

# Cache for analysed sessions (session_id -> analysis result)
session_cache: Dict[str, dict] = {}


def get_analysis(session_id: str) -> dict:
    """
    Look up an analysed session.

    Raises:
        HTTPException: If the session has not been uploaded (status 404).
    """
    analysis = session_cache.get(session_id)
    if analysis is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return analysis


def get_lap(analysis: dict, lap_number: int) -> lapsync.Lap:
    lap = next((lap for lap in analysis["laps"] if lap.lap_number == lap_number), None)
    if lap is None:
        raise HTTPException(status_code=404, detail=f"Lap {lap_number} not found")
    return lap


# ============================================================================
# API ROUTES - SESSIONS
# ============================================================================

@app.post("/api/sessions", status_code=201)
async def upload_session(request: Request,
                         filename: str = Query(..., description="Original log file name, used as session id")):
    """
    Parse and analyse an uploaded log.

    The raw request body is the file content; its format is detected from
    the content. Uploading the same file name again replaces the session.

    Returns:
        The session payload plus its id.

    Raises:
        HTTPException: If the log cannot be parsed (status 422).
    """
    content = await request.body()
    try:
        analysis = load_session(content, filename)
    except lapsync.ParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    session_cache[filename] = analysis
    logger.info("Cached session {}", filename)
    return {"id": filename, **build_session_payload(analysis)}


@app.get("/api/sessions")
def list_sessions():
    """List uploaded sessions with their format and sample count."""
    return [
        {
            "id": session_id,
            "format": analysis["session"].format_name,
            "samples": len(analysis["session"].samples),
            "laps": len(analysis["laps"]),
        }
        for session_id, analysis in sorted(session_cache.items())
    ]


@app.get("/api/sessions/{session_id}")
def get_session(session_id: str,
                hidden: Optional[List[str]] = Query(None, description="Canonical channel ids to hide, e.g. satellites")):
    """Get the complete payload of one session, minus any hidden channels."""
    return {"id": session_id, **build_session_payload(get_analysis(session_id), hidden)}


@app.put("/api/sessions/{session_id}/course")
def set_course(session_id: str, payload: CoursePayload):
    """
    Bind a course to a session and recompute its laps.

    Raises:
        HTTPException: If the start/finish line does not parse (status 422).
    """
    analysis = get_analysis(session_id)
    try:
        course = lapsync.build_course(
            payload.name,
            payload.start_finish.model_dump(),
            payload.sector_2.model_dump() if payload.sector_2 else None,
            payload.sector_3.model_dump() if payload.sector_3 else None,
        )
    except lapsync.CourseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    analysis = recompute_laps(analysis, course)
    session_cache[session_id] = analysis
    return [lap_to_record(lap) for lap in analysis["laps"]]


# ============================================================================
# API ROUTES - ANALYSIS
# ============================================================================

@app.get("/api/sessions/{session_id}/laps")
def get_laps(session_id: str):
    """
    Get the laps of a session with lap-time strings and the optimal lap.
    """
    analysis = get_analysis(session_id)
    laps = []
    for lap in analysis["laps"]:
        record = lap_to_record(lap)
        record["lap_time"] = lapsync.format_lap_time(lap.lap_time_ms)
        laps.append(record)

    optimal = analysis["optimal_lap"]
    best = lapsync.fastest_lap(analysis["laps"])
    return {
        "laps": laps,
        "fastest_lap": best.lap_number if best else None,
        "optimal_lap_ms": optimal.lap_time_ms if optimal else None,
    }


@app.get("/api/sessions/{session_id}/braking-zones")
def get_braking_zones(session_id: str):
    return braking_zones_to_geojson(get_analysis(session_id)["braking_zones"])


@app.get("/api/sessions/{session_id}/speed-events")
def get_speed_events(session_id: str):
    return speed_events_to_records(get_analysis(session_id)["speed_events"])


@app.get("/api/sessions/{session_id}/pace")
def get_pace(session_id: str,
             lap: int = Query(..., description="Lap to analyse"),
             reference: Optional[int] = Query(None, description="Reference lap, defaults to the fastest"),
             kph: bool = Query(False, description="Reference speed in km/h instead of mph")):
    """
    Get the pace delta (seconds) and reference speed for each sample of a lap.

    Raises:
        HTTPException: If either lap does not exist (status 404).
    """
    analysis = get_analysis(session_id)
    current = get_lap(analysis, lap)
    if reference is None:
        best = lapsync.fastest_lap(analysis["laps"])
        reference = best.lap_number
    ref_lap = get_lap(analysis, reference)

    samples = analysis["session"].samples
    ref_data = lapsync.compute_reference_data(lapsync.lap_samples(samples, ref_lap))
    current_samples = lapsync.lap_samples(samples, current)
    return {
        "lap": current.lap_number,
        "reference": ref_lap.lap_number,
        "pace_s": lapsync.calculate_pace(current_samples, ref_data),
        "reference_speed": lapsync.calculate_reference_speed(current_samples, ref_data, use_kph=kph),
        "unit": "kph" if kph else "mph",
    }


# ============================================================================
# API ROUTES - EXPORT
# ============================================================================

@app.get("/api/export/{session_id}/lap/{lap_number}")
def export_lap(session_id: str, lap_number: int):
    """
    Export a specific lap's samples as CSV.

    Returns:
        PlainTextResponse: CSV file with Content-Disposition header
        for download. Filename: lap_{lap_number}.csv

    Raises:
        HTTPException: If lap_number is not found (status 404).
    """
    analysis = get_analysis(session_id)
    try:
        csv_body = lapsync.export_lap_csv(analysis["session"], analysis["laps"], lap_number)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    headers = {"Content-Disposition": f"attachment; filename=lap_{lap_number}.csv"}
    return PlainTextResponse(
        csv_body,
        media_type="text/csv",
        headers=headers
    )


# ============================================================================
# API ROUTES - VIDEO SYNC RECORDS
# ============================================================================

@app.get("/api/sessions/{session_id}/video-sync")
def get_video_sync(session_id: str):
    try:
        record = sync_store.load(session_id)
    except lapsync.StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    if record is None:
        raise HTTPException(status_code=404, detail=f"No video sync for {session_id}")
    return record


@app.put("/api/sessions/{session_id}/video-sync")
def put_video_sync(session_id: str, payload: VideoSyncPayload):
    """Persist the sync offset and video chosen for a session."""
    get_analysis(session_id)
    record = lapsync.VideoSyncRecord(
        session_id=session_id,
        sync_offset_ms=payload.sync_offset_ms,
        video_name=payload.video_name,
        video_handle=payload.video_handle,
    )
    try:
        sync_store.save(record)
    except lapsync.StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return record


@app.delete("/api/sessions/{session_id}/video-sync", status_code=204)
def delete_video_sync(session_id: str):
    try:
        sync_store.delete(session_id)
    except lapsync.StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# ============================================================================
# RUN INSTRUCTIONS
# ============================================================================
# Run with: uvicorn app:app --reload
