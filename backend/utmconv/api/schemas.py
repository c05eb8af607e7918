"""
API schemas (Pydantic models) for request/response validation.
"""

from typing import Optional
from pydantic import BaseModel


# ============================================================================
# Log Schemas
# ============================================================================

class LogSummaryResponse(BaseModel):
    """Summary of an interpreted telemetry log."""
    id: str
    name: str
    source_file: str
    sample_count: int
    duration_s: float
    distance_m: float
    max_speed: float
    started_at: Optional[str] = None
    bounding_box: tuple[float, float, float, float]  # (min_lon, min_lat, max_lon, max_lat)
    fused_position: bool


class TrackSampleResponse(BaseModel):
    """Single track sample."""
    timestamp: float
    gps_lon: float
    gps_lat: float
    gps_altitude: float
    speed: float


class TrackResponse(BaseModel):
    """Full interpreted track of a log."""
    summary: LogSummaryResponse
    samples: list[TrackSampleResponse]


class ConversionResponse(BaseModel):
    """Outcome of converting a log to a UTM file."""
    id: str
    source_file: str
    output_file: Optional[str] = None  # None when the log held no positions
    sample_count: int
    message_counts: dict[str, int]


# ============================================================================
# Folder Management Schemas
# ============================================================================

class SetFolderRequest(BaseModel):
    """Request to set the data folder."""
    path: str
    output_path: Optional[str] = None


class FolderInfoResponse(BaseModel):
    """Information about the current data folder."""
    path: Optional[str]
    output_path: Optional[str] = None
    log_count: int
