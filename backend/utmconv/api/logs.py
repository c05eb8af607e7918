"""
API routes for telemetry logs.
"""

from pathlib import Path

from fastapi import APIRouter, HTTPException

from utmconv.api.schemas import (
    ConversionResponse,
    FolderInfoResponse,
    LogSummaryResponse,
    SetFolderRequest,
    TrackResponse,
    TrackSampleResponse,
)
from utmconv.exceptions import (
    ConversionError,
    DestinationUnwritable,
    NoSessionAvailable,
    SourceUnreadable,
)
from utmconv.models.track import TrackSummary
from utmconv.services.repository import get_repository, init_repository


router = APIRouter(prefix="/logs", tags=["logs"])


def _build_summary_response(summary: TrackSummary) -> LogSummaryResponse:
    return LogSummaryResponse(
        id=summary.id,
        name=summary.name,
        source_file=summary.source_file,
        sample_count=summary.sample_count,
        duration_s=summary.duration_s,
        distance_m=summary.distance_m,
        max_speed=summary.max_speed,
        started_at=summary.started_at,
        bounding_box=summary.bounding_box,
        fused_position=summary.fused_position,
    )


def _conversion_status(error: ConversionError) -> int:
    if isinstance(error, NoSessionAvailable):
        return 503
    if isinstance(error, SourceUnreadable):
        return 404
    if isinstance(error, DestinationUnwritable):
        return 500
    return 500


@router.get("", response_model=list[LogSummaryResponse])
async def list_logs():
    """
    List all indexed telemetry logs.

    Returns summaries sorted by flight start (newest first).
    """
    repo = get_repository()
    return [_build_summary_response(s) for s in repo.list_logs()]


@router.get("/{log_id}", response_model=LogSummaryResponse)
async def get_log_summary(log_id: str):
    """
    Get the summary of a specific log.
    """
    repo = get_repository()
    summary = repo.get_summary(log_id)

    if summary is None:
        raise HTTPException(status_code=404, detail=f"Log not found: {log_id}")

    return _build_summary_response(summary)


@router.get("/{log_id}/track", response_model=TrackResponse)
async def get_log_track(log_id: str):
    """
    Get every interpreted track sample of a log.
    """
    repo = get_repository()
    summary = repo.get_summary(log_id)
    track = repo.get_track(log_id)

    if summary is None or track is None:
        raise HTTPException(status_code=404, detail=f"Log not found: {log_id}")

    return TrackResponse(
        summary=_build_summary_response(summary),
        samples=[
            TrackSampleResponse(
                timestamp=s.elapsed_s,
                gps_lon=s.lon,
                gps_lat=s.lat,
                gps_altitude=s.alt,
                speed=s.speed,
            )
            for s in track
        ],
    )


@router.post("/{log_id}/convert", response_model=ConversionResponse)
async def convert_log(log_id: str):
    """
    Convert a log into a UTM flight-logging file.

    Logs without any usable position produce no file (output_file is null).
    """
    repo = get_repository()

    if repo.get_path(log_id) is None:
        raise HTTPException(status_code=404, detail=f"Log not found: {log_id}")

    try:
        result = repo.convert(log_id)
    except ConversionError as e:
        raise HTTPException(status_code=_conversion_status(e), detail=e.message)

    return ConversionResponse(
        id=log_id,
        source_file=str(result.source_file),
        output_file=str(result.output_file) if result.output_file else None,
        sample_count=result.sample_count,
        message_counts=result.message_counts,
    )


# ============================================================================
# Folder Management Routes
# ============================================================================

folder_router = APIRouter(prefix="/folder", tags=["folder"])


def _folder_info() -> FolderInfoResponse:
    repo = get_repository()
    output_folder = repo.output_folder
    return FolderInfoResponse(
        path=str(repo.data_folder) if repo.data_folder else None,
        output_path=str(output_folder) if output_folder else None,
        log_count=repo.log_count,
    )


@folder_router.get("", response_model=FolderInfoResponse)
async def get_folder_info():
    """Get information about the current data folder."""
    return _folder_info()


@folder_router.post("", response_model=FolderInfoResponse)
async def set_folder(request: SetFolderRequest):
    """
    Set the folder to scan for telemetry logs.

    This replaces the repository and re-scans.
    """
    path = Path(request.path)
    if not path.exists():
        raise HTTPException(status_code=400, detail=f"Folder does not exist: {request.path}")
    if not path.is_dir():
        raise HTTPException(status_code=400, detail=f"Path is not a directory: {request.path}")

    output_path = Path(request.output_path) if request.output_path else None
    init_repository(path, output_path)

    return _folder_info()


@folder_router.post("/rescan", response_model=FolderInfoResponse)
async def rescan_folder():
    """
    Rescan the current data folder for new logs.
    """
    repo = get_repository()

    if repo.data_folder is None:
        raise HTTPException(status_code=400, detail="No data folder set")

    repo.rescan()
    return _folder_info()
