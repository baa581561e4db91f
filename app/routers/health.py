"""
Health check endpoints.
"""

from fastapi import APIRouter, Request

from app.config import SERVICE_VERSION
from app.schemas.responses import HealthResponse, ReadinessResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if the service is running.
    """
    return HealthResponse(
        status="healthy",
        version=SERVICE_VERSION,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Ready when FFmpeg can be found and the workspace directory exists.
    """
    encoder = getattr(request.app.state, "video_encoder", None)
    workspace = getattr(request.app.state, "workspace_manager", None)

    ffmpeg_ready = encoder is not None and encoder.is_available()
    workspace_ready = workspace is not None and workspace.root_directory.is_dir()

    return ReadinessResponse(
        ready=ffmpeg_ready and workspace_ready,
        ffmpeg="available" if ffmpeg_ready else "not_found",
        workspace="ready" if workspace_ready else "missing",
    )
