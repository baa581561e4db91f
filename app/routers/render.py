"""
Render API Router - Assembles images and an audio track into an MP4.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.config import get_settings
from app.schemas.requests import RenderVideoRequest
from app.schemas.responses import ErrorResponse, RenderVideoResponse
from app.services.asset_resolver import AssetResolutionError
from app.services.render_pipeline import RenderPipelineError, VideoRenderPipeline
from app.services.result_packager import PackagingError
from app.services.timeline_planner import TimelineError
from app.services.video_encoder import EncodeError
from app.services.workspace_manager import WorkspaceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Render"])

# Errors that fail a render with their own message
RENDER_ERRORS = (
    AssetResolutionError,
    RenderPipelineError,
    TimelineError,
    EncodeError,
    PackagingError,
    WorkspaceError,
)

# Semaphore for limiting concurrent FFmpeg renders
_render_semaphore: Optional[asyncio.Semaphore] = None


def get_render_semaphore() -> asyncio.Semaphore:
    """Get or create render semaphore."""
    global _render_semaphore
    settings = get_settings()
    if _render_semaphore is None:
        _render_semaphore = asyncio.Semaphore(settings.max_render_workers)
    return _render_semaphore


async def get_render_pipeline(request: Request) -> VideoRenderPipeline:
    """Get the render pipeline from app state (initialized at startup)."""
    pipeline = getattr(request.app.state, "render_pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Render pipeline not initialized",
        )
    return pipeline


@router.post(
    "/render-video",
    response_model=RenderVideoResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def render_video(
    request: RenderVideoRequest,
    pipeline: VideoRenderPipeline = Depends(get_render_pipeline),
) -> RenderVideoResponse:
    """
    Render a slideshow video.

    Images are shown in order for equal shares of `duration`, over the audio
    track. Images that fail to download or decode are skipped; the render
    fails if the audio or every image is unusable.

    Returns:
        The MP4 as base64 with its size in bytes
    """
    settings = get_settings()
    job = request.to_render_job()

    try:
        async with get_render_semaphore():
            artifact = await asyncio.wait_for(
                pipeline.render(job),
                timeout=settings.render_timeout_seconds,
            )
    except asyncio.TimeoutError:
        logger.error(f"Render timed out after {settings.render_timeout_seconds}s")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Render timed out after {settings.render_timeout_seconds}s",
        )
    except RENDER_ERRORS as e:
        logger.error(f"Render error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )
    except Exception as e:
        logger.exception(f"Unexpected render error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Unknown error",
        )

    return RenderVideoResponse(
        video=artifact.to_base64(),
        content_type=artifact.mime_type,
        size=artifact.size_bytes,
    )
