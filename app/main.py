"""
FastAPI application entry point for StoryReel.

StoryReel turns a narration track and a list of still images into an MP4
slideshow, and proxies the generation services that produce those inputs:
1. Video rendering (FFmpeg concat demuxer, H.264/AAC)
2. Text-to-speech, transcription, script and image generation
3. Whop subscription webhooks
"""

import logging
import shutil
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import SERVICE_VERSION, get_settings
from app.routers import generation, health, render, webhooks
from app.services.asset_resolver import AssetResolver
from app.services.content_generator import ContentGenerationService
from app.services.render_pipeline import VideoRenderPipeline
from app.services.result_packager import ResultPackager
from app.services.speech_service import SpeechSynthesisService
from app.services.subscription_service import SubscriptionService
from app.services.transcription_service import TranscriptionService
from app.services.video_encoder import VideoEncoder
from app.services.workspace_manager import WorkspaceManager

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for startup and shutdown events.
    Builds the services on startup and releases their clients on shutdown.
    """
    settings = get_settings()
    logger.info("Starting StoryReel...")

    # Workspace root for per-request render sessions
    workspace_manager = WorkspaceManager(settings.workspace_directory)
    workspace_manager.ensure_root()
    logger.info(f"Workspace directory: {settings.workspace_directory}")
    logger.info(f"Max concurrent renders: {settings.max_render_workers}")

    asset_resolver = AssetResolver(timeout_seconds=settings.asset_fetch_timeout_seconds)
    video_encoder = VideoEncoder(
        ffmpeg_path=settings.ffmpeg_path,
        profile=settings.get_encoding_profile(),
    )
    render_pipeline = VideoRenderPipeline(
        resolver=asset_resolver,
        workspace=workspace_manager,
        encoder=video_encoder,
        packager=ResultPackager(),
        max_concurrent_fetches=settings.max_concurrent_asset_fetches,
    )

    speech_service = SpeechSynthesisService()
    transcription_service = TranscriptionService()
    content_service = ContentGenerationService()
    subscription_service = SubscriptionService()

    # Store in app state for dependency injection
    app.state.workspace_manager = workspace_manager
    app.state.asset_resolver = asset_resolver
    app.state.video_encoder = video_encoder
    app.state.render_pipeline = render_pipeline
    app.state.speech_service = speech_service
    app.state.transcription_service = transcription_service
    app.state.content_service = content_service
    app.state.subscription_service = subscription_service

    # Verify external tools
    _verify_external_tools(settings.ffmpeg_path)

    logger.info("StoryReel ready to accept requests.")

    yield

    # Cleanup on shutdown
    logger.info("Shutting down StoryReel...")
    await asset_resolver.close()
    await speech_service.close()
    await transcription_service.close()
    await content_service.close()

    removed = workspace_manager.purge_sessions()
    if removed:
        logger.warning(f"Removed {removed} render workspaces left open by this process")

    logger.info("Shutdown complete")


def _verify_external_tools(ffmpeg_path: str):
    """Verify that required external tools are available."""
    if shutil.which(ffmpeg_path):
        logger.info("✓ FFmpeg for video rendering available")
    else:
        logger.warning("✗ FFmpeg for video rendering NOT FOUND - renders will fail")


# Create FastAPI application
app = FastAPI(
    title="StoryReel",
    description="""
StoryReel - narrated slideshow video assembly.

## Features

### Render API (`/api/render-video`)
- Audio and images as URLs or base64 data URLs
- Equal display time per image, letterboxed to 1280x1080
- H.264/AAC MP4 returned inline as base64

### Generation API (`/api/generate-*`)
- Text-to-speech via ElevenLabs
- Word-level captions via AssemblyAI
- Scripts and images via Gemini

### Webhooks (`/api/whop-webhook`)
- Whop membership activation, deactivation and payment credits
    """,
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTP error as {"error": ...}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies as 400."""
    fields = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        fields.append(".".join(location) or "body")

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"Missing or invalid fields: {', '.join(fields)}"},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected errors and still answer with an error body."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc) or "Unknown error"},
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(render.router)
app.include_router(generation.router)
app.include_router(webhooks.router)


@app.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "service": get_settings().app_name,
        "version": SERVICE_VERSION,
        "status": "running",
        "features": {
            "render": "FFmpeg slideshow assembly",
            "generation": "ElevenLabs + AssemblyAI + Gemini",
            "webhooks": "Whop subscriptions",
        },
        "docs": "/docs",
    }
