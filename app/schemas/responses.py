"""
Response schemas for the API.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    error: str = Field(..., description="Human-readable error message")


class RenderVideoResponse(BaseModel):
    """Rendered video returned inline."""

    video: str = Field(..., description="Base64-encoded MP4")
    content_type: str = Field(default="video/mp4", alias="contentType")
    size: int = Field(..., description="Video size in bytes")

    class Config:
        populate_by_name = True


class GenerateAudioResponse(BaseModel):
    """Synthesized speech."""

    audio: str = Field(..., description="Base64-encoded audio")
    content_type: str = Field(default="audio/mpeg", alias="contentType")

    class Config:
        populate_by_name = True


class CaptionWordResponse(BaseModel):
    """A single transcribed word. Times are in milliseconds."""

    text: str
    start: int
    end: int
    confidence: float


class GenerateCaptionsResponse(BaseModel):
    """Word-level captions."""

    captions: List[CaptionWordResponse] = Field(default_factory=list)


class GenerateImageResponse(BaseModel):
    """A single generated image."""

    image: str = Field(..., description="Base64-encoded image")
    content_type: str = Field(default="image/png", alias="contentType")

    class Config:
        populate_by_name = True


class GenerateImagesResponse(BaseModel):
    """Batch of generated images; failed prompts are empty strings."""

    images: List[str] = Field(default_factory=list)
    content_type: str = Field(default="image/png", alias="contentType")

    class Config:
        populate_by_name = True


class GenerateScriptResponse(BaseModel):
    """Generated script as parsed JSON."""

    script: Any


class WebhookAckResponse(BaseModel):
    """Acknowledgement returned to the webhook sender."""

    success: bool = True
    action: Optional[str] = None
    user_id: str = Field(..., alias="userId")

    class Config:
        populate_by_name = True


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="Service version")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool = Field(..., description="Whether the service is ready to accept requests")
    ffmpeg: str = Field(..., description="FFmpeg status")
    workspace: str = Field(..., description="Workspace directory status")
