"""
Pydantic schemas for request/response models.
"""

from app.schemas.requests import (
    GenerateAudioRequest,
    GenerateCaptionsRequest,
    GenerateImagesRequest,
    GeneratePromptRequest,
    RenderVideoRequest,
)
from app.schemas.responses import (
    CaptionWordResponse,
    ErrorResponse,
    GenerateAudioResponse,
    GenerateCaptionsResponse,
    GenerateImageResponse,
    GenerateImagesResponse,
    GenerateScriptResponse,
    RenderVideoResponse,
    WebhookAckResponse,
)

__all__ = [
    # Requests
    "RenderVideoRequest",
    "GenerateAudioRequest",
    "GenerateCaptionsRequest",
    "GeneratePromptRequest",
    "GenerateImagesRequest",
    # Responses
    "ErrorResponse",
    "RenderVideoResponse",
    "GenerateAudioResponse",
    "CaptionWordResponse",
    "GenerateCaptionsResponse",
    "GenerateImageResponse",
    "GenerateImagesResponse",
    "GenerateScriptResponse",
    "WebhookAckResponse",
]
