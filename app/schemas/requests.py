"""
Request schemas for the API.

Field names follow the camelCase wire format used by the web client.
"""

from pydantic import BaseModel, Field, field_validator

from app.services.asset_resolver import classify_asset
from app.services.render_pipeline import RenderJob


class RenderVideoRequest(BaseModel):
    """Request body for the /api/render-video endpoint."""

    audio_url: str = Field(
        ...,
        alias="audioUrl",
        min_length=1,
        description="Audio track as a remote URL or a base64 data URL",
    )
    images: list[str] = Field(
        ...,
        min_length=1,
        description="Images in display order, each a remote URL or a base64 data URL",
    )
    duration: float = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Total video duration in seconds",
    )

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "audioUrl": "https://example.com/narration.mp3",
                "images": [
                    "https://example.com/scene-1.png",
                    "data:image/png;base64,iVBORw0KGgo...",
                ],
                "duration": 9,
            }
        }

    @field_validator("images")
    @classmethod
    def validate_images(cls, images: list[str]) -> list[str]:
        """Reject blank image references."""
        for index, image in enumerate(images):
            if not image or not image.strip():
                raise ValueError(f"images[{index}] must not be empty")
        return images

    def to_render_job(self) -> RenderJob:
        """Classify every reference once and build the immutable job."""
        return RenderJob(
            audio=classify_asset(self.audio_url),
            images=tuple(classify_asset(image) for image in self.images),
            total_duration_seconds=self.duration,
        )


class GenerateAudioRequest(BaseModel):
    """Request body for /api/generate-audio."""

    text: str = Field(..., min_length=1, description="Text to speak")


class GenerateCaptionsRequest(BaseModel):
    """Request body for /api/generate-captions."""

    audio_file_url: str = Field(
        ...,
        alias="audioFileUrl",
        min_length=1,
        description="Audio to transcribe (remote URL or base64 data URL)",
    )

    class Config:
        populate_by_name = True


class GeneratePromptRequest(BaseModel):
    """Request body for /api/generate-image and /api/generate-script."""

    prompt: str = Field(..., min_length=1, description="Generation prompt")


class GenerateImagesRequest(BaseModel):
    """Request body for /api/generate-images."""

    prompts: list[str] = Field(..., description="One prompt per image")
