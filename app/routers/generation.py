"""
Generation API Router - Thin proxies to speech, transcription and Gemini.
"""

import base64
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.schemas.requests import (
    GenerateAudioRequest,
    GenerateCaptionsRequest,
    GenerateImagesRequest,
    GeneratePromptRequest,
)
from app.schemas.responses import (
    CaptionWordResponse,
    GenerateAudioResponse,
    GenerateCaptionsResponse,
    GenerateImageResponse,
    GenerateImagesResponse,
    GenerateScriptResponse,
)
from app.services.content_generator import ContentGenerationError, ContentGenerationService
from app.services.speech_service import SpeechSynthesisError, SpeechSynthesisService
from app.services.transcription_service import TranscriptionError, TranscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Generation"])


# ============================================================================
# Dependencies
# ============================================================================


def _service_from_state(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not initialized",
        )
    return service


async def get_speech_service(request: Request) -> SpeechSynthesisService:
    return _service_from_state(request, "speech_service")


async def get_transcription_service(request: Request) -> TranscriptionService:
    return _service_from_state(request, "transcription_service")


async def get_content_service(request: Request) -> ContentGenerationService:
    return _service_from_state(request, "content_service")


def _server_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=message,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/generate-audio", response_model=GenerateAudioResponse)
async def generate_audio(
    request: GenerateAudioRequest,
    speech: SpeechSynthesisService = Depends(get_speech_service),
) -> GenerateAudioResponse:
    """Convert text to speech (MP3, base64)."""
    try:
        audio = await speech.synthesize(request.text)
    except SpeechSynthesisError as e:
        logger.error(f"Audio generation error: {e}")
        raise _server_error(str(e))

    return GenerateAudioResponse(
        audio=base64.b64encode(audio).decode("ascii"),
        content_type="audio/mpeg",
    )


@router.post("/generate-captions", response_model=GenerateCaptionsResponse)
async def generate_captions(
    request: GenerateCaptionsRequest,
    transcription: TranscriptionService = Depends(get_transcription_service),
) -> GenerateCaptionsResponse:
    """Transcribe audio into word-level captions."""
    try:
        words = await transcription.transcribe(request.audio_file_url)
    except TranscriptionError as e:
        logger.error(f"Caption generation error: {e}")
        raise _server_error(str(e))

    return GenerateCaptionsResponse(
        captions=[CaptionWordResponse(**w.to_dict()) for w in words],
    )


@router.post("/generate-image", response_model=GenerateImageResponse)
async def generate_image(
    request: GeneratePromptRequest,
    content: ContentGenerationService = Depends(get_content_service),
) -> GenerateImageResponse:
    """Generate a single image."""
    try:
        image = await content.generate_image(request.prompt)
    except ContentGenerationError as e:
        logger.error(f"Image generation error: {e}")
        raise _server_error(str(e))

    return GenerateImageResponse(image=image.data, content_type=image.mime_type)


@router.post("/generate-images", response_model=GenerateImagesResponse)
async def generate_images(
    request: GenerateImagesRequest,
    content: ContentGenerationService = Depends(get_content_service),
) -> GenerateImagesResponse:
    """Generate one image per prompt; failed prompts come back as empty strings."""
    try:
        images = await content.generate_images(request.prompts)
    except ContentGenerationError as e:
        logger.error(f"Images generation error: {e}")
        raise _server_error(str(e))

    return GenerateImagesResponse(images=images, content_type="image/png")


@router.post("/generate-script", response_model=GenerateScriptResponse)
async def generate_script(
    request: GeneratePromptRequest,
    content: ContentGenerationService = Depends(get_content_service),
) -> GenerateScriptResponse:
    """Generate a video script (JSON)."""
    try:
        script = await content.generate_script(request.prompt)
    except ContentGenerationError as e:
        logger.error(f"Script generation error: {e}")
        raise _server_error(str(e))

    return GenerateScriptResponse(script=script)
