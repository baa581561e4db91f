"""
Services for the StoryReel API.

Includes:
- Render services (asset resolution, workspaces, timeline, FFmpeg encoding)
- Generation services (speech, transcription, Gemini content)
- Subscription webhooks (Supabase)
"""

from app.services.asset_resolver import AssetResolver
from app.services.render_pipeline import VideoRenderPipeline
from app.services.result_packager import ResultPackager
from app.services.video_encoder import VideoEncoder
from app.services.workspace_manager import WorkspaceManager

# Generation services
from app.services.content_generator import ContentGenerationService
from app.services.speech_service import SpeechSynthesisService
from app.services.subscription_service import SubscriptionService
from app.services.transcription_service import TranscriptionService

__all__ = [
    # Render
    "AssetResolver",
    "WorkspaceManager",
    "VideoEncoder",
    "ResultPackager",
    "VideoRenderPipeline",
    # Generation
    "SpeechSynthesisService",
    "TranscriptionService",
    "ContentGenerationService",
    "SubscriptionService",
]
