"""
Configuration module using Pydantic Settings for environment variable management.

Only essential environment variables are exposed. Encoding parameters and
provider endpoints are hardcoded so every render is reproducible.
"""

import os
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings

SERVICE_VERSION = "1.0.0"


@dataclass(frozen=True)
class EncodingProfile:
    """Fixed FFmpeg output parameters for a rendered video."""

    width: int = 1280
    height: int = 1080
    frame_rate: int = 30
    video_codec: str = "libx264"
    preset: str = "medium"
    tune: str = "stillimage"
    audio_codec: str = "aac"
    audio_bitrate: str = "192k"
    pixel_format: str = "yuv420p"
    letterbox: bool = True
    pad_color: str = "black"


class Settings(BaseSettings):
    """
    Application settings.

    Only essential configuration is loaded from environment variables.
    All encoding settings are hardcoded for consistency.
    """

    # ============================================================
    # ENVIRONMENT VARIABLES (minimal set)
    # ============================================================

    # Application
    app_name: str = "storyreel-api"
    debug: bool = False
    log_level: str = "INFO"

    # API Keys
    elevenlabs_api_key: Optional[str] = None
    assemblyai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None

    # Supabase (subscription webhook)
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None

    # FFmpeg binary (absolute path or name resolved via PATH)
    ffmpeg_path: str = "ffmpeg"

    # Per-request workspaces are created under this directory
    workspace_directory: str = os.path.join(tempfile.gettempdir(), "storyreel")

    # Scale and pad every image to the output resolution
    letterbox_images: bool = True

    # Performance tuning
    max_render_workers: int = 2  # Max concurrent FFmpeg render processes
    max_concurrent_asset_fetches: int = 8  # Per render request
    render_timeout_seconds: int = 300
    asset_fetch_timeout_seconds: float = 60.0

    cors_allow_origins: list[str] = ["*"]

    # ============================================================
    # HARDCODED SETTINGS (not configurable via env vars)
    # ============================================================

    # Rendering Configuration
    @property
    def target_output_width(self) -> int:
        return 1280

    @property
    def target_output_height(self) -> int:
        return 1080

    @property
    def output_frame_rate(self) -> int:
        return 30

    @property
    def ffmpeg_preset(self) -> str:
        return "medium"

    @property
    def ffmpeg_tune(self) -> str:
        return "stillimage"

    @property
    def audio_bitrate(self) -> str:
        return "192k"

    # ElevenLabs Configuration
    @property
    def elevenlabs_base_url(self) -> str:
        return "https://api.elevenlabs.io/v1"

    @property
    def elevenlabs_voice_id(self) -> str:
        return "Jessica"

    @property
    def elevenlabs_model(self) -> str:
        return "eleven_multilingual_v2"

    @property
    def elevenlabs_stability(self) -> float:
        return 0.5

    @property
    def elevenlabs_similarity_boost(self) -> float:
        return 0.5

    # AssemblyAI Configuration
    @property
    def assemblyai_base_url(self) -> str:
        return "https://api.assemblyai.com/v2"

    @property
    def transcription_poll_interval_seconds(self) -> float:
        return 3.0

    @property
    def transcription_timeout_seconds(self) -> float:
        return 280.0

    # Gemini Configuration
    @property
    def gemini_base_url(self) -> str:
        return "https://generativelanguage.googleapis.com/v1beta"

    @property
    def gemini_script_model(self) -> str:
        return "gemini-2.5-pro"

    @property
    def gemini_image_model(self) -> str:
        return "gemini-2.5-flash-image"

    @property
    def script_temperature(self) -> float:
        return 0.5

    @property
    def script_top_p(self) -> float:
        return 0.95

    @property
    def script_max_output_tokens(self) -> int:
        return 8192

    # Subscription webhook
    @property
    def payment_credit_grant(self) -> int:
        return 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    def get_encoding_profile(self) -> EncodingProfile:
        """Build EncodingProfile from settings."""
        return EncodingProfile(
            width=self.target_output_width,
            height=self.target_output_height,
            frame_rate=self.output_frame_rate,
            preset=self.ffmpeg_preset,
            tune=self.ffmpeg_tune,
            audio_bitrate=self.audio_bitrate,
            letterbox=self.letterbox_images,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
