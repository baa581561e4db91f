"""
Speech Service - Text-to-speech via the ElevenLabs API.
"""

import logging
from typing import Optional

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)


class SpeechSynthesisService:
    """Single-call proxy to ElevenLabs text-to-speech. Returns MP3 bytes."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.settings = get_settings()
        self._client = client

        if not self.settings.elevenlabs_api_key:
            logger.warning("ELEVENLABS_API_KEY not configured - speech synthesis will fail")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.elevenlabs_base_url,
                timeout=httpx.Timeout(120.0, connect=30.0),
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def synthesize(self, text: str) -> bytes:
        """
        Convert text to speech.

        Args:
            text: Text to speak

        Returns:
            MP3 audio bytes

        Raises:
            SpeechSynthesisError: If the API call fails
        """
        if not self.settings.elevenlabs_api_key:
            raise SpeechSynthesisError("ELEVENLABS_API_KEY not configured")

        client = await self._get_client()
        payload = {
            "text": text,
            "model_id": self.settings.elevenlabs_model,
            "voice_settings": {
                "stability": self.settings.elevenlabs_stability,
                "similarity_boost": self.settings.elevenlabs_similarity_boost,
            },
        }

        logger.info(f"Synthesizing speech: {len(text)} chars, voice={self.settings.elevenlabs_voice_id}")

        try:
            response = await client.post(
                f"/text-to-speech/{self.settings.elevenlabs_voice_id}",
                json=payload,
                headers={
                    "Accept": "audio/mpeg",
                    "xi-api-key": self.settings.elevenlabs_api_key,
                },
            )
        except httpx.RequestError as e:
            raise SpeechSynthesisError(f"ElevenLabs request failed: {e}") from e

        if response.status_code != 200:
            raise SpeechSynthesisError(f"ElevenLabs API error: {response.status_code}")

        return response.content


class SpeechSynthesisError(Exception):
    """Exception raised when speech synthesis fails."""
    pass
