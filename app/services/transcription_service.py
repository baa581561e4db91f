"""
Transcription Service - Word-level captions via AssemblyAI.
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Optional

import httpx

from app.config import get_settings
from app.services.asset_resolver import (
    AssetResolutionError,
    InlineAsset,
    classify_asset,
    decode_data_url,
)

logger = logging.getLogger(__name__)


@dataclass
class CaptionWord:
    """Word-level timing for caption display (milliseconds)."""

    text: str
    start: int
    end: int
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class TranscriptionService:
    """
    Service for transcribing audio with AssemblyAI.

    Flow:
    1. Upload inline (data URL) audio to get a fetchable URL
    2. Submit the transcript job
    3. Poll until completed or failed
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        poll_interval_seconds: Optional[float] = None,
    ):
        self.settings = get_settings()
        self._client = client
        self.poll_interval = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else self.settings.transcription_poll_interval_seconds
        )

        if not self.settings.assemblyai_api_key:
            logger.warning("ASSEMBLYAI_API_KEY not configured - transcription will fail")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.assemblyai_base_url,
                timeout=httpx.Timeout(120.0, connect=30.0),
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        return {"authorization": self.settings.assemblyai_api_key or ""}

    async def transcribe(self, audio_url: str) -> list[CaptionWord]:
        """
        Transcribe audio into word-level captions.

        Args:
            audio_url: Remote URL or base64 data URL of the audio

        Returns:
            Words in spoken order

        Raises:
            TranscriptionError: If transcription fails or yields no words
        """
        if not self.settings.assemblyai_api_key:
            raise TranscriptionError("ASSEMBLYAI_API_KEY not configured")

        source = classify_asset(audio_url)
        if isinstance(source, InlineAsset):
            audio_url = await self._upload(source)

        transcript_id = await self._submit(audio_url)
        transcript = await self._wait_for_completion(transcript_id)

        words = transcript.get("words")
        if not isinstance(words, list) or not words:
            raise TranscriptionError("No captions generated")

        try:
            return [
                CaptionWord(
                    text=str(w.get("text", "")),
                    start=int(w.get("start", 0)),
                    end=int(w.get("end", 0)),
                    confidence=float(w.get("confidence", 0.0)),
                )
                for w in words
                if isinstance(w, dict)
            ]
        except (TypeError, ValueError) as e:
            raise TranscriptionError(f"Invalid word timing in transcript: {e}") from e

    async def _upload(self, source: InlineAsset) -> str:
        """Upload inline audio and return the AssemblyAI upload URL."""
        try:
            data = decode_data_url(source.uri)
        except AssetResolutionError as e:
            raise TranscriptionError(f"Invalid audio data: {e}") from e

        client = await self._get_client()
        body = await self._request(
            client.post("/upload", content=data, headers=self._headers())
        )
        upload_url = body.get("upload_url")
        if not upload_url:
            raise TranscriptionError("AssemblyAI did not return an upload URL")
        return upload_url

    async def _submit(self, audio_url: str) -> str:
        client = await self._get_client()
        body = await self._request(
            client.post("/transcript", json={"audio_url": audio_url}, headers=self._headers())
        )
        transcript_id = body.get("id")
        if not transcript_id:
            raise TranscriptionError("AssemblyAI did not return a transcript id")

        logger.info(f"Transcript submitted: {transcript_id}")
        return transcript_id

    async def _wait_for_completion(self, transcript_id: str) -> dict[str, Any]:
        client = await self._get_client()
        deadline = time.monotonic() + self.settings.transcription_timeout_seconds

        while True:
            transcript = await self._request(
                client.get(f"/transcript/{transcript_id}", headers=self._headers())
            )
            status = transcript.get("status")

            if status == "completed":
                logger.info(f"Transcript completed: {transcript_id}")
                return transcript
            if status == "error":
                raise TranscriptionError(
                    f"Transcription failed: {transcript.get('error', 'unknown error')}"
                )
            if time.monotonic() >= deadline:
                raise TranscriptionError(f"Transcription timed out (status: {status})")

            await asyncio.sleep(self.poll_interval)

    async def _request(self, request_coro) -> dict[str, Any]:
        """Await a request and return its JSON object body."""
        try:
            response = await request_coro
        except httpx.RequestError as e:
            raise TranscriptionError(f"AssemblyAI request failed: {e}") from e

        if not response.is_success:
            raise TranscriptionError(
                f"AssemblyAI API error ({response.status_code}): {response.text[:200]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise TranscriptionError("Invalid response from AssemblyAI") from e

        if not isinstance(body, dict):
            raise TranscriptionError("Invalid response from AssemblyAI")
        return body


class TranscriptionError(Exception):
    """Exception raised when transcription fails."""
    pass
