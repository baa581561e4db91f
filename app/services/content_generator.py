"""
Content Generator - Script and image generation via the Gemini API.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)


SCRIPT_SYSTEM_PREAMBLE = (
    "You are a Video Script Writer and AI Image Prompt Engineer. "
    "You do all the tasks with sincerity."
)

_CODE_FENCE_START = re.compile(r"^```(?:json)?\s*")
_CODE_FENCE_END = re.compile(r"```\s*$")


@dataclass
class GeneratedImage:
    """A single generated image."""

    data: str  # base64
    mime_type: str


def strip_code_fences(content: str) -> str:
    """Remove a surrounding Markdown code block, if present."""
    content = content.strip()
    if content.startswith("```"):
        content = _CODE_FENCE_START.sub("", content)
        content = _CODE_FENCE_END.sub("", content)
    return content.strip()


class ContentGenerationService:
    """
    Service for Gemini text and image generation.

    Features:
    - Script generation returning parsed JSON
    - Single image generation
    - Batched image generation with per-item failure placeholders
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.settings = get_settings()
        self._client = client

        if not self.settings.gemini_api_key:
            logger.warning("GEMINI_API_KEY not configured - content generation will fail")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.gemini_base_url,
                timeout=httpx.Timeout(300.0, connect=30.0),
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def generate_script(self, prompt: str) -> Any:
        """
        Generate a video script and parse it as JSON.

        Raises:
            ContentGenerationError: On API failure or unparseable output
        """
        response = await self._generate_content(
            model=self.settings.gemini_script_model,
            prompt=f"{SCRIPT_SYSTEM_PREAMBLE}\n\n{prompt}",
            generation_config={
                "temperature": self.settings.script_temperature,
                "topP": self.settings.script_top_p,
                "maxOutputTokens": self.settings.script_max_output_tokens,
            },
        )

        parts = self._first_candidate_parts(response, empty_message="No content generated")
        texts = [p["text"] for p in parts if isinstance(p.get("text"), str)]
        text = next((t for t in texts if t.strip()), None)
        if not text:
            raise ContentGenerationError("No text in response")

        content = strip_code_fences(text)
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse script JSON: {content[:500]}")
            raise ContentGenerationError(f"Failed to parse script JSON: {e}") from e

    async def generate_image(self, prompt: str) -> GeneratedImage:
        """
        Generate one image.

        Raises:
            ContentGenerationError: If no image is returned
        """
        response = await self._generate_content(
            model=self.settings.gemini_image_model,
            prompt=prompt,
        )

        parts = self._first_candidate_parts(response, empty_message="No image generated")
        for part in parts:
            inline_data = part.get("inlineData") or part.get("inline_data")
            if not isinstance(inline_data, dict):
                continue
            if isinstance(inline_data.get("data"), str) and inline_data["data"]:
                return GeneratedImage(
                    data=inline_data["data"],
                    mime_type=inline_data.get("mimeType") or inline_data.get("mime_type") or "image/png",
                )

        raise ContentGenerationError("No image in response")

    async def generate_images(self, prompts: list[str]) -> list[str]:
        """
        Generate one image per prompt, in order.

        A failed prompt yields an empty string instead of aborting the batch.
        """
        if not self.settings.gemini_api_key:
            raise ContentGenerationError("GEMINI_API_KEY not configured")

        images: list[str] = []
        for prompt in prompts:
            try:
                image = await self.generate_image(prompt)
                images.append(image.data)
            except ContentGenerationError as e:
                logger.error(f"Error generating image for prompt: {prompt[:100]} ({e})")
                images.append("")

        logger.info(f"Generated {sum(1 for i in images if i)}/{len(prompts)} images")
        return images

    async def _generate_content(
        self,
        model: str,
        prompt: str,
        generation_config: Optional[dict] = None,
    ) -> dict:
        """Call the Gemini generateContent endpoint."""
        if not self.settings.gemini_api_key:
            raise ContentGenerationError("GEMINI_API_KEY not configured")

        client = await self._get_client()

        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        }
        if generation_config:
            payload["generationConfig"] = generation_config

        try:
            response = await client.post(
                f"/models/{model}:generateContent",
                json=payload,
                headers={"x-goog-api-key": self.settings.gemini_api_key},
            )
        except httpx.RequestError as e:
            raise ContentGenerationError(f"Gemini request failed: {e}") from e

        if response.status_code != 200:
            raise ContentGenerationError(
                f"Gemini API error ({response.status_code}): {response.text[:500]}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ContentGenerationError("Invalid response from Gemini") from e

        if not isinstance(body, dict):
            raise ContentGenerationError("Invalid response from Gemini")
        return body

    def _first_candidate_parts(self, response: dict, empty_message: str) -> list[dict]:
        candidates = response.get("candidates") or []
        if not isinstance(candidates, list) or not candidates:
            raise ContentGenerationError(empty_message)

        candidate = candidates[0]
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list) or not parts:
            raise ContentGenerationError("Invalid response structure")

        # Parts that aren't objects carry nothing usable
        return [part for part in parts if isinstance(part, dict)]


class ContentGenerationError(Exception):
    """Exception raised when content generation fails."""
    pass
