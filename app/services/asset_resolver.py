"""
Asset Resolver - Turns inline data URLs and remote URLs into raw bytes.

Request values are classified once, at ingestion, into an InlineAsset or a
RemoteAsset. Resolution never retries: a single failed attempt is final for
that asset.
"""

import base64
import binascii
import logging
import mimetypes
import os
import re
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)


DATA_URL_PREFIX = "data:"
DATA_URL_PATTERN = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)

# mimetypes returns odd defaults for a few common types
_PREFERRED_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
}


@dataclass(frozen=True)
class InlineAsset:
    """Self-contained asset embedded as a base64 data URL."""

    uri: str

    @property
    def mime_type(self) -> Optional[str]:
        match = DATA_URL_PATTERN.match(self.uri)
        return match.group(1).strip().lower() if match else None

    def file_extension(self, default: str) -> str:
        mime_type = self.mime_type
        if not mime_type:
            return default
        if mime_type in _PREFERRED_EXTENSIONS:
            return _PREFERRED_EXTENSIONS[mime_type]
        return mimetypes.guess_extension(mime_type) or default

    def describe(self) -> str:
        return f"inline {self.mime_type or 'unknown'} data"


@dataclass(frozen=True)
class RemoteAsset:
    """Asset that must be fetched over HTTP."""

    url: str

    def file_extension(self, default: str) -> str:
        suffix = os.path.splitext(urlparse(self.url).path)[1].lower()
        if suffix and len(suffix) <= 5 and suffix[1:].isalnum():
            return suffix
        return default

    def describe(self) -> str:
        return self.url[:100]


AssetRef = Union[InlineAsset, RemoteAsset]


def classify_asset(value: str) -> AssetRef:
    """Classify a request value as inline (data URL) or remote."""
    if value.startswith(DATA_URL_PREFIX):
        return InlineAsset(uri=value)
    return RemoteAsset(url=value)


def decode_data_url(uri: str) -> bytes:
    """
    Decode a base64 data URL.

    Raises:
        MalformedInlineError: If the URL is not a base64 data URL or the
            payload is not valid base64
    """
    match = DATA_URL_PATTERN.match(uri)
    if not match:
        raise MalformedInlineError("Invalid data URL format")

    payload = re.sub(r"\s+", "", match.group(2))
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedInlineError(f"Invalid base64 payload in data URL: {e}") from e

    if not data:
        raise MalformedInlineError("Data URL payload is empty")
    return data


class AssetResolver:
    """
    Resolves AssetRefs to bytes.

    Inline assets are decoded locally; remote assets are downloaded with a
    single GET request. Persistence is left to the WorkspaceManager.
    """

    def __init__(
        self,
        timeout_seconds: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout_seconds
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def resolve(self, ref: AssetRef) -> bytes:
        """
        Resolve an asset reference to its raw bytes.

        Raises:
            MalformedInlineError: Inline data could not be decoded
            FetchFailedError: Remote download failed
        """
        if isinstance(ref, InlineAsset):
            return decode_data_url(ref.uri)
        return await self._fetch(ref.url)

    async def _fetch(self, url: str) -> bytes:
        scheme = urlparse(url).scheme.lower()
        if scheme not in ("http", "https"):
            raise FetchFailedError(f"Unsupported asset URL: {url[:100]}")

        client = await self._get_client()
        try:
            response = await client.get(url)
        except httpx.TimeoutException as e:
            raise FetchFailedError(f"Timed out downloading {url[:100]}") from e
        except httpx.RequestError as e:
            raise FetchFailedError(f"Failed to download {url[:100]}: {e}") from e

        if not response.is_success:
            raise FetchFailedError(
                f"Failed to download {url[:100]}: HTTP {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            raise FetchFailedError(f"Empty response body from {url[:100]}")

        logger.debug(f"Downloaded {len(response.content)} bytes from {url[:100]}")
        return response.content


class AssetResolutionError(Exception):
    """Exception raised when an asset cannot be turned into bytes."""
    pass


class MalformedInlineError(AssetResolutionError):
    """Inline data URL is not valid base64 data."""
    pass


class FetchFailedError(AssetResolutionError):
    """Remote asset download failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
