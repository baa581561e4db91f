"""
Result Packager - Loads a finished render for transport.
"""

import asyncio
import base64
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


@dataclass
class RenderArtifact:
    """A finished video held in memory."""

    data: bytes
    mime_type: str
    size_bytes: int

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class ResultPackager:
    """Reads the rendered file fully into memory."""

    def __init__(self, mime_type: str = "video/mp4"):
        self.mime_type = mime_type

    async def pack(self, artifact_path: Union[str, Path]) -> RenderArtifact:
        if not os.path.isfile(artifact_path):
            raise PackagingError(f"Render output not found: {artifact_path}")

        loop = asyncio.get_event_loop()
        data = await loop.run_in_executor(None, Path(artifact_path).read_bytes)

        if not data:
            raise PackagingError(f"Render output is empty: {artifact_path}")

        logger.info(f"Video size: {len(data) / 1024 / 1024:.2f} MB")
        return RenderArtifact(data=data, mime_type=self.mime_type, size_bytes=len(data))


class PackagingError(Exception):
    """Exception raised when the render output cannot be loaded."""
    pass
