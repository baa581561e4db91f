#!/usr/bin/env python3
"""
StoryReel - Smoke test client for the render API.

Sends a render request to a running server and writes the returned MP4.

Usage Examples:
    # Render two local images over a local narration track
    python render_job.py --audio narration.mp3 --image scene1.png --image scene2.jpg --duration 12

    # Mix remote URLs and local files
    python render_job.py --audio https://cdn.example.com/voice.mp3 --image https://cdn.example.com/a.png --duration 5

    # Check that the server is up and FFmpeg is available
    python render_job.py --health-only
"""

import argparse
import base64
import mimetypes
import os
import sys
import time
from pathlib import Path

import requests
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


# ============================================================================
# Configuration
# ============================================================================

class SmokeConfig:
    """Configuration loaded from environment and defaults."""

    BASE_URL = os.getenv("STORYREEL_API_URL", "http://localhost:8000")
    OUTPUT_PATH = Path("render_output.mp4")
    REQUEST_TIMEOUT = 600  # seconds


# ============================================================================
# Helpers
# ============================================================================

def to_asset_reference(value: str) -> str:
    """Pass URLs through; inline local files as base64 data URLs."""
    if value.startswith(("http://", "https://", "data:")):
        return value

    path = Path(value)
    if not path.is_file():
        raise FileNotFoundError(f"Asset not found: {value}")

    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


class StoryReelClient:
    """Client for the StoryReel API."""

    def __init__(self, base_url: str = None):
        self.base_url = (base_url or SmokeConfig.BASE_URL).rstrip("/")
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def readiness(self) -> dict:
        """Check readiness status."""
        response = self.session.get(f"{self.base_url}/health/ready")
        response.raise_for_status()
        return response.json()

    def render(self, audio: str, images: list[str], duration: float) -> bytes:
        """Render a video and return the MP4 bytes."""
        response = self.session.post(
            f"{self.base_url}/api/render-video",
            json={"audioUrl": audio, "images": images, "duration": duration},
            timeout=SmokeConfig.REQUEST_TIMEOUT,
        )
        if response.status_code != 200:
            error = response.json().get("error", response.text)
            raise RuntimeError(f"Render failed ({response.status_code}): {error}")

        body = response.json()
        video = base64.b64decode(body["video"])
        if len(video) != body["size"]:
            raise RuntimeError(f"Size mismatch: header says {body['size']}, got {len(video)}")
        return video


def main():
    parser = argparse.ArgumentParser(description="StoryReel render smoke test")
    parser.add_argument("--url", default=None, help="API base URL")
    parser.add_argument("--audio", help="Audio file path or URL")
    parser.add_argument("--image", action="append", default=[], help="Image file path or URL (repeatable)")
    parser.add_argument("--duration", type=float, help="Total duration in seconds")
    parser.add_argument("--output", default=str(SmokeConfig.OUTPUT_PATH), help="Where to write the MP4")
    parser.add_argument("--health-only", action="store_true", help="Only check readiness")
    args = parser.parse_args()

    client = StoryReelClient(args.url)

    print(f"Checking {client.base_url} ...")
    ready = client.readiness()
    print(f"  ready={ready['ready']} ffmpeg={ready['ffmpeg']} workspace={ready['workspace']}")
    if args.health_only:
        return 0 if ready["ready"] else 1

    if not args.audio or not args.image or not args.duration:
        parser.error("--audio, at least one --image, and --duration are required")

    audio = to_asset_reference(args.audio)
    images = [to_asset_reference(i) for i in args.image]

    print(f"Rendering {len(images)} images over {args.duration}s ...")
    started = time.time()
    try:
        video = client.render(audio, images, args.duration)
    except RuntimeError as e:
        print(f"✗ {e}")
        return 1

    Path(args.output).write_bytes(video)
    print(f"✓ Wrote {args.output} ({len(video) / 1024 / 1024:.2f} MB) in {time.time() - started:.1f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
