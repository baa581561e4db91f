"""
Video Encoder - FFmpeg invocation that turns a concat manifest and an audio
track into a streamable H.264/AAC MP4.
"""

import asyncio
import logging
import os
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from app.config import EncodingProfile

logger = logging.getLogger(__name__)


ProgressCallback = Callable[[float], None]

# Only the tail of FFmpeg's stderr is worth surfacing
DIAGNOSTICS_TAIL_CHARS = 1000

# -progress keys carrying the output position in microseconds
# (out_time_ms is misnamed upstream and is also microseconds)
_PROGRESS_TIME_KEYS = ("out_time_us", "out_time_ms")


@dataclass
class EncodeResult:
    """Result of an encode."""

    output_path: str
    elapsed_seconds: float


class _ProgressTracker:
    """
    Converts FFmpeg output positions into a monotonically increasing
    completion fraction delivered on the event loop thread.
    """

    def __init__(
        self,
        expected_duration_seconds: float,
        callback: Optional[ProgressCallback],
        loop: asyncio.AbstractEventLoop,
    ):
        self.expected_us = max(expected_duration_seconds, 0.001) * 1_000_000
        self.callback = callback
        self.loop = loop
        self.fraction = 0.0

    def report_position(self, raw_value: str) -> None:
        """Called from the worker thread for every out_time line."""
        try:
            position_us = int(raw_value)
        except ValueError:
            return  # "N/A" before the first frame

        fraction = min(1.0, max(0.0, position_us / self.expected_us))
        if fraction <= self.fraction:
            return
        self.fraction = fraction
        if self.callback:
            self.loop.call_soon_threadsafe(self.callback, fraction)

    def complete(self) -> None:
        """Report 1.0 once the process has finished successfully."""
        if self.fraction >= 1.0:
            return
        self.fraction = 1.0
        if self.callback:
            self.callback(1.0)


class VideoEncoder:
    """
    Encodes a still-image slideshow with an audio track using FFmpeg.

    Features:
    - Concat demuxer input with per-image durations
    - Optional scale-and-letterbox to a fixed resolution
    - Output truncated to the shorter of audio and video (-shortest)
    - +faststart so the MP4 can play before it is fully downloaded
    - Progress reporting from FFmpeg's -progress stream
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", profile: Optional[EncodingProfile] = None):
        self.ffmpeg_path = ffmpeg_path
        self.profile = profile or EncodingProfile()

    def is_available(self) -> bool:
        """Check whether the configured FFmpeg binary can be found."""
        return shutil.which(self.ffmpeg_path) is not None

    def build_video_filter(self) -> str:
        """Build the -vf chain for the configured profile."""
        p = self.profile
        if p.letterbox:
            return (
                f"scale={p.width}:{p.height}:force_original_aspect_ratio=decrease,"
                f"pad={p.width}:{p.height}:(ow-iw)/2:(oh-ih)/2:color={p.pad_color},"
                f"setsar=1"
            )
        # yuv420p needs even dimensions
        return "scale=trunc(iw/2)*2:trunc(ih/2)*2"

    def build_command(self, manifest_path: str, audio_path: str, output_path: str) -> list[str]:
        """Build the full FFmpeg command line."""
        p = self.profile
        return [
            self.ffmpeg_path,
            "-y",
            "-hide_banner",
            "-nostats",
            "-progress", "pipe:1",
            "-f", "concat",
            "-safe", "0",
            "-i", str(manifest_path),
            "-i", str(audio_path),
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-c:v", p.video_codec,
            "-preset", p.preset,
            "-tune", p.tune,
            "-r", str(p.frame_rate),
            "-c:a", p.audio_codec,
            "-b:a", p.audio_bitrate,
            "-pix_fmt", p.pixel_format,
            "-vf", self.build_video_filter(),
            "-shortest",
            "-movflags", "+faststart",
            str(output_path),
        ]

    async def encode(
        self,
        manifest_path: str,
        audio_path: str,
        output_path: str,
        expected_duration_seconds: float,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> EncodeResult:
        """
        Run FFmpeg and wait for it to finish.

        Args:
            manifest_path: Concat demuxer script
            audio_path: Audio track
            output_path: Destination MP4
            expected_duration_seconds: Used to turn positions into a fraction
            progress_callback: Receives fractions in [0, 1], never decreasing

        Returns:
            EncodeResult

        Raises:
            EncodeError: FFmpeg could not start, failed, or produced no output
        """
        cmd = self.build_command(manifest_path, audio_path, output_path)
        logger.info(f"FFmpeg command: {' '.join(cmd)}")

        loop = asyncio.get_event_loop()
        tracker = _ProgressTracker(expected_duration_seconds, progress_callback, loop)
        started = time.monotonic()

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise EncodeError(f"Failed to start FFmpeg ({self.ffmpeg_path}): {e}") from e

        try:
            returncode, stderr_text = await loop.run_in_executor(
                None, self._wait_for_process, process, tracker
            )
        except asyncio.CancelledError:
            logger.warning("Encode cancelled, terminating FFmpeg")
            process.kill()
            raise

        diagnostics = stderr_text[-DIAGNOSTICS_TAIL_CHARS:].strip()

        if returncode != 0:
            raise EncodeError(
                f"FFmpeg exited with code {returncode}",
                diagnostics=diagnostics,
                returncode=returncode,
            )

        if not os.path.isfile(output_path) or os.path.getsize(output_path) == 0:
            raise EncodeError("FFmpeg finished but output file was not created", diagnostics=diagnostics)

        tracker.complete()
        elapsed = time.monotonic() - started
        logger.info(f"FFmpeg render completed in {elapsed:.1f}s")

        return EncodeResult(output_path=str(output_path), elapsed_seconds=elapsed)

    def _wait_for_process(
        self,
        process: subprocess.Popen,
        tracker: _ProgressTracker,
    ) -> tuple[int, str]:
        """Read progress until FFmpeg exits (runs in a worker thread)."""
        stderr_chunks: list[bytes] = []

        # Drain stderr separately so a chatty FFmpeg can't block on a full pipe
        drain = threading.Thread(
            target=lambda: stderr_chunks.append(process.stderr.read()),
            daemon=True,
        )
        drain.start()

        for raw_line in process.stdout:
            key, _, value = raw_line.decode("utf-8", errors="replace").strip().partition("=")
            if key in _PROGRESS_TIME_KEYS:
                tracker.report_position(value)

        returncode = process.wait()
        drain.join()

        stderr_text = b"".join(chunk for chunk in stderr_chunks if chunk).decode(
            "utf-8", errors="replace"
        )
        return returncode, stderr_text


class EncodeError(Exception):
    """Exception raised when FFmpeg fails to encode."""

    def __init__(
        self,
        message: str,
        diagnostics: str = "",
        returncode: Optional[int] = None,
    ):
        super().__init__(message)
        self.diagnostics = diagnostics
        self.returncode = returncode

    def __str__(self) -> str:
        message = super().__str__()
        if self.diagnostics:
            return f"{message}: {self.diagnostics}"
        return message
