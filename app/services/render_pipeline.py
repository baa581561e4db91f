"""
Render Pipeline - Orchestrates one slideshow render from assets to MP4.

Steps:
1. Open an isolated workspace session
2. Resolve and write the audio track (any failure is fatal)
3. Resolve and write the images concurrently (failures are skipped)
4. Plan the timeline and write the concat manifest
5. Encode with FFmpeg
6. Load the result for transport
The workspace is removed on every exit path.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from app.services.asset_resolver import AssetRef, AssetResolutionError, AssetResolver
from app.services.result_packager import RenderArtifact, ResultPackager
from app.services.timeline_planner import plan_timeline, render_concat_manifest
from app.services.video_encoder import VideoEncoder
from app.services.workspace_manager import RenderSession, WorkspaceManager

logger = logging.getLogger(__name__)


MANIFEST_FILENAME = "filelist.txt"
OUTPUT_FILENAME = "output.mp4"

# Overall progress share reserved for asset preparation; encoding fills the rest
PREPARE_PROGRESS_PERCENT = 20.0


class RenderStage(str, Enum):
    """Stage of a render."""

    PREPARING = "preparing"
    ENCODING = "encoding"
    PACKAGING = "packaging"
    COMPLETED = "completed"


@dataclass(frozen=True)
class RenderJob:
    """An accepted render request. Asset kinds are fixed at ingestion."""

    audio: AssetRef
    images: tuple[AssetRef, ...]
    total_duration_seconds: float


@dataclass
class RenderProgress:
    """Progress update for a render."""

    session_id: str
    stage: RenderStage
    progress_percent: float
    current_step: str


class VideoRenderPipeline:
    """
    Renders a still-image slideshow over an audio track.

    Collaborators are injected so the pipeline holds no global state and
    every request works inside its own WorkspaceManager session.
    """

    def __init__(
        self,
        resolver: AssetResolver,
        workspace: WorkspaceManager,
        encoder: VideoEncoder,
        packager: Optional[ResultPackager] = None,
        max_concurrent_fetches: int = 8,
    ):
        self.resolver = resolver
        self.workspace = workspace
        self.encoder = encoder
        self.packager = packager or ResultPackager()
        self.max_concurrent_fetches = max(1, max_concurrent_fetches)

    async def render(
        self,
        job: RenderJob,
        progress_callback: Optional[Callable[[RenderProgress], None]] = None,
    ) -> RenderArtifact:
        """
        Render a job to an in-memory MP4.

        Raises:
            AssetResolutionError: The audio track could not be resolved
            NoUsableImagesError: None of the images could be resolved
            TimelineError: The duration cannot be split across the images
            EncodeError: FFmpeg failed
            PackagingError: The output could not be read
        """
        started = time.monotonic()

        async with self.workspace.session() as session:
            sid = session.session_id
            reporter = _ProgressReporter(sid, progress_callback)

            logger.info(
                f"[{sid}] Starting render: {len(job.images)} images, "
                f"{job.total_duration_seconds}s duration"
            )

            reporter.update(RenderStage.PREPARING, 0, "Processing audio...")
            audio_path = await self._materialize_audio(session, job.audio)

            reporter.update(RenderStage.PREPARING, 5, f"Processing {len(job.images)} images...")
            image_paths = await self._materialize_images(session, job.images)

            if not image_paths:
                raise NoUsableImagesError("No images were processed successfully")

            logger.info(f"[{sid}] Processed {len(image_paths)} images successfully")

            timeline = plan_timeline(image_paths, job.total_duration_seconds)
            manifest_path = await self.workspace.materialize(
                session,
                render_concat_manifest(timeline).encode("utf-8"),
                MANIFEST_FILENAME,
            )
            logger.info(
                f"[{sid}] Created concat file with {len(image_paths)} images, "
                f"{job.total_duration_seconds / len(image_paths):.2f}s each"
            )

            reporter.update(RenderStage.ENCODING, PREPARE_PROGRESS_PERCENT, "Rendering video...")
            output_path = session.workspace_root / OUTPUT_FILENAME
            await self.encoder.encode(
                manifest_path=str(manifest_path),
                audio_path=str(audio_path),
                output_path=str(output_path),
                expected_duration_seconds=job.total_duration_seconds,
                progress_callback=reporter.encode_progress,
            )

            reporter.update(RenderStage.PACKAGING, 99, "Reading output file...")
            artifact = await self.packager.pack(output_path)

            reporter.update(RenderStage.COMPLETED, 100, "Render complete")
            logger.info(f"[{sid}] Render complete in {time.monotonic() - started:.1f}s")
            return artifact

    async def _materialize_audio(self, session: RenderSession, ref: AssetRef) -> Path:
        """Resolve and write the audio track. Errors propagate."""
        try:
            data = await self.resolver.resolve(ref)
        except AssetResolutionError as e:
            logger.error(f"[{session.session_id}] Audio unavailable ({ref.describe()}): {e}")
            raise

        return await self.workspace.materialize(
            session, data, f"audio{ref.file_extension('.mp3')}"
        )

    async def _materialize_images(
        self,
        session: RenderSession,
        refs: tuple[AssetRef, ...],
    ) -> list[Path]:
        """Resolve images concurrently, skipping failures, keeping input order."""
        semaphore = asyncio.Semaphore(self.max_concurrent_fetches)

        async def materialize_one(index: int, ref: AssetRef) -> Optional[Path]:
            async with semaphore:
                try:
                    data = await self.resolver.resolve(ref)
                except AssetResolutionError as e:
                    logger.warning(
                        f"[{session.session_id}] Error processing image {index} "
                        f"({ref.describe()}): {e}"
                    )
                    return None

                return await self.workspace.materialize(
                    session, data, f"image_{index:03d}{ref.file_extension('.png')}"
                )

        results = await asyncio.gather(
            *(materialize_one(i, ref) for i, ref in enumerate(refs))
        )
        return [path for path in results if path is not None]


class _ProgressReporter:
    """Logs progress and forwards it, never letting the percentage go backwards."""

    def __init__(
        self,
        session_id: str,
        callback: Optional[Callable[[RenderProgress], None]],
    ):
        self.session_id = session_id
        self.callback = callback
        self.percent = 0.0
        self._last_logged_decile = -1

    def update(self, stage: RenderStage, percent: float, step: str) -> None:
        percent = max(self.percent, min(100.0, percent))
        self.percent = percent

        if self.callback:
            try:
                self.callback(RenderProgress(
                    session_id=self.session_id,
                    stage=stage,
                    progress_percent=percent,
                    current_step=step,
                ))
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}")

    def encode_progress(self, fraction: float) -> None:
        decile = int(fraction * 10)
        if decile > self._last_logged_decile:
            self._last_logged_decile = decile
            logger.info(f"[{self.session_id}] Processing: {fraction * 100:.1f}% done")

        percent = PREPARE_PROGRESS_PERCENT + fraction * (98.0 - PREPARE_PROGRESS_PERCENT)
        self.update(RenderStage.ENCODING, percent, "Rendering video...")


class RenderPipelineError(Exception):
    """Exception raised when a render cannot proceed."""
    pass


class NoUsableImagesError(RenderPipelineError):
    """Every image failed to resolve."""
    pass
