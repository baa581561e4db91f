"""
Timeline Planner - Per-image display durations and the FFmpeg concat manifest.

The concat demuxer applies a ``duration`` directive to the entry it follows,
so the last image has to be listed a second time (without a duration) for
its own duration to take effect.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimelineEntry:
    """One image in the slideshow. ``display_seconds`` is None for the terminal repeat."""

    path: Path
    display_seconds: Optional[float]

    @property
    def is_terminal(self) -> bool:
        return self.display_seconds is None


def plan_timeline(
    image_paths: Sequence[Union[str, Path]],
    total_duration_seconds: float,
) -> list[TimelineEntry]:
    """
    Split the total duration evenly across the images.

    Durations are computed in whole milliseconds from rounded cumulative
    boundaries, so the per-entry values always add up to the rounded total
    no matter how many images there are.

    Args:
        image_paths: Materialized images in display order
        total_duration_seconds: Target video length

    Returns:
        One entry per image followed by the terminal repeat of the last image
    """
    if not image_paths:
        raise TimelineError("Cannot plan a timeline without images")
    if total_duration_seconds <= 0:
        raise TimelineError(f"Invalid duration: {total_duration_seconds}")

    count = len(image_paths)
    total_ms = round(total_duration_seconds * 1000)
    if total_ms < count:
        raise TimelineError(
            f"Duration {total_duration_seconds}s is too short for {count} images"
        )

    entries: list[TimelineEntry] = []
    previous_boundary = 0
    for index, image_path in enumerate(image_paths, start=1):
        boundary = round(total_ms * index / count)
        entries.append(
            TimelineEntry(
                path=Path(image_path),
                display_seconds=(boundary - previous_boundary) / 1000,
            )
        )
        previous_boundary = boundary

    entries.append(TimelineEntry(path=Path(image_paths[-1]), display_seconds=None))

    logger.debug(
        f"Planned timeline: {count} images, {total_duration_seconds / count:.3f}s each"
    )
    return entries


def timeline_duration(entries: Sequence[TimelineEntry]) -> float:
    """Sum of the non-terminal display durations."""
    return sum(e.display_seconds for e in entries if e.display_seconds is not None)


def _quote_concat_path(path: Path) -> str:
    # concat demuxer quoting: close the quote, emit an escaped quote, reopen
    normalized = str(path).replace("\\", "/")
    return "'" + normalized.replace("'", "'\\''") + "'"


def render_concat_manifest(entries: Sequence[TimelineEntry]) -> str:
    """Render timeline entries as an FFmpeg concat demuxer script."""
    lines = []
    for entry in entries:
        lines.append(f"file {_quote_concat_path(entry.path)}")
        if entry.display_seconds is not None:
            lines.append(f"duration {entry.display_seconds:.3f}")
    return "\n".join(lines) + "\n"


class TimelineError(ValueError):
    """Exception raised when a timeline cannot be planned."""
    pass
