"""Cut editors — silence removal and clip extraction."""

import logging
from pathlib import Path

from clipcast import ffutil
from clipcast.models import TimeRange

logger = logging.getLogger(__name__)


def apply_silence_cut(
    input_path: Path,
    kept: list[TimeRange],
    output_path: Path,
) -> Path:
    """Keep only the *kept* ranges of the input, in order.

    An empty *kept* list means no silence was detected, so the input is
    copied unchanged.
    """
    if not kept:
        logger.info("No silence detected in %s, copying unchanged", input_path.name)
        return ffutil.copy(input_path, output_path)

    logger.info("Removing silence from %s (%d kept segments)", input_path.name, len(kept))
    return ffutil.concat_segments(input_path, kept, output_path)


def cut_clips(
    input_path: Path,
    clips: list[TimeRange],
    output_dir: Path,
) -> list[Path]:
    """Extract each clip range of *input_path* as its own file."""
    paths: list[Path] = []
    for i, clip in enumerate(clips):
        clip_path = output_dir / f"clip_{i}{input_path.suffix}"
        ffutil.trim(input_path, clip_path, clip)
        paths.append(clip_path)
    return paths
