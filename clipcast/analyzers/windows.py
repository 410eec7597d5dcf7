"""Sliding-window segmentation of a timeline into overlapping parts."""

import logging
from pathlib import Path

from clipcast import ffutil
from clipcast.config import ProcessingConfig
from clipcast.errors import ValidationError
from clipcast.models import TimeRange

logger = logging.getLogger(__name__)


def compute_windows(duration: float, parts: int, step_percent: float) -> list[TimeRange]:
    """Split ``[0, duration)`` into *parts* overlapping windows.

    Every window is ``duration / parts`` long and consecutive windows overlap
    by *step_percent* of that length, so the stride is ``length - overlap``.
    Windows are not re-spaced to fill the timeline; only the end is clamped
    to *duration*.
    """
    if duration <= 0:
        raise ValidationError(f"duration must be positive, got {duration}")
    if parts < 1:
        raise ValidationError(f"parts must be at least 1, got {parts}")
    if not 0 <= step_percent <= 100:
        raise ValidationError(f"step_percent must be within 0-100, got {step_percent}")

    part_length = duration / parts
    overlap = part_length * step_percent / 100
    stride = part_length - overlap

    windows: list[TimeRange] = []
    for i in range(parts):
        start = i * stride
        end = min(start + part_length, duration)
        windows.append(TimeRange(start=start, end=end))
    return windows


def divide_into_windows(
    input_path: Path,
    output_dir: Path,
    config: ProcessingConfig,
    duration: float | None = None,
) -> list[tuple[TimeRange, Path]]:
    """Materialize each window of *input_path* as its own file in *output_dir*.

    *duration* is probed from the file when not supplied.
    """
    if duration is None:
        duration = ffutil.probe(input_path).duration
    windows = compute_windows(duration, config.window_parts, config.window_step_percent)

    parts: list[tuple[TimeRange, Path]] = []
    for i, window in enumerate(windows):
        part_path = output_dir / f"part_{i}{input_path.suffix}"
        ffutil.trim(input_path, part_path, window)
        parts.append((window, part_path))

    logger.info("Divided %s into %d windows", input_path.name, len(parts))
    return parts
