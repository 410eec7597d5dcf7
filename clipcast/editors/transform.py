"""Whole-file transforms: speed-up and downscale."""

import logging
from pathlib import Path

from clipcast import ffutil

logger = logging.getLogger(__name__)


def accelerate(input_path: Path, output_path: Path, factor: float) -> Path:
    logger.info("Accelerating %s by factor %g", input_path.name, factor)
    return ffutil.change_speed(input_path, output_path, factor)


def downscale(input_path: Path, output_path: Path, resolution: str) -> Path:
    logger.info("Reducing resolution of %s to %s", input_path.name, resolution)
    return ffutil.scale(input_path, output_path, resolution)
