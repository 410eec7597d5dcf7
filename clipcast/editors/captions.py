"""Caption editor — title and caption overlays on the final cut."""

import logging
from pathlib import Path

from clipcast import ffutil
from clipcast.models import TimeRange

logger = logging.getLogger(__name__)

TITLE_SECONDS = 5.0
CAPTION_SECONDS = 3.0

_TITLE_STYLE = "x=(w-text_w)/2:y=50:fontsize=48:fontcolor=white:box=1:boxcolor=black@0.5"
_CAPTION_STYLE = "x=(w-text_w)/2:y=h-100:fontsize=36:fontcolor=white:box=1:boxcolor=black@0.5"


def _escape_drawtext(text: str) -> str:
    """Quote *text* as a drawtext option value inside a ``-vf`` filtergraph.

    ffmpeg unescapes twice: once when splitting the filtergraph and again
    when splitting the filter's ``key=value`` options. Text is passed with
    ``expansion=none`` so ``%`` needs no escaping.
    """
    for ch in ("\\", "'", ":"):
        text = text.replace(ch, "\\" + ch)
    for ch in ("\\", "'", "[", "]", ",", ";"):
        text = text.replace(ch, "\\" + ch)
    return text


def overlay_windows(captions: list[str]) -> list[TimeRange]:
    """Timing of each caption: one after another once the title is gone."""
    windows: list[TimeRange] = []
    for i in range(len(captions)):
        start = TITLE_SECONDS + i * CAPTION_SECONDS
        windows.append(TimeRange(start=start, end=start + CAPTION_SECONDS))
    return windows


def build_text_filters(title: str, captions: list[str]) -> list[str]:
    filters: list[str] = []
    if title:
        filters.append(
            f"drawtext=text={_escape_drawtext(title)}:expansion=none:{_TITLE_STYLE}"
            f":enable='between(t,0,{TITLE_SECONDS:g})'"
        )
    for caption, window in zip(captions, overlay_windows(captions)):
        filters.append(
            f"drawtext=text={_escape_drawtext(caption)}:expansion=none:{_CAPTION_STYLE}"
            f":enable='between(t,{window.start:g},{window.end:g})'"
        )
    return filters


def assemble_final(
    clip_paths: list[Path],
    output_path: Path,
    title: str,
    captions: list[str],
    scratch_dir: Path,
) -> Path:
    """Concatenate the selected clips and burn in the title and captions."""
    logger.info("Generating final cut with %d clips", len(clip_paths))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return ffutil.concat_with_overlays(
        clip_paths,
        output_path,
        build_text_filters(title, captions),
        list_path=scratch_dir / "final_concat.txt",
    )
