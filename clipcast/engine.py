"""Orchestrator — runs the clip pipeline for one source video."""

import logging
import shutil
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator

from clipcast import ffutil
from clipcast.analyzers.silence import analyze_silence
from clipcast.analyzers.windows import divide_into_windows
from clipcast.config import Config
from clipcast.editors.captions import assemble_final
from clipcast.editors.cut import apply_silence_cut, cut_clips
from clipcast.editors.transform import accelerate, downscale
from clipcast.errors import PipelineError, ValidationError
from clipcast.models import PublishReceipt, TimeRange, complement_ranges

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    FETCHED = "fetched"
    SILENCE_TRIMMED = "silence_trimmed"
    SPEED_ADJUSTED = "speed_adjusted"
    DOWNSCALED = "downscaled"
    WINDOWED = "windowed"
    ANALYZED = "analyzed"
    CLIPS_SELECTED = "clips_selected"
    CAPTIONS_GENERATED = "captions_generated"
    FINAL_ASSEMBLED = "final_assembled"
    PUBLISHED = "published"
    CLEANED_UP = "cleaned_up"


STAGES = list(Stage)


@dataclass
class PipelineRun:
    """Artifacts owned by one processing attempt, removed when it ends."""

    run_id: str
    scratch_dir: Path
    artifacts: list[Path] = field(default_factory=list)
    completed: list[Stage] = field(default_factory=list)

    def track(self, path: Path) -> Path:
        self.artifacts.append(path)
        return path

    def cleanup(self) -> None:
        for path in self.artifacts:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except IsADirectoryError:
                shutil.rmtree(path, ignore_errors=True)
        shutil.rmtree(self.scratch_dir, ignore_errors=True)
        logger.debug("Run %s: removed %d artifacts", self.run_id, len(self.artifacts))


@dataclass
class EngineResult:
    output_path: Path
    title: str = ""
    captions: list[str] = field(default_factory=list)
    receipt: PublishReceipt | None = None
    kept_segments: int = 0
    silence_removed: float = 0.0
    windows: int = 0
    suggestions: int = 0
    clips_selected: int = 0
    duration_original: float = 0.0
    duration_final: float = 0.0
    stages: list[Stage] = field(default_factory=list)


def select_clips(
    suggestions: list[TimeRange], max_clips: int, duration: float | None = None
) -> list[TimeRange]:
    """Take the first *max_clips* valid suggestions in arrival order.

    Suggestions are clamped to *duration* when given; any that become empty
    or were invalid to begin with are skipped.
    """
    selected: list[TimeRange] = []
    for s in suggestions:
        if duration is not None and s.end is not None:
            s = TimeRange(start=s.start, end=min(s.end, duration))
        if not s.is_valid() or s.end is None:
            logger.warning("Skipping invalid cut suggestion [%s, %s)", s.start, s.end)
            continue
        selected.append(s)
        if len(selected) == max_clips:
            break
    return selected


def process(
    source: Path,
    config: Config,
    analyzer,
    publisher,
    *,
    run_id: str | None = None,
    own_source: bool = False,
    on_progress: Callable[[str, float], None] | None = None,
) -> EngineResult:
    """Execute the full pipeline on *source* and publish the result.

    Args:
        source: Downloaded or local source video.
        config: Loaded configuration.
        analyzer: Provides ``suggest_cuts`` and ``suggest_title_and_captions``.
        publisher: Provides ``publish(path, title, captions)``.
        run_id: Names the scratch directory; must be unique per concurrent run.
        own_source: Delete *source* with the other artifacts when done.
        on_progress: Optional callback(stage_name, fraction_complete).

    Raises:
        PipelineError: carrying the stage that failed and the original cause.
    """
    run_id = run_id or uuid.uuid4().hex[:12]
    run = PipelineRun(run_id=run_id, scratch_dir=config.paths.temp_dir / run_id)
    if own_source:
        run.track(source)

    def _progress(stage: Stage) -> None:
        logger.info("Run %s: %s", run_id, stage.value)
        if on_progress:
            on_progress(stage.value, STAGES.index(stage) / (len(STAGES) - 1))

    @contextmanager
    def _stage(stage: Stage) -> Iterator[None]:
        try:
            yield
        except Exception as exc:
            logger.error("Run %s failed at %s: %s", run_id, stage.value, exc)
            raise PipelineError(stage, exc) from exc
        run.completed.append(stage)
        _progress(stage)

    suffix = source.suffix or ".mp4"
    result = EngineResult(output_path=config.paths.output_dir / f"final_{run_id}{suffix}")
    published = False

    try:
        with _stage(Stage.FETCHED):
            ffutil.check_ffmpeg()
            run.scratch_dir.mkdir(parents=True, exist_ok=True)
            result.duration_original = ffutil.probe(source).duration

        with _stage(Stage.SILENCE_TRIMMED):
            kept = analyze_silence(source, config.silence_cut)
            result.kept_segments = len(kept)
            if kept:
                result.silence_removed = sum(
                    gap.duration(result.duration_original)
                    for gap in complement_ranges(kept, result.duration_original)
                )
            trimmed = apply_silence_cut(
                source, kept, run.track(run.scratch_dir / f"no_silence{suffix}")
            )

        with _stage(Stage.SPEED_ADJUSTED):
            accelerated = accelerate(
                trimmed,
                run.track(run.scratch_dir / f"accelerated{suffix}"),
                config.processing.acceleration_factor,
            )

        with _stage(Stage.DOWNSCALED):
            reduced = downscale(
                accelerated,
                run.track(run.scratch_dir / f"reduced{suffix}"),
                config.processing.target_resolution,
            )

        with _stage(Stage.WINDOWED):
            reduced_duration = ffutil.probe(reduced).duration
            parts_dir = run.track(run.scratch_dir / "parts")
            parts_dir.mkdir()
            windows = divide_into_windows(
                reduced, parts_dir, config.processing, duration=reduced_duration
            )
            result.windows = len(windows)

        with _stage(Stage.ANALYZED):
            suggestions: list[TimeRange] = []
            for window, part_path in windows:
                for s in analyzer.suggest_cuts(part_path):
                    # Window answers are relative to the window's own start
                    suggestions.append(s.shift(window.start))
            result.suggestions = len(suggestions)

        with _stage(Stage.CLIPS_SELECTED):
            selected = select_clips(suggestions, config.processing.max_clips, reduced_duration)
            if not selected:
                raise ValidationError("analysis returned no usable cut suggestions")
            clips_dir = run.track(run.scratch_dir / "clips")
            clips_dir.mkdir()
            clip_paths = cut_clips(reduced, selected, clips_dir)
            result.clips_selected = len(clip_paths)

        with _stage(Stage.CAPTIONS_GENERATED):
            result.title, result.captions = analyzer.suggest_title_and_captions(clip_paths[0])

        with _stage(Stage.FINAL_ASSEMBLED):
            assemble_final(
                clip_paths, result.output_path, result.title, result.captions, run.scratch_dir
            )
            result.duration_final = ffutil.probe(result.output_path).duration

        with _stage(Stage.PUBLISHED):
            result.receipt = publisher.publish(result.output_path, result.title, result.captions)
        published = True
    finally:
        if not published:
            # The final cut only outlives a run that reached PUBLISHED
            result.output_path.unlink(missing_ok=True)
        run.cleanup()

    run.completed.append(Stage.CLEANED_UP)
    _progress(Stage.CLEANED_UP)
    result.stages = list(run.completed)
    logger.info("Run %s completed: %s", run_id, result.output_path)
    return result
