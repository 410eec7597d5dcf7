"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import shutil
import subprocess
from pathlib import Path

from clipcast.errors import EncodeError, ValidationError
from clipcast.models import ProbeResult, TimeRange

logger = logging.getLogger(__name__)


class FFmpegNotFoundError(RuntimeError):
    pass


class NoAudioStreamError(ValueError):
    """Raised when the input file has no audio stream."""
    pass


def check_ffmpeg() -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def _run(cmd: list[str], action: str) -> subprocess.CompletedProcess:
    """Run an ffmpeg command, raising EncodeError on a non-zero exit."""
    logger.debug("Running %s: %s", action, " ".join(cmd))
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        stderr = result.stderr or ""
        raise EncodeError(f"ffmpeg {action} failed (rc={result.returncode}): {stderr[-500:]}")
    return result


def probe(input_path: Path) -> ProbeResult:
    """Extract media metadata via ffprobe."""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = _run(cmd, "probe")
    data = json.loads(result.stdout)

    video_stream = next(
        (s for s in data["streams"] if s["codec_type"] == "video"), None
    )
    audio_stream = next(
        (s for s in data["streams"] if s["codec_type"] == "audio"), None
    )

    if video_stream is None:
        raise ValueError(f"No video stream found in {input_path}")
    if audio_stream is None:
        raise NoAudioStreamError(
            f"No audio stream found in {input_path}; silence detection requires audio"
        )

    # Parse fps from r_frame_rate (e.g. "30/1")
    num, den = video_stream["r_frame_rate"].split("/")
    fps = int(num) / int(den)

    return ProbeResult(
        duration=float(data["format"]["duration"]),
        width=int(video_stream["width"]),
        height=int(video_stream["height"]),
        fps=fps,
        audio_sample_rate=int(audio_stream["sample_rate"]),
        codec_video=video_stream["codec_name"],
        codec_audio=audio_stream["codec_name"],
    )


def detect_silence(input_path: Path, threshold_db: float, min_duration: float) -> str:
    """Run FFmpeg silencedetect and return its raw stderr log."""
    cmd = [
        "ffmpeg",
        "-i", str(input_path),
        "-af", f"silencedetect=noise={threshold_db}dB:d={min_duration}",
        "-f", "null", "-",
    ]
    result = _run(cmd, "silencedetect")
    return result.stderr or ""


def _trim_args(seg: TimeRange) -> str:
    if seg.end is None:
        return f"start={seg.start}"
    return f"start={seg.start}:end={seg.end}"


def concat_segments(
    input_path: Path, segments: list[TimeRange], output_path: Path
) -> Path:
    """Concatenate keep-segments using a single ffmpeg filter_complex call.

    Uses trim/atrim + concat filters so no intermediate files are needed.
    A segment with an open end runs to the end of the input.
    """
    if not segments:
        raise ValueError("concat_segments called with empty segment list")

    n = len(segments)
    filter_parts: list[str] = []
    stream_labels: list[str] = []

    for i, seg in enumerate(segments):
        trim = _trim_args(seg)
        filter_parts.append(f"[0:v]trim={trim},setpts=PTS-STARTPTS[v{i}]")
        filter_parts.append(f"[0:a]atrim={trim},asetpts=PTS-STARTPTS[a{i}]")
        stream_labels.append(f"[v{i}][a{i}]")

    concat_input = "".join(stream_labels)
    filter_parts.append(f"{concat_input}concat=n={n}:v=1:a=1[outv][outa]")

    filter_complex = ";\n".join(filter_parts)

    cmd = [
        "ffmpeg", "-y",
        "-i", str(input_path),
        "-filter_complex", filter_complex,
        "-map", "[outv]",
        "-map", "[outa]",
        str(output_path),
    ]
    _run(cmd, "concat")
    return output_path


def _atempo_chain(factor: float) -> str:
    """Split *factor* into atempo stages, each within ffmpeg's 0.5–2.0 range."""
    stages: list[float] = []
    while factor > 2.0:
        stages.append(2.0)
        factor /= 2.0
    while factor < 0.5:
        stages.append(0.5)
        factor /= 0.5
    stages.append(factor)
    return ",".join(f"atempo={s:g}" for s in stages)


def change_speed(input_path: Path, output_path: Path, factor: float) -> Path:
    """Speed video and audio up (or down) by *factor*."""
    if factor <= 0:
        raise ValidationError(f"Speed factor must be positive, got {factor}")
    cmd = [
        "ffmpeg", "-y",
        "-i", str(input_path),
        "-filter:v", f"setpts=PTS/{factor:g}",
        "-filter:a", _atempo_chain(factor),
        str(output_path),
    ]
    _run(cmd, "speed change")
    return output_path


def parse_resolution(resolution: str) -> tuple[int, int]:
    """Parse "WIDTHxHEIGHT" into integers."""
    try:
        width, height = (int(v) for v in resolution.lower().split("x"))
    except ValueError:
        raise ValidationError(f"Invalid resolution {resolution!r}; expected WIDTHxHEIGHT")
    if width <= 0 or height <= 0:
        raise ValidationError(f"Invalid resolution {resolution!r}")
    return width, height


def scale(input_path: Path, output_path: Path, resolution: str) -> Path:
    width, height = parse_resolution(resolution)
    cmd = [
        "ffmpeg", "-y",
        "-i", str(input_path),
        "-vf", f"scale={width}:{height}",
        str(output_path),
    ]
    _run(cmd, "scale")
    return output_path


def trim(input_path: Path, output_path: Path, segment: TimeRange) -> Path:
    """Cut *segment* out of the input into a standalone file."""
    segment.validate()
    cmd = [
        "ffmpeg", "-y",
        "-ss", f"{segment.start}",
        "-i", str(input_path),
    ]
    if segment.end is not None:
        cmd += ["-t", f"{segment.end - segment.start}"]
    cmd.append(str(output_path))
    _run(cmd, "trim")
    return output_path


def concat_with_overlays(
    clip_paths: list[Path],
    output_path: Path,
    filters: list[str],
    list_path: Path,
) -> Path:
    """Join clips with the concat demuxer and apply drawtext *filters*.

    The concat list is written to *list_path* and removed afterwards.
    """
    if not clip_paths:
        raise ValueError("concat_with_overlays called with no clips")

    list_path.write_text(
        "\n".join(f"file '{p.resolve()}'" for p in clip_paths), encoding="utf-8"
    )
    cmd = [
        "ffmpeg", "-y",
        "-f", "concat", "-safe", "0",
        "-i", str(list_path),
    ]
    if filters:
        cmd += ["-vf", ",".join(filters)]
    cmd += ["-c:v", "libx264", "-c:a", "aac", str(output_path)]
    try:
        _run(cmd, "final assembly")
    finally:
        list_path.unlink(missing_ok=True)
    return output_path


def copy(input_path: Path, output_path: Path) -> Path:
    shutil.copy2(input_path, output_path)
    return output_path
