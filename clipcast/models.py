"""Shared data types used across clipcast."""

from dataclasses import dataclass, replace
from enum import Enum

from clipcast.errors import ValidationError


@dataclass(frozen=True)
class TimeRange:
    """A half-open ``[start, end)`` range in seconds.

    ``end=None`` means the range runs to the end of the stream.
    """

    start: float
    end: float | None = None

    @property
    def open_ended(self) -> bool:
        return self.end is None

    def duration(self, total: float) -> float:
        """Length of the range, resolving an open end against *total*."""
        end = total if self.end is None else self.end
        return max(end - self.start, 0.0)

    def resolve(self, total: float) -> "TimeRange":
        if self.end is not None:
            return self
        return replace(self, end=total)

    def shift(self, offset: float) -> "TimeRange":
        end = None if self.end is None else self.end + offset
        return TimeRange(start=self.start + offset, end=end)

    def is_valid(self) -> bool:
        if self.start < 0:
            return False
        return self.end is None or self.end > self.start

    def validate(self) -> "TimeRange":
        if not self.is_valid():
            raise ValidationError(f"Invalid time range [{self.start}, {self.end})")
        return self


class SilenceEventKind(str, Enum):
    START = "start"
    END = "end"


@dataclass(frozen=True)
class SilenceEvent:
    """One ``silence_start``/``silence_end`` line from the detector log."""

    kind: SilenceEventKind
    time: float


@dataclass
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
    width: int
    height: int
    fps: float
    audio_sample_rate: int
    codec_video: str
    codec_audio: str


@dataclass(frozen=True)
class PublishReceipt:
    publish_id: str
    attempts: int = 1


def merge_ranges(ranges: list[TimeRange]) -> list[TimeRange]:
    """Sort concrete ranges and coalesce those that overlap or touch."""
    merged: list[TimeRange] = []
    for r in sorted(ranges, key=lambda r: r.start):
        if r.end is None:
            raise ValidationError("merge_ranges requires concrete ranges")
        if merged and r.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = TimeRange(start=last.start, end=max(last.end, r.end))
        else:
            merged.append(r)
    return merged


def complement_ranges(ranges: list[TimeRange], total: float) -> list[TimeRange]:
    """Return the gaps of ``[0, total)`` not covered by *ranges*."""
    resolved = [r.resolve(total) for r in ranges]
    gaps: list[TimeRange] = []
    cursor = 0.0
    for r in merge_ranges(resolved):
        if r.start > cursor:
            gaps.append(TimeRange(start=cursor, end=min(r.start, total)))
        cursor = max(cursor, r.end)
        if cursor >= total:
            break
    if cursor < total:
        gaps.append(TimeRange(start=cursor, end=total))
    return gaps
