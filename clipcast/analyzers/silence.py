"""Silence detection analyzer."""

import re
from pathlib import Path

from clipcast import ffutil
from clipcast.config import SilenceCutConfig
from clipcast.models import SilenceEvent, SilenceEventKind, TimeRange

_EVENT_RE = re.compile(r"silence_(start|end):\s*(\S+)")


def parse_silence_events(log: str) -> list[SilenceEvent]:
    """Extract start/end events from silencedetect output, in log order.

    Lines without an event are ignored, and so are events whose time token
    does not parse as a number.
    """
    events: list[SilenceEvent] = []
    for line in log.splitlines():
        m = _EVENT_RE.search(line)
        if m is None:
            continue
        try:
            t = float(m.group(2))
        except ValueError:
            continue
        events.append(SilenceEvent(kind=SilenceEventKind(m.group(1)), time=t))
    return events


def kept_segments(log: str) -> list[TimeRange]:
    """Turn a silencedetect log into the non-silent ranges to keep.

    A kept range is closed by the next ``silence_start``; whatever follows
    the last ``silence_end`` is kept through to the end of the stream,
    unless the stream ends inside a silence. An empty result means no
    silence was found and the input should be used unmodified.
    """
    kept: list[TimeRange] = []
    last_end = 0.0
    in_silence = False

    for event in parse_silence_events(log):
        if event.kind is SilenceEventKind.START:
            if event.time > last_end:
                kept.append(TimeRange(start=last_end, end=event.time))
            in_silence = True
        else:
            last_end = event.time
            in_silence = False

    if last_end > 0 and not in_silence:
        kept.append(TimeRange(start=last_end, end=None))

    return kept


def analyze_silence(input_path: Path, config: SilenceCutConfig) -> list[TimeRange]:
    """Run silencedetect on *input_path* and return the ranges to keep."""
    log = ffutil.detect_silence(
        input_path,
        threshold_db=config.threshold_db,
        min_duration=config.min_duration,
    )
    return kept_segments(log)
