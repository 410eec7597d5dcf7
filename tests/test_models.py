"""Tests for the time range model."""

import pytest

from clipcast.errors import ValidationError
from clipcast.models import TimeRange, complement_ranges, merge_ranges


class TestTimeRange:
    def test_duration_concrete(self):
        assert TimeRange(start=2.0, end=7.5).duration(100.0) == 5.5

    def test_duration_open_end_uses_total(self):
        assert TimeRange(start=10.0).duration(25.0) == 15.0

    def test_resolve_replaces_sentinel(self):
        r = TimeRange(start=10.0).resolve(25.0)
        assert r == TimeRange(start=10.0, end=25.0)
        assert not r.open_ended

    def test_resolve_keeps_concrete(self):
        r = TimeRange(start=1.0, end=2.0)
        assert r.resolve(25.0) is r

    def test_valid(self):
        assert TimeRange(start=0.0, end=1.0).is_valid()
        assert TimeRange(start=3.0).is_valid()

    def test_invalid_end_before_start(self):
        assert not TimeRange(start=5.0, end=5.0).is_valid()
        assert not TimeRange(start=5.0, end=4.0).is_valid()

    def test_invalid_negative_start(self):
        assert not TimeRange(start=-1.0, end=4.0).is_valid()

    def test_validate_raises(self):
        with pytest.raises(ValidationError, match="Invalid time range"):
            TimeRange(start=5.0, end=1.0).validate()

    def test_shift(self):
        assert TimeRange(start=1.0, end=2.0).shift(54.0) == TimeRange(start=55.0, end=56.0)
        assert TimeRange(start=1.0).shift(3.0) == TimeRange(start=4.0)

    def test_frozen(self):
        r = TimeRange(start=1.0, end=2.0)
        with pytest.raises(AttributeError):
            r.start = 3.0


class TestMergeRanges:
    def test_overlapping_and_touching(self):
        ranges = [
            TimeRange(start=10.0, end=12.0),
            TimeRange(start=0.0, end=5.0),
            TimeRange(start=4.0, end=6.0),
            TimeRange(start=6.0, end=7.0),
        ]
        assert merge_ranges(ranges) == [
            TimeRange(start=0.0, end=7.0),
            TimeRange(start=10.0, end=12.0),
        ]

    def test_open_ended_rejected(self):
        with pytest.raises(ValidationError):
            merge_ranges([TimeRange(start=1.0)])


class TestComplementRanges:
    def test_gaps_between_kept(self):
        kept = [TimeRange(start=0.0, end=5.0), TimeRange(start=10.0)]
        assert complement_ranges(kept, 30.0) == [TimeRange(start=5.0, end=10.0)]

    def test_leading_and_trailing_gaps(self):
        kept = [TimeRange(start=2.0, end=4.0)]
        assert complement_ranges(kept, 10.0) == [
            TimeRange(start=0.0, end=2.0),
            TimeRange(start=4.0, end=10.0),
        ]

    def test_nothing_covered(self):
        assert complement_ranges([], 8.0) == [TimeRange(start=0.0, end=8.0)]
