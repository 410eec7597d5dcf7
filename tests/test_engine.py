"""Tests for the engine module."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from clipcast.engine import STAGES, EngineResult, Stage, process, select_clips
from clipcast.errors import EncodeError, PipelineError, PublishError, ValidationError
from clipcast.models import PublishReceipt, TimeRange


class TestEngineResult:
    def test_defaults(self):
        r = EngineResult(output_path=Path("out.mp4"))
        assert r.title == ""
        assert r.captions == []
        assert r.receipt is None
        assert r.clips_selected == 0
        assert r.duration_original == 0.0
        assert r.stages == []


class TestSelectClips:
    def test_first_n_in_arrival_order(self):
        suggestions = [TimeRange(start=float(i), end=float(i) + 1) for i in range(5)]
        assert select_clips(suggestions, 3) == suggestions[:3]

    def test_fewer_than_n(self):
        suggestions = [TimeRange(start=1.0, end=2.0)]
        assert select_clips(suggestions, 3) == suggestions

    def test_invalid_skipped(self):
        suggestions = [
            TimeRange(start=5.0, end=3.0),
            TimeRange(start=1.0, end=2.0),
        ]
        assert select_clips(suggestions, 3) == [TimeRange(start=1.0, end=2.0)]

    def test_clamped_to_duration(self):
        suggestions = [
            TimeRange(start=10.0, end=40.0),
            TimeRange(start=50.0, end=60.0),
        ]
        assert select_clips(suggestions, 3, duration=30.0) == [TimeRange(start=10.0, end=30.0)]


# ---------------------------------------------------------------------------
# process (every stage collaborator mocked)
# ---------------------------------------------------------------------------

WINDOWS = [
    TimeRange(start=0.0, end=60.0),
    TimeRange(start=54.0, end=114.0),
]


@pytest.fixture
def source(tmp_path) -> Path:
    path = tmp_path / "source.mp4"
    path.write_bytes(b"video")
    return path


@pytest.fixture
def stages():
    """Patch every media step the engine drives."""
    mocks = {
        "analyze_silence": MagicMock(
            return_value=[TimeRange(start=0.0, end=5.0), TimeRange(start=10.0)]
        ),
        "apply_silence_cut": MagicMock(side_effect=lambda src, kept, out: out),
        "accelerate": MagicMock(side_effect=lambda src, out, factor: out),
        "downscale": MagicMock(side_effect=lambda src, out, res: out),
        "divide_into_windows": MagicMock(
            side_effect=lambda src, out_dir, cfg, duration=None: [
                (w, out_dir / f"part_{i}.mp4") for i, w in enumerate(WINDOWS)
            ]
        ),
        "cut_clips": MagicMock(
            side_effect=lambda src, clips, out_dir: [
                out_dir / f"clip_{i}.mp4" for i in range(len(clips))
            ]
        ),
        "assemble_final": MagicMock(),
    }
    with patch.multiple("clipcast.engine", **mocks), \
            patch("clipcast.engine.ffutil") as mock_ff:
        mock_ff.probe.side_effect = [
            MagicMock(duration=600.0),
            MagicMock(duration=114.0),
            MagicMock(duration=25.0),
        ]
        mocks["ffutil"] = mock_ff
        yield mocks


def _write_final(clip_paths, output_path, title, captions, scratch_dir):
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(b"final")
    return output_path


@pytest.fixture
def analyzer():
    a = MagicMock()
    a.suggest_cuts.side_effect = [
        [TimeRange(start=5.0, end=15.0)],
        [TimeRange(start=1.0, end=9.0), TimeRange(start=20.0, end=30.0)],
    ]
    a.suggest_title_and_captions.return_value = ("A title", ["one", "two"])
    return a


@pytest.fixture
def publisher():
    p = MagicMock()
    p.publish.return_value = PublishReceipt(publish_id="pub-1")
    return p


class TestProcess:
    def test_full_run(self, config, source, stages, analyzer, publisher):
        result = process(source, config, analyzer, publisher, run_id="run1")

        assert result.output_path == config.paths.output_dir / "final_run1.mp4"
        assert result.title == "A title"
        assert result.captions == ["one", "two"]
        assert result.receipt == PublishReceipt(publish_id="pub-1")
        assert result.duration_original == 600.0
        assert result.duration_final == 25.0
        assert result.kept_segments == 2
        assert result.silence_removed == 5.0
        assert result.windows == 2
        assert result.suggestions == 3
        assert result.clips_selected == 3
        publisher.publish.assert_called_once_with(
            result.output_path, "A title", ["one", "two"]
        )

    def test_stages_in_order(self, config, source, stages, analyzer, publisher):
        result = process(source, config, analyzer, publisher, run_id="run1")
        assert result.stages == STAGES

    def test_suggestions_shifted_by_window_start(self, config, source, stages, analyzer, publisher):
        config.processing.max_clips = 2
        process(source, config, analyzer, publisher, run_id="run1")

        selected = stages["cut_clips"].call_args[0][1]
        assert selected == [
            TimeRange(start=5.0, end=15.0),
            TimeRange(start=55.0, end=63.0),
        ]

    def test_windows_use_reduced_duration(self, config, source, stages, analyzer, publisher):
        process(source, config, analyzer, publisher, run_id="run1")
        _, kwargs = stages["divide_into_windows"].call_args
        assert kwargs["duration"] == 114.0

    def test_captions_from_first_clip(self, config, source, stages, analyzer, publisher):
        process(source, config, analyzer, publisher, run_id="run1")
        clips_dir = config.paths.temp_dir / "run1" / "clips"
        analyzer.suggest_title_and_captions.assert_called_once_with(clips_dir / "clip_0.mp4")

    def test_scratch_removed_on_success(self, config, source, stages, analyzer, publisher):
        process(source, config, analyzer, publisher, run_id="run1")
        assert not (config.paths.temp_dir / "run1").exists()
        assert source.exists()

    def test_owned_source_removed(self, config, source, stages, analyzer, publisher):
        process(source, config, analyzer, publisher, run_id="run1", own_source=True)
        assert not source.exists()

    def test_progress_reported(self, config, source, stages, analyzer, publisher):
        calls = []
        process(
            source, config, analyzer, publisher,
            run_id="run1", on_progress=lambda s, f: calls.append((s, f)),
        )
        assert [s for s, _ in calls] == [s.value for s in STAGES]
        assert calls[0][1] == 0.0
        assert calls[-1] == ("cleaned_up", 1.0)

    def test_no_suggestions_fails_at_selection(self, config, source, stages, analyzer, publisher):
        analyzer.suggest_cuts.side_effect = None
        analyzer.suggest_cuts.return_value = []

        with pytest.raises(PipelineError) as exc_info:
            process(source, config, analyzer, publisher, run_id="run1")

        assert exc_info.value.stage is Stage.CLIPS_SELECTED
        assert isinstance(exc_info.value.cause, ValidationError)
        stages["cut_clips"].assert_not_called()
        publisher.publish.assert_not_called()

    def test_encode_failure_reports_stage_and_cleans_up(
        self, config, source, stages, analyzer, publisher
    ):
        stages["accelerate"].side_effect = EncodeError("ffmpeg speed change failed")

        with pytest.raises(PipelineError) as exc_info:
            process(source, config, analyzer, publisher, run_id="run1", own_source=True)

        assert exc_info.value.stage is Stage.SPEED_ADJUSTED
        assert isinstance(exc_info.value.__cause__, EncodeError)
        assert "speed_adjusted" in str(exc_info.value)
        assert not (config.paths.temp_dir / "run1").exists()
        assert not source.exists()
        stages["downscale"].assert_not_called()

    def test_publish_failure(self, config, source, stages, analyzer, publisher):
        publisher.publish.side_effect = PublishError("upload rejected")

        with pytest.raises(PipelineError) as exc_info:
            process(source, config, analyzer, publisher, run_id="run1")

        assert exc_info.value.stage is Stage.PUBLISHED
        assert not (config.paths.temp_dir / "run1").exists()

    def test_failed_publish_removes_final_cut(self, config, source, stages, analyzer, publisher):
        stages["assemble_final"].side_effect = _write_final
        publisher.publish.side_effect = PublishError("upload rejected")

        with pytest.raises(PipelineError):
            process(source, config, analyzer, publisher, run_id="run1")

        assert not (config.paths.output_dir / "final_run1.mp4").exists()

    def test_failed_assembly_removes_partial_final_cut(
        self, config, source, stages, analyzer, publisher
    ):
        stages["assemble_final"].side_effect = _write_final
        stages["ffutil"].probe.side_effect = [
            MagicMock(duration=600.0),
            MagicMock(duration=114.0),
            EncodeError("ffprobe failed"),
        ]

        with pytest.raises(PipelineError) as exc_info:
            process(source, config, analyzer, publisher, run_id="run1")

        assert exc_info.value.stage is Stage.FINAL_ASSEMBLED
        assert not (config.paths.output_dir / "final_run1.mp4").exists()
        publisher.publish.assert_not_called()

    def test_final_cut_kept_after_publish(self, config, source, stages, analyzer, publisher):
        stages["assemble_final"].side_effect = _write_final
        result = process(source, config, analyzer, publisher, run_id="run1")
        assert result.output_path.read_bytes() == b"final"

    def test_generated_run_id(self, config, source, stages, analyzer, publisher):
        result = process(source, config, analyzer, publisher)
        assert result.output_path.name.startswith("final_")
        assert result.output_path.suffix == ".mp4"
