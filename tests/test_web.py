"""Unit tests for the clipcast web API."""

import io
import json
from unittest.mock import MagicMock, patch

import pytest

from clipcast.engine import EngineResult, Stage
from clipcast.errors import PipelineError, ValidationError
from clipcast.models import PublishReceipt
from clipcast.web import create_app


@pytest.fixture
def app(tmp_path, config):
    app = create_app(config, work_dir=tmp_path / "jobs")
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _upload(client, filename="test.mp4", content=b"fake video data"):
    return client.post(
        "/api/upload",
        data={"file": (io.BytesIO(content), filename)},
        content_type="multipart/form-data",
    )


def _events(resp) -> list[dict]:
    body = resp.get_data(as_text=True)
    return [
        json.loads(line[len("data: "):])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


class TestHealth:
    def test_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"


class TestUpload:
    def test_upload_success(self, client):
        resp = _upload(client)
        assert resp.status_code == 200
        data = resp.get_json()
        assert "job_id" in data
        assert data["filename"] == "test.mp4"

    def test_upload_no_file(self, client):
        resp = client.post("/api/upload")
        assert resp.status_code == 400

    def test_upload_creates_file(self, client, tmp_path):
        resp = _upload(client, content=b"CONTENT")
        job_id = resp.get_json()["job_id"]
        input_file = tmp_path / "jobs" / job_id / "input.mp4"
        assert input_file.exists()
        assert input_file.read_bytes() == b"CONTENT"


class TestProcess:
    def test_process_unknown_job(self, client):
        resp = client.post("/api/jobs/nonexistent/process")
        assert resp.status_code == 404

    @patch("clipcast.web.routes.build_collaborators")
    @patch("clipcast.web.routes.process")
    def test_process_runs_pipeline(self, mock_process, mock_build, client, config, tmp_path):
        analyzer, publisher = MagicMock(), MagicMock()
        mock_build.return_value = (MagicMock(), analyzer, publisher)

        def fake_process(source, cfg, an, pub, *, run_id, on_progress):
            on_progress("fetched", 0.0)
            return EngineResult(
                output_path=tmp_path / "final.mp4",
                title="Title",
                captions=["a"],
                receipt=PublishReceipt(publish_id="pub-1"),
                clips_selected=2,
            )

        mock_process.side_effect = fake_process
        job_id = _upload(client).get_json()["job_id"]

        resp = client.post(f"/api/jobs/{job_id}/process")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "started"

        events = _events(client.get(f"/api/jobs/{job_id}/progress"))
        assert events[0] == {"stage": "fetched", "progress": 0.0}
        assert events[-1]["stage"] == "complete"
        assert events[-1]["result"]["publish_id"] == "pub-1"

        args, kwargs = mock_process.call_args
        assert args[1] is config
        assert args[2] is analyzer
        assert kwargs["run_id"] == f"web_{job_id}"

        status = client.get(f"/api/jobs/{job_id}/status").get_json()
        assert status["status"] == "done"
        assert status["result"]["title"] == "Title"

    @patch("clipcast.web.routes.build_collaborators")
    @patch("clipcast.web.routes.process")
    def test_pipeline_failure_reports_stage(self, mock_process, mock_build, client):
        mock_build.return_value = (MagicMock(), MagicMock(), MagicMock())
        mock_process.side_effect = PipelineError(
            Stage.CLIPS_SELECTED, ValidationError("analysis returned no usable cut suggestions")
        )
        job_id = _upload(client).get_json()["job_id"]

        client.post(f"/api/jobs/{job_id}/process")
        events = _events(client.get(f"/api/jobs/{job_id}/progress"))

        assert events[-1]["stage"] == "clips_selected"
        status = client.get(f"/api/jobs/{job_id}/status").get_json()
        assert status["status"] == "error"
        assert status["stage"] == "clips_selected"
        assert "no usable cut suggestions" in status["error"]

    def test_progress_without_processing(self, client):
        job_id = _upload(client).get_json()["job_id"]
        resp = client.get(f"/api/jobs/{job_id}/progress")
        assert resp.status_code == 409


class TestStatus:
    def test_status_after_upload(self, client):
        job_id = _upload(client).get_json()["job_id"]

        resp = client.get(f"/api/jobs/{job_id}/status")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "uploaded"

    def test_status_unknown_job(self, client):
        resp = client.get("/api/jobs/nonexistent/status")
        assert resp.status_code == 404


class TestDownload:
    def test_download_not_complete(self, client):
        job_id = _upload(client).get_json()["job_id"]

        resp = client.get(f"/api/jobs/{job_id}/result")
        assert resp.status_code == 409

    def test_download_unknown_job(self, client):
        resp = client.get("/api/jobs/nonexistent/result")
        assert resp.status_code == 404


class TestWatchState:
    def test_empty(self, client):
        assert client.get("/api/watch-state").get_json() == {}

    def test_reports_committed_items(self, client, config):
        config.paths.watch_state_file.write_text(json.dumps({"UC1": "vid1"}))
        assert client.get("/api/watch-state").get_json() == {"UC1": "vid1"}
