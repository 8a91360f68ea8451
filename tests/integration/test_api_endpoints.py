"""Integration tests for API endpoints."""

import os
import time

import pytest
from fastapi.testclient import TestClient

from dvmux.api.app import create_app
from dvmux.api.dependencies import get_job_manager, get_tool_locator
from dvmux.pipeline.manager import JobManager
from dvmux.tools.locator import ToolLocator

pytestmark = pytest.mark.integration

posix_only = pytest.mark.skipif(os.name != "posix", reason="fake tools are shell wrappers")


@pytest.fixture
def manager(settings, tool_log):
    return JobManager(settings)


@pytest.fixture
def client(settings, manager):
    app = create_app()
    app.dependency_overrides[get_job_manager] = lambda: manager
    app.dependency_overrides[get_tool_locator] = lambda: ToolLocator(settings)
    return TestClient(app)


def _wait_for_terminal(client, job_id, timeout=30):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        data = client.get(f"/api/v1/jobs/{job_id}").json()
        if data["state"] in ("succeeded", "failed", "cancelled"):
            return data
        time.sleep(0.05)
    raise AssertionError(f"job {job_id} did not finish")


class TestHealthEndpoint:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "version" in data


class TestToolEndpoints:
    @posix_only
    def test_tools_available(self, client):
        response = client.get("/api/v1/tools")
        assert response.status_code == 200
        data = response.json()
        assert data["missing"] == []
        assert set(data["tools"]) == {"mkvextract", "ffmpeg", "mp4muxer", "MP4Box"}

    def test_tools_missing(self, settings):
        app = create_app()
        cfg = settings.model_copy(update={"mp4box_bin": "dvmux-test-missing-mp4box"})
        app.dependency_overrides[get_tool_locator] = lambda: ToolLocator(cfg)
        data = TestClient(app).get("/api/v1/tools").json()
        assert "dvmux-test-missing-mp4box" in data["missing"]
        assert data["tools"]["MP4Box"]["path"] is None

    def test_frame_rates(self, client):
        data = client.get("/api/v1/frame-rates").json()
        rates = {r["id"]: r["fraction"] for r in data}
        assert rates["film-ntsc"] == "24000/1001"
        assert rates["tv-pal"] == "25"
        assert len(rates) == 6


class TestJobEndpoints:
    def test_job_not_found(self, client):
        response = client.get("/api/v1/jobs/nonexistent-job")
        assert response.status_code == 400
        assert response.json()["error_type"] == "ValidationError"

    def test_events_not_found(self, client):
        assert client.get("/api/v1/jobs/nonexistent-job/events").status_code == 400

    def test_cancel_not_found(self, client):
        assert client.delete("/api/v1/jobs/nonexistent-job").status_code == 400

    def test_submit_missing_input(self, client, tmp_dir, output_dir):
        response = client.post(
            "/api/v1/jobs",
            json={"input_path": str(tmp_dir / "missing.mkv"), "output_dir": str(output_dir)},
        )
        assert response.status_code == 400

    def test_submit_malformed(self, client):
        response = client.post("/api/v1/jobs", json={"include_subtitles": True})
        assert response.status_code == 422

    @posix_only
    def test_submit_missing_tool(self, settings, input_file, output_dir):
        app = create_app()
        manager = JobManager(settings.model_copy(update={"mp4muxer_bin": "dvmux-no-muxer"}))
        app.dependency_overrides[get_job_manager] = lambda: manager
        response = TestClient(app).post(
            "/api/v1/jobs", json={"input_path": str(input_file), "output_dir": str(output_dir)}
        )
        assert response.status_code == 424
        data = response.json()
        assert data["details"]["missing"] == ["dvmux-no-muxer"]
        assert "dvmux-no-muxer" in data["actionable_guidance"]

    @posix_only
    def test_submit_and_poll(self, client, input_file, output_dir):
        response = client.post(
            "/api/v1/jobs",
            json={
                "input_path": str(input_file),
                "output_dir": str(output_dir),
                "frame_rate": "film-pal",
            },
        )
        assert response.status_code == 202
        job_id = response.json()["job_id"]

        data = _wait_for_terminal(client, job_id)
        assert data["state"] == "succeeded"
        assert data["progress"] == 1.0
        assert data["output_path"].endswith("movie_dvh1.mp4")

        events = client.get(f"/api/v1/jobs/{job_id}/events").json()
        assert events["events"][-1]["type"] == "job_finished"
        assert events["next"] == len(events["events"])
        later = client.get(f"/api/v1/jobs/{job_id}/events", params={"since": events["next"]})
        assert later.json()["events"] == []

        cancel = client.delete(f"/api/v1/jobs/{job_id}").json()
        assert cancel == {"job_id": job_id, "cancelled": False, "state": "succeeded"}
        assert [j["job_id"] for j in client.get("/api/v1/jobs").json()] == [job_id]

    @posix_only
    def test_second_submission_rejected(self, client, manager, make_request, input_file, output_dir):
        first = manager.submit(make_request())
        body = {"input_path": str(input_file), "output_dir": str(output_dir)}

        second = client.post("/api/v1/jobs", json=body)
        assert second.status_code == 503
        assert second.json()["retry_possible"] is True

        assert client.delete(f"/api/v1/jobs/{first.job_id}").json()["cancelled"] is True
        manager.execute(first.job_id)
        assert _wait_for_terminal(client, first.job_id)["state"] == "cancelled"
        assert client.post("/api/v1/jobs", json=body).status_code == 202
