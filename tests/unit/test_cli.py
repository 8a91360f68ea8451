"""Tests for the command-line front-end."""

import json
import os

import pytest

from dvmux.cli import EXIT_CANCELLED, EXIT_FAILED, EXIT_OK, build_parser, build_requests, exit_code, main
from dvmux.models.frame_rate import CustomFrameRate, FrameRateId
from dvmux.models.job import JobResult, JobState


class TestBuildRequests:
    def _requests(self, *argv):
        return build_requests(build_parser().parse_args(list(argv)))

    def test_defaults(self):
        (request,) = self._requests("a.mkv", "-o", "out")
        assert request.frame_rate == FrameRateId.FILM_NTSC
        assert not request.include_subtitles
        assert not request.keep_temp

    def test_options(self):
        requests = self._requests(
            "a.mkv", "b.mkv", "-o", "out", "--subtitles", "--frame-rate", "TV-PAL", "--keep-temp"
        )
        assert len(requests) == 2
        assert all(r.include_subtitles and r.keep_temp for r in requests)
        assert requests[0].frame_rate == FrameRateId.TV_PAL

    def test_auto_frame_rate(self):
        (request,) = self._requests("a.mkv", "-o", "out", "--frame-rate", "auto")
        assert request.frame_rate is None

    def test_custom_frame_rate(self):
        (request,) = self._requests("a.mkv", "-o", "out", "--frame-rate", "48000/1001")
        assert request.frame_rate == CustomFrameRate(numerator=48000, denominator=1001)

    def test_output_dir_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["a.mkv"])


class TestExitCode:
    def _result(self, state):
        return JobResult(job_id="j", state=state)

    def test_all_succeeded(self):
        assert exit_code([self._result(JobState.SUCCEEDED)] * 2, 2) == EXIT_OK

    def test_batch_stopped_early(self):
        assert exit_code([self._result(JobState.SUCCEEDED)], 2) == EXIT_FAILED

    def test_failed(self):
        assert exit_code([self._result(JobState.FAILED)], 1) == EXIT_FAILED

    def test_cancelled(self):
        results = [self._result(JobState.SUCCEEDED), self._result(JobState.CANCELLED)]
        assert exit_code(results, 3) == EXIT_CANCELLED


@pytest.mark.skipif(os.name != "posix", reason="fake tools need POSIX exec bits")
class TestMain:
    @pytest.fixture(autouse=True)
    def _env(self, monkeypatch, fake_tools, work_dir, tool_log):
        monkeypatch.setenv("DVMUX_TOOL_DIRS", json.dumps([str(fake_tools)]))
        monkeypatch.setenv("DVMUX_TEMP_DIR", str(work_dir))

    def test_converts_file(self, input_file, output_dir):
        assert main([str(input_file), "-o", str(output_dir)]) == EXIT_OK
        assert (output_dir / "movie_dvh1.mp4").exists()

    def test_with_subtitles(self, input_file, output_dir):
        assert main([str(input_file), "-o", str(output_dir), "--subtitles"]) == EXIT_OK
        assert (output_dir / "movie_dvh1_with_subs.mp4").exists()

    def test_invalid_frame_rate(self, input_file, output_dir):
        assert main([str(input_file), "-o", str(output_dir), "--frame-rate", "fast"]) == EXIT_FAILED

    def test_missing_input(self, tmp_dir, output_dir):
        assert main([str(tmp_dir / "missing.mkv"), "-o", str(output_dir)]) == EXIT_FAILED

    def test_tool_failure(self, input_file, output_dir, monkeypatch):
        monkeypatch.setenv("FAKE_FAIL", "ffmpeg")
        assert main([str(input_file), "-o", str(output_dir)]) == EXIT_FAILED
        assert list(output_dir.iterdir()) == []
