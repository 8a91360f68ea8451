"""Shared test fixtures, a stub process runner and fake external tools."""

import stat
import sys
import tempfile
import threading
from pathlib import Path

import pytest

from dvmux.config import Settings
from dvmux.models.frame_rate import FrameRateId
from dvmux.models.job import JobRequest
from dvmux.models.stage import StageKind, StageOutcome, StageResult

FAKE_TOOL_NAMES = ["mkvextract", "ffmpeg", "mp4muxer", "MP4Box"]

FAKE_TOOL_SOURCE = r'''
"""Stand-in for mkvextract / ffmpeg / mp4muxer / MP4Box used by the tests.

Behaviour is steered by environment variables:
  FAKE_TOOL_LOG         append one line per invocation: name<TAB>args...
  FAKE_FAIL             comma-separated tool names that exit with code 2
  FAKE_SLEEP_<NAME>     seconds to sleep before producing output
  FAKE_NO_OUTPUT        comma-separated tool names that exit 0 without output
  FAKE_IGNORE_TERM      comma-separated tool names that ignore SIGTERM
"""
import os
import signal
import sys
import time

name = sys.argv[1]
args = sys.argv[2:]
key = name.upper()

log = os.environ.get("FAKE_TOOL_LOG")
if log:
    with open(log, "a") as f:
        f.write(name + "\t" + "\t".join(args) + "\n")

if name in os.environ.get("FAKE_IGNORE_TERM", "").split(","):
    signal.signal(signal.SIGTERM, signal.SIG_IGN)

print(f"{name} starting", flush=True)
print(f"{name} pid {os.getpid()}", flush=True)
if name == "ffmpeg":
    print("  Duration: 00:00:10.00, start: 0.000000, bitrate: 1000 kb/s", file=sys.stderr, flush=True)

delay = float(os.environ.get(f"FAKE_SLEEP_{key}", "0"))
if delay:
    time.sleep(delay)

if name in os.environ.get("FAKE_FAIL", "").split(","):
    print(f"{name}: simulated failure", file=sys.stderr, flush=True)
    sys.exit(2)

if name == "mkvextract":
    output = args[2].split(":", 1)[1]
    print("Progress: 50%", flush=True)
    print("Progress: 100%", flush=True)
elif name == "ffmpeg":
    output = args[-2]
    print("frame=  120 fps= 30 size=  256kB time=00:00:05.00 bitrate= 419.4kbits/s", file=sys.stderr, flush=True)
elif name == "mp4muxer":
    output = args[args.index("-o") + 1]
else:
    output = args[args.index("-new") + 1]
    print("Importing: |==========          | (50/100)", flush=True)

if name not in os.environ.get("FAKE_NO_OUTPUT", "").split(","):
    with open(output, "w") as f:
        f.write(name)
print(f"{name} done", flush=True)
'''


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def work_dir(tmp_dir):
    path = tmp_dir / "work"
    path.mkdir()
    return path


@pytest.fixture
def output_dir(tmp_dir):
    path = tmp_dir / "out"
    path.mkdir()
    return path


@pytest.fixture
def input_file(tmp_dir):
    path = tmp_dir / "movie.mkv"
    path.write_bytes(b"\x1a\x45\xdf\xa3 not really matroska")
    return path


@pytest.fixture
def fake_tools(tmp_dir):
    """Directory of executable fake tools, one per expected tool name."""
    bin_dir = tmp_dir / "bin"
    bin_dir.mkdir()
    script = bin_dir / "fake_tool.py"
    script.write_text(FAKE_TOOL_SOURCE)
    for name in FAKE_TOOL_NAMES:
        wrapper = bin_dir / name
        wrapper.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{script}" {name} "$@"\n')
        wrapper.chmod(wrapper.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return bin_dir


@pytest.fixture
def tool_log(tmp_dir, monkeypatch):
    """Record fake tool invocations; returns a reader for the log."""
    log = tmp_dir / "tools.log"
    monkeypatch.setenv("FAKE_TOOL_LOG", str(log))
    for var in ("FAKE_FAIL", "FAKE_NO_OUTPUT", "FAKE_IGNORE_TERM"):
        monkeypatch.delenv(var, raising=False)

    def read() -> list[tuple[str, list[str]]]:
        if not log.exists():
            return []
        entries = []
        for line in log.read_text().splitlines():
            name, *args = line.split("\t")
            entries.append((name, args))
        return entries

    return read


@pytest.fixture
def settings(fake_tools, work_dir):
    return Settings(
        tool_dirs=[fake_tools],
        temp_dir=work_dir,
        cancel_grace_period=2.0,
        poll_interval=0.02,
    )


@pytest.fixture
def make_request(input_file, output_dir):
    def factory(**overrides) -> JobRequest:
        values = {
            "input_path": input_file,
            "output_dir": output_dir,
            "include_subtitles": False,
            "frame_rate": FrameRateId.FILM_NTSC,
        }
        values.update(overrides)
        return JobRequest(**values)

    return factory


class StubRunner:
    """Stands in for ProcessRunner without spawning processes.

    Stages in ``fail`` report a non-zero exit, stages in ``block`` wait for
    cancellation, stages in ``ignore_cancel`` wait for cancellation and then
    report success anyway, stages in ``hang`` ignore cancellation until
    ``release`` is set. Every other stage writes its output file.
    """

    tail_lines = 20
    abort_timeout = 0.3

    def __init__(self, fail=(), block=(), ignore_cancel=(), hang=(), no_output=(), lines=None):
        self.fail = set(fail)
        self.block = set(block)
        self.ignore_cancel = set(ignore_cancel)
        self.hang = set(hang)
        self.no_output = set(no_output)
        self.lines = lines or {}
        self.calls: list[tuple[StageKind, str, list[str]]] = []
        self.started = {kind: threading.Event() for kind in StageKind}
        self.release = threading.Event()
        self._lock = threading.Lock()

    def args_for(self, stage: StageKind) -> list[str]:
        for kind, _, args in self.calls:
            if kind == stage:
                return args
        raise KeyError(stage)

    @property
    def stages_run(self) -> list[StageKind]:
        return [kind for kind, _, _ in self.calls]

    def run(
        self,
        stage,
        executable,
        args,
        working_dir=None,
        cancel_token=None,
        on_line=None,
        output_path=None,
    ):
        with self._lock:
            self.calls.append((stage, Path(executable).name, list(args)))
        self.started[stage].set()
        if on_line:
            on_line(f"$ {executable}")
            for line in self.lines.get(stage, []):
                on_line(line)

        if stage in self.hang:
            self.release.wait(timeout=10)
            return StageResult(stage=stage, outcome=StageOutcome.CANCELLED)
        if stage in self.block:
            cancel_token.wait(timeout=10)
            return StageResult(stage=stage, outcome=StageOutcome.CANCELLED)
        if stage in self.ignore_cancel:
            cancel_token.wait(timeout=10)
        if stage in self.fail:
            return StageResult(
                stage=stage,
                outcome=StageOutcome.FAILED,
                error_type="NonZeroExit",
                error_message=f"{stage.value} exited with code 2",
                exit_code=2,
                last_log_lines=[f"{stage.value}: simulated failure"],
            )
        if stage not in self.no_output:
            Path(output_path).write_text(stage.value)
        return StageResult(stage=stage, outcome=StageOutcome.SUCCESS, output_path=str(output_path))


@pytest.fixture
def stub_runner():
    """Factory for StubRunner instances; hung stages are released at teardown."""
    runners: list[StubRunner] = []

    def factory(**kwargs) -> StubRunner:
        runner = StubRunner(**kwargs)
        runners.append(runner)
        return runner

    yield factory
    for runner in runners:
        runner.release.set()
