"""External process execution with streaming output and cancellation."""

import logging
import os
import shlex
import signal
import subprocess
import threading
import time
from collections import deque
from collections.abc import Callable
from pathlib import Path
from typing import IO

from dvmux.config import Settings
from dvmux.models.stage import StageKind, StageOutcome, StageResult
from dvmux.tools.cancellation import CancelToken

logger = logging.getLogger(__name__)

_POSIX = os.name == "posix"

# Upper bounds for reaping a killed process and draining its pipes.
KILL_TIMEOUT = 2.0
READER_JOIN_TIMEOUT = 1.0


class ProcessRunner:
    """Runs one external tool invocation and reports a StageResult."""

    def __init__(
        self,
        grace_period: float = 5.0,
        tail_lines: int = 20,
        max_captured_lines: int = 2000,
        poll_interval: float = 0.1,
    ):
        self.grace_period = grace_period
        self.tail_lines = tail_lines
        self.max_captured_lines = max_captured_lines
        self.poll_interval = poll_interval

    @property
    def abort_timeout(self) -> float:
        """Longest time from a cancel request until ``run`` returns."""
        return self.poll_interval + self.grace_period + KILL_TIMEOUT + READER_JOIN_TIMEOUT

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProcessRunner":
        return cls(
            grace_period=settings.cancel_grace_period,
            tail_lines=settings.diagnostic_tail_lines,
            max_captured_lines=settings.captured_log_lines,
            poll_interval=settings.poll_interval,
        )

    def run(
        self,
        stage: StageKind,
        executable: Path | str,
        args: list[str],
        working_dir: Path | None = None,
        cancel_token: CancelToken | None = None,
        on_line: Callable[[str], None] | None = None,
        output_path: Path | None = None,
    ) -> StageResult:
        """Run the process to completion, failure or cancellation."""
        cmd = [str(executable), *args]
        started = time.monotonic()
        captured: deque[str] = deque(maxlen=self.max_captured_lines)
        lock = threading.Lock()

        def emit(line: str) -> None:
            with lock:
                captured.append(line)
            logger.debug("[%s] %s", stage.value, line)
            if on_line:
                on_line(line)

        def result(outcome: StageOutcome, **kwargs) -> StageResult:
            with lock:
                lines = list(captured)
            return StageResult(
                stage=stage,
                outcome=outcome,
                log_lines=lines,
                duration=time.monotonic() - started,
                **kwargs,
            )

        emit(f"$ {shlex.join(cmd)}")

        if cancel_token is not None and cancel_token.cancelled:
            return result(StageOutcome.CANCELLED)

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
                cwd=working_dir,
                start_new_session=_POSIX,
            )
        except OSError as e:
            message = f"Failed to execute {executable}: {e}"
            logger.error("[%s] %s", stage.value, message)
            emit(f"Error: {message}")
            return result(
                StageOutcome.FAILED,
                error_type="SpawnError",
                error_message=message,
                last_log_lines=list(captured)[-self.tail_lines :],
            )

        readers = [
            threading.Thread(
                target=self._pump, args=(stream, emit), name=f"{stage.value}-{name}", daemon=True
            )
            for name, stream in (("stdout", process.stdout), ("stderr", process.stderr))
        ]
        for reader in readers:
            reader.start()

        cancelled = False
        if cancel_token is None:
            process.wait()
        else:
            while process.poll() is None:
                if cancel_token.wait(self.poll_interval):
                    cancelled = True
                    self._terminate(stage, process)
                    break

        for reader in readers:
            reader.join(timeout=READER_JOIN_TIMEOUT)

        if cancelled:
            logger.info("[%s] cancelled", stage.value)
            return result(StageOutcome.CANCELLED)

        if process.returncode == 0:
            emit("Command completed successfully")
            return result(
                StageOutcome.SUCCESS,
                output_path=str(output_path) if output_path else None,
            )

        with lock:
            tail = list(captured)[-self.tail_lines :]
        logger.error("[%s] exited with code %d", stage.value, process.returncode)
        return result(
            StageOutcome.FAILED,
            error_type="NonZeroExit",
            error_message=f"{stage.value} exited with code {process.returncode}",
            exit_code=process.returncode,
            last_log_lines=tail,
        )

    @staticmethod
    def _pump(stream: IO[str], emit: Callable[[str], None]) -> None:
        with stream:
            for raw in stream:
                line = raw.rstrip()
                if line:
                    emit(line)

    def _terminate(self, stage: StageKind, process: subprocess.Popen) -> None:
        """Terminate the process group; kill it if the grace period runs out."""
        self._send(process, signal.SIGTERM if _POSIX else None)
        try:
            process.wait(timeout=self.grace_period)
        except subprocess.TimeoutExpired:
            logger.warning(
                "[%s] did not exit within %.1fs of cancellation, killing",
                stage.value,
                self.grace_period,
            )
            self._send(process, signal.SIGKILL if _POSIX else None, force=True)
            try:
                process.wait(timeout=KILL_TIMEOUT)
            except subprocess.TimeoutExpired:
                logger.error("[%s] process %d survived SIGKILL", stage.value, process.pid)

    @staticmethod
    def _send(process: subprocess.Popen, sig: int | None, force: bool = False) -> None:
        if _POSIX and sig is not None:
            try:
                os.killpg(process.pid, sig)
            except ProcessLookupError:
                pass
        elif force:
            process.kill()
        else:
            process.terminate()
