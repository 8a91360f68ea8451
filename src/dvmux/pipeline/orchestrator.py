"""Pipeline orchestrator: schedules one job's stages and owns its state."""

import logging
import shutil
import threading
import time
import uuid
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from dvmux.config import Settings, get_settings
from dvmux.models.errors import DvmuxError, FilesystemError, ProcessingError
from dvmux.models.events import (
    JobFinished,
    JobProgress,
    StageFinished,
    StageLogLine,
    StageProgress,
    StageStarted,
)
from dvmux.models.job import JobRequest, JobResult, JobState, JobStatus
from dvmux.models.stage import StageKind, StageOutcome, StageResult, ToolName
from dvmux.pipeline.events import JobEventChannel
from dvmux.pipeline.graph import PipelineGraph
from dvmux.pipeline.progress import ProgressAggregator
from dvmux.pipeline.stages import StageContext
from dvmux.pipeline.validators import validate_job_request
from dvmux.storage.temp_store import DEFAULT_BASE_DIR, TempFileManager
from dvmux.tools.cancellation import CancelSource
from dvmux.tools.frame_rate import resolve
from dvmux.tools.locator import ToolLocator, required_tools
from dvmux.tools.progress import parser_for
from dvmux.tools.runner import ProcessRunner

logger = logging.getLogger(__name__)

# Only the independent extraction stages can be in flight together.
MAX_PARALLEL_STAGES = 3


def final_output_name(input_path: Path, include_subtitles: bool, extension: str = "mp4") -> str:
    """``movie.mkv`` -> ``movie_dvh1.mp4`` or ``movie_dvh1_with_subs.mp4``."""
    suffix = "_dvh1_with_subs" if include_subtitles else "_dvh1"
    return f"{input_path.stem}{suffix}.{extension}"


@dataclass
class _Outcome:
    state: JobState
    output_path: Path | None = None
    error: str | None = None
    error_type: str | None = None
    failed_stage: StageKind | None = None
    diagnostics: list[str] = field(default_factory=list)
    results: dict[StageKind, StageResult] = field(default_factory=dict)


class Orchestrator:
    """Runs one conversion job from pre-flight to a terminal state.

    An instance is created per job and holds no state shared with other jobs:
    its own cancel source, event channel, temp directory and tool lookup.
    """

    def __init__(
        self,
        request: JobRequest,
        settings: Settings | None = None,
        job_id: str | None = None,
        channel: JobEventChannel | None = None,
        runner: ProcessRunner | None = None,
        locator: ToolLocator | None = None,
        temp_store: TempFileManager | None = None,
    ):
        self.request = request
        self.settings = settings or get_settings()
        self.job_id = job_id or str(uuid.uuid4())
        self.channel = channel or JobEventChannel(self.job_id)
        self.runner = runner or ProcessRunner.from_settings(self.settings)
        self.locator = locator or ToolLocator(self.settings)
        self.temp_store = temp_store or TempFileManager(self.settings.temp_dir or DEFAULT_BASE_DIR)

        now = datetime.now(UTC)
        self.status = JobStatus(
            job_id=self.job_id,
            created_at=now,
            updated_at=now,
            input_path=str(request.input_path),
            message="Queued",
        )
        self._cancel_source = CancelSource()
        self._cancel_requested = False
        self._started = False
        self._resolved: tuple[str | None, dict[ToolName, Path]] | None = None
        self._state_lock = threading.Lock()
        self._progress_lock = threading.Lock()

    @property
    def state(self) -> JobState:
        return self.status.state

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def cancel(self) -> bool:
        """Request cancellation.

        Returns False when the job is already terminal. A cancel that arrives
        while the output is being moved into place removes the moved file.
        """
        with self._state_lock:
            if self.status.state.is_terminal:
                return False
            self._cancel_requested = True
        logger.info("Cancellation requested for job %s", self.job_id)
        self._cancel_source.cancel()
        return True

    def preflight(self) -> tuple[str | None, dict[ToolName, Path]]:
        """Validate the request and resolve frame rate and tools.

        Raises before any process starts if the job cannot finish.
        """
        validate_job_request(self.request)
        fraction = None
        if self.request.frame_rate is not None:
            fraction = resolve(self.request.frame_rate)
        tools = self.locator.locate(required_tools(self.request.include_subtitles))
        self._resolved = (fraction, tools)
        return fraction, tools

    def run(self) -> JobResult:
        """Run the job to a terminal state.

        Pre-flight errors (ValidationError, InvalidFrameRateError,
        ToolNotFoundError) are raised after the job is marked failed. Stage
        failures and cancellation are reported through the returned result.
        """
        with self._state_lock:
            if self._started:
                raise ProcessingError(f"Job {self.job_id} has already been run")
            self._started = True

        if self._cancel_requested:
            return self._finish(_Outcome(JobState.CANCELLED))

        logger.info("Starting job %s for %s", self.job_id, self.request.input_path)
        try:
            fraction, tools = self._resolved or self.preflight()
        except DvmuxError as e:
            logger.error("Pre-flight failed for job %s: %s", self.job_id, e.message)
            self._finish(
                _Outcome(
                    JobState.FAILED,
                    error=e.message,
                    error_type=type(e).__name__,
                    diagnostics=[f"{k}: {v}" for k, v in e.details.items()],
                )
            )
            raise

        try:
            with self.temp_store.workspace(self.job_id, keep=self.request.keep_temp) as temp_dir:
                graph = PipelineGraph.build(self.request, temp_dir, self.settings)
                outcome = self._execute(graph, temp_dir, fraction, tools)
        except FilesystemError as e:
            logger.error("Filesystem error in job %s: %s", self.job_id, e.message)
            outcome = _Outcome(
                JobState.CANCELLED if self._cancel_requested else JobState.FAILED,
                error=e.message,
                error_type=type(e).__name__,
                results=dict(self.status.stage_results),
            )
        except Exception as e:
            logger.exception("Job %s crashed", self.job_id)
            self._finish(
                _Outcome(JobState.FAILED, error=str(e), error_type=type(e).__name__)
            )
            raise ProcessingError(f"Pipeline failed: {e}", details={"job_id": self.job_id})

        return self._finish(outcome)

    def _execute(
        self,
        graph: PipelineGraph,
        temp_dir: Path,
        fraction: str | None,
        tools: dict[ToolName, Path],
    ) -> _Outcome:
        aggregator = ProgressAggregator(graph.weights())
        results: dict[StageKind, StageResult] = {}
        for kind in graph.skipped:
            self._record(results, StageResult.skipped(kind))

        in_flight: dict[Future, StageKind] = {}
        failure: StageResult | None = None
        abort_deadline: float | None = None
        pool = ThreadPoolExecutor(
            max_workers=MAX_PARALLEL_STAGES, thread_name_prefix=f"dvmux-{self.job_id[:8]}"
        )
        try:
            while True:
                aborting = failure is not None or self._cancel_requested
                if aborting and abort_deadline is None:
                    self._cancel_source.cancel()
                    abort_deadline = time.monotonic() + self.runner.abort_timeout

                if not aborting:
                    for kind in graph.ready(results, in_flight.values()):
                        inputs = {
                            dep: results[dep].output_file
                            for dep in graph.stages[kind].depends_on
                            if dep in results and results[dep].output_file is not None
                        }
                        self._mark_running()
                        future = pool.submit(
                            self._run_stage, graph, kind, inputs, temp_dir, fraction, tools, aggregator
                        )
                        in_flight[future] = kind

                if not in_flight:
                    break

                timeout = self.settings.poll_interval
                if abort_deadline is not None:
                    remaining = abort_deadline - time.monotonic()
                    if remaining <= 0:
                        logger.warning(
                            "Job %s: stages %s did not acknowledge cancellation in %.1fs",
                            self.job_id,
                            [k.value for k in in_flight.values()],
                            self.runner.abort_timeout,
                        )
                        for kind in in_flight.values():
                            self._record(results, StageResult.cancelled(kind))
                        in_flight.clear()
                        break
                    timeout = min(timeout, remaining)

                done, _ = wait(in_flight, timeout=timeout, return_when=FIRST_COMPLETED)
                for future in done:
                    kind = in_flight.pop(future)
                    result = future.result()
                    self._record(results, result)
                    if result.outcome == StageOutcome.SUCCESS:
                        self._report_progress(aggregator, kind, 1.0)
                    elif result.outcome == StageOutcome.FAILED and failure is None:
                        failure = result
                        logger.error(
                            "Job %s: stage %s failed: %s",
                            self.job_id,
                            kind.value,
                            result.error_message,
                        )
        finally:
            if in_flight:
                self._cancel_source.cancel()
            pool.shutdown(wait=False, cancel_futures=True)

        for kind in graph.kinds:
            if kind not in results:
                self._record(results, StageResult.cancelled(kind))

        if self._cancel_requested:
            return _Outcome(JobState.CANCELLED, results=results)
        if failure is not None:
            error = failure.to_error()
            return _Outcome(
                JobState.FAILED,
                error=error.message,
                error_type=type(error).__name__,
                failed_stage=failure.stage,
                diagnostics=list(failure.last_log_lines),
                results=results,
            )

        terminal = results[graph.terminal]
        final_path = self._finalize(terminal.output_file)
        return _Outcome(JobState.SUCCEEDED, output_path=final_path, results=results)

    def _run_stage(
        self,
        graph: PipelineGraph,
        kind: StageKind,
        inputs: dict[StageKind, Path],
        temp_dir: Path,
        fraction: str | None,
        tools: dict[ToolName, Path],
        aggregator: ProgressAggregator,
    ) -> StageResult:
        """Worker body: build arguments, run the tool, check its output."""
        stage = graph.stages[kind]
        context = StageContext(
            input_path=self.request.input_path,
            output_path=stage.output_path,
            settings=self.settings,
            dependency_outputs=inputs,
            frame_rate=fraction,
        )
        args = stage.definition.build_args(context)
        parser = parser_for(stage.tool)

        logger.info("Job %s: starting %s", self.job_id, kind.value)
        self.channel.publish(StageStarted(job_id=self.job_id, stage=kind))

        def on_line(line: str) -> None:
            self.channel.publish(StageLogLine(job_id=self.job_id, stage=kind, text=line))
            value = parser.parse_line(line)
            if value is not None:
                self.channel.publish(StageProgress(job_id=self.job_id, stage=kind, fraction=value))
                self._report_progress(aggregator, kind, value)

        result = self.runner.run(
            kind,
            tools[stage.tool],
            args,
            working_dir=temp_dir,
            cancel_token=self._cancel_source.token(),
            on_line=on_line,
            output_path=stage.output_path,
        )
        if result.outcome == StageOutcome.SUCCESS and not stage.output_path.exists():
            message = f"{kind.value} reported success but produced no {stage.output_path.name}"
            return result.model_copy(
                update={
                    "outcome": StageOutcome.FAILED,
                    "output_path": None,
                    "error_type": "MissingOutput",
                    "error_message": message,
                    "last_log_lines": result.log_lines[-self.runner.tail_lines :],
                }
            )
        return result

    def _finalize(self, source: Path | None) -> Path:
        """Move the terminal stage output into the output directory."""
        if source is None or not source.exists():
            raise FilesystemError("Terminal stage output is missing", details={"path": str(source)})
        destination = self.request.output_dir / final_output_name(
            self.request.input_path, self.request.include_subtitles, self.settings.output_extension
        )
        replacing = destination.exists()
        try:
            shutil.move(str(source), str(destination))
        except OSError as e:
            if not replacing:
                destination.unlink(missing_ok=True)
            raise FilesystemError(
                f"Could not move output to {destination}: {e}",
                details={"source": str(source), "destination": str(destination)},
            )
        logger.info("Job %s: wrote %s", self.job_id, destination)
        return destination

    def _mark_running(self) -> None:
        with self._state_lock:
            if self.status.state == JobState.PENDING:
                self.status.transition(JobState.RUNNING, message="Running")

    def _record(self, results: dict[StageKind, StageResult], result: StageResult) -> None:
        results[result.stage] = result
        self.status.stage_results[result.stage] = result
        self.channel.publish(
            StageFinished(
                job_id=self.job_id,
                stage=result.stage,
                outcome=result.outcome,
                error=result.error_message,
            )
        )
        logger.info("Job %s: %s %s", self.job_id, result.stage.value, result.outcome.value)

    def _report_progress(self, aggregator: ProgressAggregator, kind: StageKind, value: float) -> None:
        with self._progress_lock:
            before = aggregator.progress
            total = aggregator.update(kind, value)
            if total > before:
                self.status.progress = total
                self.channel.publish(JobProgress(job_id=self.job_id, fraction=total))

    def _finish(self, outcome: _Outcome) -> JobResult:
        with self._state_lock:
            if outcome.state == JobState.SUCCEEDED and self._cancel_requested:
                logger.info("Job %s cancelled while finalizing", self.job_id)
                if outcome.output_path is not None:
                    outcome.output_path.unlink(missing_ok=True)
                outcome = _Outcome(JobState.CANCELLED, results=outcome.results)
            self.status.transition(outcome.state, message=_MESSAGES[outcome.state])
            self.status.error = outcome.error
            self.status.error_type = outcome.error_type
            self.status.failed_stage = outcome.failed_stage
            self.status.diagnostics = outcome.diagnostics
            if outcome.output_path is not None:
                self.status.output_path = str(outcome.output_path)
            if outcome.state == JobState.SUCCEEDED and self.status.progress < 1.0:
                self.status.progress = 1.0
                self.channel.publish(JobProgress(job_id=self.job_id, fraction=1.0))

        self.channel.publish(
            JobFinished(
                job_id=self.job_id,
                final_state=outcome.state,
                final_output_path=self.status.output_path,
                error=outcome.error,
                error_type=outcome.error_type,
                failed_stage=outcome.failed_stage,
                diagnostics=outcome.diagnostics,
            )
        )
        logger.info("Job %s finished: %s", self.job_id, outcome.state.value)
        return JobResult(
            job_id=self.job_id,
            state=outcome.state,
            output_path=self.status.output_path,
            error=outcome.error,
            error_type=outcome.error_type,
            failed_stage=outcome.failed_stage,
            diagnostics=outcome.diagnostics,
            stage_results=dict(self.status.stage_results),
        )


_MESSAGES = {
    JobState.SUCCEEDED: "Processing completed successfully",
    JobState.FAILED: "Processing failed",
    JobState.CANCELLED: "Processing cancelled",
}
