"""Job manager: the registry front-ends use to submit and observe jobs."""

import logging
import threading
from collections.abc import Callable, Iterable

from dvmux.config import Settings, get_settings
from dvmux.models.errors import DvmuxError, ProcessingError, ResourceError, ValidationError
from dvmux.models.events import BaseEvent, JobFinished
from dvmux.models.job import JobRequest, JobResult, JobState, JobStatus
from dvmux.pipeline.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

EventCallback = Callable[[BaseEvent], None]


class JobManager:
    """Tracks jobs and enforces how many may run at once.

    Each job gets its own Orchestrator; the manager only keeps the index.
    Submissions beyond ``max_active_jobs`` are rejected, not queued. Only the
    newest ``max_retained_jobs`` finished jobs are remembered.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._jobs: dict[str, Orchestrator] = {}
        self._accepted: set[str] = set()
        self._lock = threading.Lock()
        self._submit_lock = threading.Lock()

    def create_job(
        self, request: JobRequest, on_event: EventCallback | None = None
    ) -> Orchestrator:
        """Register a new pending job."""
        orchestrator = Orchestrator(request, settings=self.settings)
        if on_event:
            orchestrator.channel.subscribe(on_event)
        orchestrator.channel.subscribe(self._on_event)
        with self._lock:
            self._jobs[orchestrator.job_id] = orchestrator
        return orchestrator

    def get(self, job_id: str) -> Orchestrator:
        orchestrator = self._jobs.get(job_id)
        if orchestrator is None:
            raise ValidationError(f"Job {job_id} not found")
        return orchestrator

    def get_status(self, job_id: str) -> JobStatus | None:
        """Get current status of a job."""
        orchestrator = self._jobs.get(job_id)
        return orchestrator.status if orchestrator else None

    def list_jobs(self) -> list[JobStatus]:
        with self._lock:
            return [o.status for o in self._jobs.values()]

    def active_jobs(self) -> list[str]:
        """Jobs that are running or accepted and waiting to start."""
        with self._lock:
            return [
                job_id
                for job_id, o in self._jobs.items()
                if o.state == JobState.RUNNING
                or (job_id in self._accepted and not o.state.is_terminal)
            ]

    def events(self, job_id: str, since: int = 0) -> list[BaseEvent]:
        return self.get(job_id).channel.history(since)

    def submit(self, request: JobRequest, on_event: EventCallback | None = None) -> Orchestrator:
        """Accept a job for ``execute`` after checking capacity and pre-flight.

        Pre-flight errors are raised here so the caller learns immediately
        that the job cannot run. The accepted job counts as active until
        ``execute`` returns.
        """
        with self._submit_lock:
            active = self.active_jobs()
            if len(active) >= self.settings.max_active_jobs:
                raise ResourceError(
                    "Another conversion is already running",
                    details={"active_jobs": active},
                )

            orchestrator = self.create_job(request, on_event)
            try:
                orchestrator.preflight()
            except DvmuxError:
                with self._lock:
                    del self._jobs[orchestrator.job_id]
                raise

            with self._lock:
                self._accepted.add(orchestrator.job_id)
        logger.info("Accepted job %s for %s", orchestrator.job_id, request.input_path)
        return orchestrator

    def execute(self, job_id: str) -> JobResult | None:
        """Run an accepted job to completion. Used as a background task."""
        orchestrator = self.get(job_id)
        try:
            return orchestrator.run()
        except DvmuxError as e:
            logger.error("Job %s failed: %s", job_id, e.message)
            return None
        finally:
            with self._lock:
                self._accepted.discard(job_id)

    def run(self, request: JobRequest, on_event: EventCallback | None = None) -> JobResult:
        """Run one job synchronously on the calling thread."""
        orchestrator = self.create_job(request, on_event)
        return orchestrator.run()

    def run_batch(
        self,
        requests: Iterable[JobRequest],
        on_event: EventCallback | None = None,
        on_job: Callable[[int, Orchestrator], None] | None = None,
    ) -> list[JobResult]:
        """Process requests one after another, stopping at the first non-success.

        Pre-flight errors of a later job stop the batch the same way a stage
        failure does; results of finished jobs are returned either way.
        """
        results: list[JobResult] = []
        for index, request in enumerate(requests):
            orchestrator = self.create_job(request, on_event)
            if on_job:
                on_job(index, orchestrator)
            logger.info("Batch item %d: %s", index + 1, request.input_path)
            try:
                result = orchestrator.run()
            except DvmuxError:
                results.append(
                    JobResult(
                        job_id=orchestrator.job_id,
                        state=orchestrator.state,
                        error=orchestrator.status.error,
                        error_type=orchestrator.status.error_type,
                        diagnostics=orchestrator.status.diagnostics,
                    )
                )
                break
            results.append(result)
            if not result.succeeded:
                break
        return results

    def cancel_job(self, job_id: str) -> bool:
        """Cancel a pending or running job."""
        return self.get(job_id).cancel()

    def remove_job(self, job_id: str) -> None:
        """Forget a finished job."""
        orchestrator = self.get(job_id)
        if not orchestrator.state.is_terminal:
            raise ProcessingError(f"Job {job_id} is still {orchestrator.state.value}")
        with self._lock:
            self._jobs.pop(job_id, None)

    def _on_event(self, event: BaseEvent) -> None:
        if isinstance(event, JobFinished):
            with self._lock:
                self._prune()

    def _prune(self) -> None:
        """Drop the oldest finished jobs beyond ``max_retained_jobs``."""
        finished = sorted(
            (o for o in self._jobs.values() if o.state.is_terminal),
            key=lambda o: o.status.completed_at,
        )
        excess = len(finished) - self.settings.max_retained_jobs
        for orchestrator in finished[: max(0, excess)]:
            del self._jobs[orchestrator.job_id]
            logger.debug("Forgot finished job %s", orchestrator.job_id)
