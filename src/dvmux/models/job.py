"""Job request, lifecycle state and result models."""

from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from dvmux.models.errors import ProcessingError
from dvmux.models.frame_rate import CustomFrameRate, FrameRateId
from dvmux.models.stage import StageKind, StageResult


class JobRequest(BaseModel):
    """One conversion request, immutable once submitted."""

    model_config = {"frozen": True}

    input_path: Path
    output_dir: Path
    include_subtitles: bool = False
    frame_rate: FrameRateId | CustomFrameRate | None = FrameRateId.FILM_NTSC
    keep_temp: bool = Field(default=False, description="Retain the temp directory for debugging")


class JobState(StrEnum):
    """Lifecycle of a job."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED})

_ALLOWED_TRANSITIONS = {
    JobState.PENDING: {JobState.RUNNING, JobState.FAILED, JobState.CANCELLED},
    JobState.RUNNING: set(TERMINAL_STATES),
}


class JobStatus(BaseModel):
    """Snapshot of a job as seen by consumers."""

    job_id: str = Field(..., min_length=1)
    state: JobState = Field(default=JobState.PENDING)
    progress: float = Field(default=0.0, ge=0, le=1)
    message: str = Field(default="")
    created_at: datetime | None = None
    started_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None
    error_type: str | None = None
    failed_stage: StageKind | None = None
    diagnostics: list[str] = Field(default_factory=list)
    input_path: str | None = None
    output_path: str | None = None
    stage_results: dict[StageKind, StageResult] = Field(default_factory=dict)

    def transition(self, new_state: JobState, message: str = "") -> None:
        """Move to a new state, refusing to leave a terminal state."""
        if new_state not in _ALLOWED_TRANSITIONS.get(self.state, set()):
            raise ProcessingError(
                f"Illegal job state transition {self.state.value} -> {new_state.value}",
                details={"job_id": self.job_id},
            )
        now = datetime.now(UTC)
        self.state = new_state
        self.updated_at = now
        if message:
            self.message = message
        if new_state == JobState.RUNNING:
            self.started_at = now
        elif new_state.is_terminal:
            self.completed_at = now


class JobResult(BaseModel):
    """Terminal outcome of a job run."""

    job_id: str
    state: JobState
    output_path: str | None = None
    error: str | None = None
    error_type: str | None = None
    failed_stage: StageKind | None = None
    diagnostics: list[str] = Field(default_factory=list)
    stage_results: dict[StageKind, StageResult] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.state == JobState.SUCCEEDED

