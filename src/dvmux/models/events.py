"""Job event models delivered to front-end consumers."""

from datetime import UTC, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from dvmux.models.job import JobState
from dvmux.models.stage import StageKind, StageOutcome


class BaseEvent(BaseModel):
    job_id: str
    sequence: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class StageStarted(BaseEvent):
    type: Literal["stage_started"] = "stage_started"
    stage: StageKind


class StageLogLine(BaseEvent):
    type: Literal["stage_log_line"] = "stage_log_line"
    stage: StageKind
    text: str


class StageProgress(BaseEvent):
    type: Literal["stage_progress"] = "stage_progress"
    stage: StageKind
    fraction: float = Field(..., ge=0, le=1)


class StageFinished(BaseEvent):
    type: Literal["stage_finished"] = "stage_finished"
    stage: StageKind
    outcome: StageOutcome
    error: str | None = None


class JobProgress(BaseEvent):
    type: Literal["job_progress"] = "job_progress"
    fraction: float = Field(..., ge=0, le=1)


class JobFinished(BaseEvent):
    type: Literal["job_finished"] = "job_finished"
    final_state: JobState
    final_output_path: str | None = None
    error: str | None = None
    error_type: str | None = None
    failed_stage: StageKind | None = None
    diagnostics: list[str] = Field(default_factory=list)


JobEvent = Annotated[
    StageStarted | StageLogLine | StageProgress | StageFinished | JobProgress | JobFinished,
    Field(discriminator="type"),
]
