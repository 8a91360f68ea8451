"""Data models for dvmux."""

from dvmux.models.errors import (
    DvmuxError,
    ErrorResponse,
    FilesystemError,
    InvalidFrameRateError,
    MissingOutputError,
    NonZeroExitError,
    ProcessingError,
    ResourceError,
    SpawnError,
    StageError,
    ToolNotFoundError,
    ValidationError,
)
from dvmux.models.events import (
    JobEvent,
    JobFinished,
    JobProgress,
    StageFinished,
    StageLogLine,
    StageProgress,
    StageStarted,
)
from dvmux.models.frame_rate import CustomFrameRate, FrameRate, FrameRateId
from dvmux.models.job import JobRequest, JobResult, JobState, JobStatus
from dvmux.models.stage import StageKind, StageOutcome, StageResult, ToolName

__all__ = [
    "CustomFrameRate",
    "DvmuxError",
    "ErrorResponse",
    "FilesystemError",
    "FrameRate",
    "FrameRateId",
    "InvalidFrameRateError",
    "JobEvent",
    "JobFinished",
    "JobProgress",
    "JobRequest",
    "JobResult",
    "JobState",
    "JobStatus",
    "MissingOutputError",
    "NonZeroExitError",
    "ProcessingError",
    "ResourceError",
    "SpawnError",
    "StageError",
    "StageFinished",
    "StageKind",
    "StageLogLine",
    "StageOutcome",
    "StageProgress",
    "StageResult",
    "StageStarted",
    "ToolName",
    "ToolNotFoundError",
    "ValidationError",
]
