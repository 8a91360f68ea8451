"""Stage identity and per-stage result models."""

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

from dvmux.models.errors import MissingOutputError, NonZeroExitError, SpawnError, StageError


class StageKind(StrEnum):
    """Units of pipeline work, one external tool invocation each."""

    EXTRACT_VIDEO = "extract_video"
    EXTRACT_AUDIO = "extract_audio"
    EXTRACT_SUBTITLES = "extract_subtitles"
    SUBTITLE_CARRIER = "subtitle_carrier"
    REMUX = "remux"
    SUBTITLE_MUX = "subtitle_mux"


class StageOutcome(StrEnum):
    """Terminal outcome of a single stage."""

    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class ToolName(StrEnum):
    """External executables the pipeline drives."""

    MKVEXTRACT = "mkvextract"
    FFMPEG = "ffmpeg"
    MP4MUXER = "mp4muxer"
    MP4BOX = "MP4Box"


class StageResult(BaseModel):
    """Outcome of one stage."""

    stage: StageKind
    outcome: StageOutcome
    output_path: str | None = None
    error_type: str | None = Field(default=None, description="SpawnError, NonZeroExit or MissingOutput")
    error_message: str | None = None
    exit_code: int | None = None
    last_log_lines: list[str] = Field(default_factory=list)
    log_lines: list[str] = Field(default_factory=list)
    duration: float = Field(default=0.0, ge=0)

    @property
    def satisfied(self) -> bool:
        """Whether dependents of this stage may run."""
        return self.outcome in (StageOutcome.SUCCESS, StageOutcome.SKIPPED)

    @property
    def output_file(self) -> Path | None:
        return Path(self.output_path) if self.output_path else None

    @classmethod
    def skipped(cls, stage: StageKind) -> "StageResult":
        return cls(stage=stage, outcome=StageOutcome.SKIPPED)

    @classmethod
    def cancelled(cls, stage: StageKind) -> "StageResult":
        return cls(stage=stage, outcome=StageOutcome.CANCELLED)

    def to_error(self) -> StageError:
        """Build the exception describing a failed stage."""
        if self.error_type == "SpawnError":
            return SpawnError(
                self.error_message or f"Failed to start {self.stage.value}",
                stage=self.stage.value,
                details={"last_log_lines": self.last_log_lines},
            )
        if self.exit_code is not None:
            return NonZeroExitError(self.stage.value, self.exit_code, self.last_log_lines)
        if self.error_type == "MissingOutput":
            return MissingOutputError(
                self.error_message or f"{self.stage.value} produced no output",
                stage=self.stage.value,
                details={"last_log_lines": self.last_log_lines},
            )
        return StageError(
            self.error_message or f"{self.stage.value} failed",
            stage=self.stage.value,
            details={"last_log_lines": self.last_log_lines},
        )
