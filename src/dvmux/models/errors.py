"""Error hierarchy and error response models."""

from pydantic import BaseModel, Field


class DvmuxError(Exception):
    """Base error for all dvmux errors."""

    def __init__(self, message: str, component: str = "", details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.component = component
        self.details = details or {}


class ValidationError(DvmuxError):
    """Job request validation errors (missing input, unwritable output)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="validation", details=details)


class InvalidFrameRateError(ValidationError):
    """Frame rate identifier or rational could not be resolved."""


class ToolNotFoundError(DvmuxError):
    """One or more external tools could not be located."""

    def __init__(self, missing: list[str], details: dict | None = None):
        names = ", ".join(missing)
        super().__init__(
            f"Required tools not found: {names}",
            component="tools",
            details={"missing": list(missing), **(details or {})},
        )
        self.missing = list(missing)


class StageError(DvmuxError):
    """An external tool invocation failed."""

    def __init__(self, message: str, stage: str, details: dict | None = None):
        super().__init__(message, component=stage, details=details)
        self.stage = stage


class SpawnError(StageError):
    """The external process could not be started."""


class NonZeroExitError(StageError):
    """The external process exited with a non-zero code."""

    def __init__(
        self,
        stage: str,
        exit_code: int,
        last_log_lines: list[str] | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            f"{stage} exited with code {exit_code}",
            stage=stage,
            details={"exit_code": exit_code, "last_log_lines": last_log_lines or [], **(details or {})},
        )
        self.exit_code = exit_code
        self.last_log_lines = last_log_lines or []


class MissingOutputError(StageError):
    """The external process exited cleanly without writing its output file."""


class FilesystemError(DvmuxError):
    """Temp directory creation or output finalization failed."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="filesystem", details=details)


class ProcessingError(DvmuxError):
    """Errors in orchestration itself (bad graph, illegal state change)."""

    def __init__(self, message: str, component: str = "pipeline", details: dict | None = None):
        super().__init__(message, component=component, details=details)


class ResourceError(DvmuxError):
    """Resource-related errors (too many active jobs)."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, component="resource", details=details)


class ErrorResponse(BaseModel):
    """Standardized error response for API and event consumers."""

    error_type: str = Field(..., description="Error category")
    component: str = Field(default="", description="Component that raised the error")
    message: str = Field(..., description="Human-readable error message")
    details: dict = Field(default_factory=dict)
    actionable_guidance: str = Field(default="", description="Suggested user action")
    retry_possible: bool = Field(default=False)

    @classmethod
    def from_exception(
        cls, exc: DvmuxError, guidance: str = "", retry: bool = False
    ) -> "ErrorResponse":
        return cls(
            error_type=type(exc).__name__,
            component=exc.component,
            message=exc.message,
            details=exc.details,
            actionable_guidance=guidance,
            retry_possible=retry,
        )
