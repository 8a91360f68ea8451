"""Error handling middleware."""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from dvmux.models.errors import (
    DvmuxError,
    ErrorResponse,
    ResourceError,
    ToolNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


async def dvmux_error_handler(request: Request, exc: DvmuxError) -> JSONResponse:
    """Handle DvmuxError exceptions."""
    response = ErrorResponse.from_exception(
        exc, guidance=_get_guidance(exc), retry=_is_retryable(exc)
    )
    status_code = _get_status_code(exc)
    if status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=response.model_dump())


def _get_status_code(exc: DvmuxError) -> int:
    """Map error type to HTTP status code."""
    if isinstance(exc, ValidationError):
        return 400
    elif isinstance(exc, ToolNotFoundError):
        return 424
    elif isinstance(exc, ResourceError):
        return 503
    return 500


def _get_guidance(exc: DvmuxError) -> str:
    """Generate actionable guidance based on error type."""
    if isinstance(exc, ToolNotFoundError):
        return f"Install or configure these tools: {', '.join(exc.missing)}."
    if isinstance(exc, ValidationError):
        return "Check the input file, output folder and frame rate."
    if isinstance(exc, ResourceError):
        return "Wait for the running conversion to finish, then resubmit."
    return "Check the job log for the failing tool's output."


def _is_retryable(exc: DvmuxError) -> bool:
    """Determine if the error is retryable."""
    return isinstance(exc, ResourceError)
