"""Job request validation."""

import os
from pathlib import Path

from dvmux.models.errors import ValidationError
from dvmux.models.job import JobRequest


def validate_input_file(file_path: Path) -> None:
    """Validate that the input container exists and is readable."""
    if not file_path.exists():
        raise ValidationError(f"File not found: {file_path}", details={"input_path": str(file_path)})
    if not file_path.is_file():
        raise ValidationError(f"Not a file: {file_path}", details={"input_path": str(file_path)})
    if not os.access(file_path, os.R_OK):
        raise ValidationError(
            f"File is not readable: {file_path}", details={"input_path": str(file_path)}
        )


def validate_output_dir(output_dir: Path) -> None:
    """Validate that the output directory exists and is writable."""
    if not output_dir.is_dir():
        raise ValidationError(
            f"Output directory not found: {output_dir}", details={"output_dir": str(output_dir)}
        )
    if not os.access(output_dir, os.W_OK | os.X_OK):
        raise ValidationError(
            f"Output directory is not writable: {output_dir}",
            details={"output_dir": str(output_dir)},
        )


def validate_job_request(request: JobRequest) -> None:
    validate_input_file(request.input_path)
    validate_output_dir(request.output_dir)
