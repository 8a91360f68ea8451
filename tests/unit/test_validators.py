"""Tests for job request validation."""

import os

import pytest

from dvmux.models.errors import ValidationError
from dvmux.pipeline.validators import validate_input_file, validate_job_request, validate_output_dir


class TestValidators:
    def test_valid_request(self, make_request):
        validate_job_request(make_request())

    def test_missing_input(self, tmp_dir):
        with pytest.raises(ValidationError, match="File not found"):
            validate_input_file(tmp_dir / "missing.mkv")

    def test_input_is_directory(self, tmp_dir):
        with pytest.raises(ValidationError, match="Not a file"):
            validate_input_file(tmp_dir)

    def test_missing_output_dir(self, tmp_dir):
        with pytest.raises(ValidationError, match="Output directory not found"):
            validate_output_dir(tmp_dir / "nowhere")

    def test_output_dir_is_file(self, input_file):
        with pytest.raises(ValidationError):
            validate_output_dir(input_file)

    @pytest.mark.skipif(
        os.name != "posix" or os.geteuid() == 0, reason="needs a non-root POSIX user"
    )
    def test_unwritable_output_dir(self, output_dir):
        output_dir.chmod(0o500)
        try:
            with pytest.raises(ValidationError, match="not writable"):
                validate_output_dir(output_dir)
        finally:
            output_dir.chmod(0o700)

    def test_details_carry_path(self, tmp_dir):
        with pytest.raises(ValidationError) as exc_info:
            validate_input_file(tmp_dir / "missing.mkv")
        assert exc_info.value.details["input_path"].endswith("missing.mkv")
        assert exc_info.value.component == "validation"
