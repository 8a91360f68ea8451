"""Temporary workspace lifecycle management."""

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from dvmux.config import get_settings
from dvmux.models.errors import FilesystemError

logger = logging.getLogger(__name__)


DEFAULT_BASE_DIR = Path(tempfile.gettempdir()) / "dvmux"


class TempFileManager:
    """Creates per-job temporary directories with guaranteed cleanup."""

    def __init__(self, base_dir: Path | None = None):
        self.base_dir = base_dir or get_settings().temp_dir or DEFAULT_BASE_DIR

    def create_job_dir(self, job_id: str) -> Path:
        """Create an exclusive temporary directory for a job."""
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            return Path(tempfile.mkdtemp(prefix=f"{job_id}-", dir=self.base_dir))
        except OSError as e:
            raise FilesystemError(
                f"Could not create temp directory: {e}",
                details={"base_dir": str(self.base_dir), "job_id": job_id},
            )

    def cleanup(self, job_dir: Path) -> None:
        """Remove a job's temporary directory and everything in it."""
        if job_dir.exists():
            shutil.rmtree(job_dir, ignore_errors=True)
        if job_dir.exists():
            logger.warning("Temp directory %s could not be fully removed", job_dir)
        else:
            logger.info("Cleaned up temp files in %s", job_dir)

    @contextmanager
    def workspace(self, job_id: str, keep: bool = False) -> Iterator[Path]:
        """Yield a job directory that is removed on every exit path unless kept."""
        job_dir = self.create_job_dir(job_id)
        try:
            yield job_dir
        finally:
            if keep:
                logger.info("Keeping temp directory %s for job %s", job_dir, job_id)
            else:
                self.cleanup(job_dir)
