"""Dependency injection providers for FastAPI."""

from functools import lru_cache

from dvmux.config import get_settings
from dvmux.pipeline.manager import JobManager
from dvmux.tools.locator import ToolLocator


@lru_cache
def get_job_manager() -> JobManager:
    return JobManager()


def get_tool_locator() -> ToolLocator:
    return ToolLocator(get_settings())
