"""External tool discovery."""

import logging
import os
import shutil
from pathlib import Path

from dvmux.config import Settings, get_settings
from dvmux.models.errors import ToolNotFoundError
from dvmux.models.stage import ToolName

logger = logging.getLogger(__name__)


def required_tools(include_subtitles: bool) -> list[ToolName]:
    """Tools a job needs for the given options."""
    tools = [ToolName.MKVEXTRACT, ToolName.FFMPEG, ToolName.MP4MUXER]
    if include_subtitles:
        tools.append(ToolName.MP4BOX)
    return tools


class ToolLocator:
    """Resolves configured tool names to executable paths.

    Lookup order for a bare name is each of ``settings.tool_dirs`` and then
    ``PATH``. A configured value containing a path separator is used as-is.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def configured_name(self, tool: ToolName) -> str:
        return {
            ToolName.MKVEXTRACT: self.settings.mkvextract_bin,
            ToolName.FFMPEG: self.settings.ffmpeg_bin,
            ToolName.MP4MUXER: self.settings.mp4muxer_bin,
            ToolName.MP4BOX: self.settings.mp4box_bin,
        }[tool]

    def find(self, tool: ToolName) -> Path | None:
        """Return the absolute path of one tool, or None."""
        name = self.configured_name(tool)
        if os.sep in name or (os.altsep and os.altsep in name):
            candidate = Path(name).expanduser()
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return candidate.resolve()
            return None

        for directory in self.settings.tool_dirs:
            found = shutil.which(name, path=str(directory))
            if found:
                return Path(found).resolve()

        found = shutil.which(name)
        return Path(found).resolve() if found else None

    def availability(self, include_subtitles: bool) -> dict[ToolName, Path | None]:
        """Report every required tool with its path or None, without raising."""
        return {tool: self.find(tool) for tool in required_tools(include_subtitles)}

    def locate(self, tools: list[ToolName]) -> dict[ToolName, Path]:
        """Resolve all tools or raise ToolNotFoundError naming every missing one."""
        found: dict[ToolName, Path] = {}
        missing: list[str] = []
        for tool in tools:
            path = self.find(tool)
            if path is None:
                missing.append(self.configured_name(tool))
            else:
                found[tool] = path

        if missing:
            logger.error("Missing external tools: %s", ", ".join(missing))
            raise ToolNotFoundError(missing)

        logger.debug("Located tools: %s", {t.value: str(p) for t, p in found.items()})
        return found
