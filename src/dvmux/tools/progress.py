"""In-stage progress parsing from external tool output."""

import re
from collections.abc import Callable

from dvmux.models.stage import ToolName


class ToolProgressParser:
    """Base parser: tools with no usable output report no progress."""

    def parse_line(self, line: str) -> float | None:
        return None


class MkvextractProgressParser(ToolProgressParser):
    """mkvextract prints ``Progress: 42%``."""

    _PATTERN = re.compile(r"Progress:\s*(\d{1,3})%")

    def parse_line(self, line: str) -> float | None:
        match = self._PATTERN.search(line)
        if match:
            return min(1.0, int(match.group(1)) / 100.0)
        return None


class FFmpegProgressParser(ToolProgressParser):
    """Monitor FFmpeg progress from stderr.

    The input duration is picked up from the ``Duration:`` banner line; each
    later ``time=`` status line is reported against it.
    """

    _DURATION = re.compile(r"Duration:\s*(\d+):(\d+):(\d+\.?\d*)")
    _TIME = re.compile(r"time=(\d+):(\d+):(\d+\.?\d*)")

    def __init__(self):
        self.total_duration = 0.0
        self.current_time = 0.0

    @staticmethod
    def _seconds(match: re.Match) -> float:
        hours = int(match.group(1))
        minutes = int(match.group(2))
        seconds = float(match.group(3))
        return hours * 3600 + minutes * 60 + seconds

    def parse_line(self, line: str) -> float | None:
        if self.total_duration <= 0:
            match = self._DURATION.search(line)
            if match:
                self.total_duration = self._seconds(match)
                return None

        match = self._TIME.search(line)
        if match and self.total_duration > 0:
            self.current_time = self._seconds(match)
            return self.progress
        return None

    @property
    def progress(self) -> float:
        """Current progress as fraction [0, 1]."""
        if self.total_duration <= 0:
            return 0.0
        return min(1.0, self.current_time / self.total_duration)


class MP4BoxProgressParser(ToolProgressParser):
    """MP4Box prints ``Importing ...: |=====   | (45/100)``."""

    _PATTERN = re.compile(r"\((\d+)/(\d+)\)")

    def parse_line(self, line: str) -> float | None:
        match = self._PATTERN.search(line)
        if match:
            done, total = int(match.group(1)), int(match.group(2))
            if total > 0:
                return min(1.0, done / total)
        return None


_PARSERS: dict[ToolName, Callable[[], ToolProgressParser]] = {
    ToolName.MKVEXTRACT: MkvextractProgressParser,
    ToolName.FFMPEG: FFmpegProgressParser,
    ToolName.MP4BOX: MP4BoxProgressParser,
}


def parser_for(tool: ToolName) -> ToolProgressParser:
    """Return a fresh progress parser for a tool."""
    return _PARSERS.get(tool, ToolProgressParser)()
