"""Tool availability and frame rate endpoints."""

from fastapi import APIRouter, Depends

from dvmux.api.dependencies import get_tool_locator
from dvmux.models.frame_rate import FrameRateId
from dvmux.tools.frame_rate import describe, resolve
from dvmux.tools.locator import ToolLocator

router = APIRouter(prefix="/api/v1", tags=["tools"])


@router.get("/tools")
async def check_tools(
    include_subtitles: bool = True,
    locator: ToolLocator = Depends(get_tool_locator),
):
    """Report which external tools are available."""
    report = locator.availability(include_subtitles)
    return {
        "tools": {
            tool.value: {
                "executable": locator.configured_name(tool),
                "path": str(path) if path else None,
            }
            for tool, path in report.items()
        },
        "missing": [locator.configured_name(t) for t, p in report.items() if p is None],
    }


@router.get("/frame-rates")
async def list_frame_rates():
    """List the standard frame rates and the fraction passed to the remuxer."""
    return [
        {"id": rate.value, "fraction": resolve(rate), "label": describe(rate)}
        for rate in FrameRateId
    ]
