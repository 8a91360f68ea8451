"""Declarative stage definitions.

Each stage kind maps to exactly one external tool invocation. Argument
construction is a pure function of a StageContext so it can be tested without
spawning anything.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from dvmux.config import Settings
from dvmux.models.stage import StageKind, ToolName


@dataclass(frozen=True, slots=True)
class StageContext:
    """Resolved inputs for building one stage's arguments."""

    input_path: Path
    output_path: Path
    settings: Settings
    dependency_outputs: dict[StageKind, Path] = field(default_factory=dict)
    frame_rate: str | None = None

    def output_of(self, kind: StageKind) -> Path:
        return self.dependency_outputs[kind]


ArgumentBuilder = Callable[[StageContext], list[str]]


@dataclass(frozen=True, slots=True)
class StageDefinition:
    """Declarative stage metadata and argument builder."""

    kind: StageKind
    tool: ToolName
    depends_on: tuple[StageKind, ...]
    output_name: Callable[[Settings], str]
    build_args: ArgumentBuilder
    weight: float
    subtitles_only: bool = False

    def output_path(self, temp_dir: Path, settings: Settings) -> Path:
        return temp_dir / self.output_name(settings)


def extract_video_args(ctx: StageContext) -> list[str]:
    return [
        "tracks",
        str(ctx.input_path),
        f"{ctx.settings.video_track}:{ctx.output_path}",
    ]


def _ffmpeg_stream_copy(ctx: StageContext, stream_map: str) -> list[str]:
    return [
        "-nostdin",
        "-i",
        str(ctx.input_path),
        "-map",
        stream_map,
        "-c",
        "copy",
        str(ctx.output_path),
        "-y",
    ]


def extract_audio_args(ctx: StageContext) -> list[str]:
    return _ffmpeg_stream_copy(ctx, ctx.settings.audio_map)


def extract_subtitles_args(ctx: StageContext) -> list[str]:
    return _ffmpeg_stream_copy(ctx, ctx.settings.subtitle_map)


def subtitle_carrier_args(ctx: StageContext) -> list[str]:
    return [
        "-nostdin",
        "-i",
        str(ctx.output_of(StageKind.EXTRACT_SUBTITLES)),
        "-c:s",
        ctx.settings.subtitle_codec,
        str(ctx.output_path),
        "-y",
    ]


def remux_args(ctx: StageContext) -> list[str]:
    """mp4muxer invocation; the frame rate overrides what was detected on extraction."""
    args = ["-o", str(ctx.output_path), "-i", str(ctx.output_of(StageKind.EXTRACT_VIDEO))]
    if ctx.frame_rate:
        args.extend(["--input-video-frame-rate", ctx.frame_rate])
    args.extend(
        [
            "-i",
            str(ctx.output_of(StageKind.EXTRACT_AUDIO)),
            "--dv-profile",
            str(ctx.settings.dv_profile),
            "--dvh1flag",
            str(ctx.settings.dvh1_flag),
        ]
    )
    return args


def subtitle_mux_args(ctx: StageContext) -> list[str]:
    return [
        "-add",
        str(ctx.output_of(StageKind.REMUX)),
        "-add",
        str(ctx.output_of(StageKind.SUBTITLE_CARRIER)),
        "-new",
        str(ctx.output_path),
    ]


STAGE_DEFINITIONS: dict[StageKind, StageDefinition] = {
    StageKind.EXTRACT_VIDEO: StageDefinition(
        kind=StageKind.EXTRACT_VIDEO,
        tool=ToolName.MKVEXTRACT,
        depends_on=(),
        output_name=lambda s: "video.hevc",
        build_args=extract_video_args,
        weight=0.15,
    ),
    StageKind.EXTRACT_AUDIO: StageDefinition(
        kind=StageKind.EXTRACT_AUDIO,
        tool=ToolName.FFMPEG,
        depends_on=(),
        output_name=lambda s: f"audio.{s.audio_extension}",
        build_args=extract_audio_args,
        weight=0.1,
    ),
    StageKind.EXTRACT_SUBTITLES: StageDefinition(
        kind=StageKind.EXTRACT_SUBTITLES,
        tool=ToolName.FFMPEG,
        depends_on=(),
        output_name=lambda s: "subtitles.srt",
        build_args=extract_subtitles_args,
        weight=0.05,
        subtitles_only=True,
    ),
    StageKind.SUBTITLE_CARRIER: StageDefinition(
        kind=StageKind.SUBTITLE_CARRIER,
        tool=ToolName.FFMPEG,
        depends_on=(StageKind.EXTRACT_SUBTITLES,),
        output_name=lambda s: "subtitles_carrier.mp4",
        build_args=subtitle_carrier_args,
        weight=0.05,
        subtitles_only=True,
    ),
    StageKind.REMUX: StageDefinition(
        kind=StageKind.REMUX,
        tool=ToolName.MP4MUXER,
        depends_on=(StageKind.EXTRACT_VIDEO, StageKind.EXTRACT_AUDIO),
        output_name=lambda s: f"remux.{s.output_extension}",
        build_args=remux_args,
        weight=0.5,
    ),
    StageKind.SUBTITLE_MUX: StageDefinition(
        kind=StageKind.SUBTITLE_MUX,
        tool=ToolName.MP4BOX,
        depends_on=(StageKind.REMUX, StageKind.SUBTITLE_CARRIER),
        output_name=lambda s: f"final.{s.output_extension}",
        build_args=subtitle_mux_args,
        weight=0.3,
        subtitles_only=True,
    ),
}
