"""Application configuration using Pydantic BaseSettings."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """dvmux configuration loaded from environment variables."""

    model_config = {"env_prefix": "DVMUX_", "env_file": ".env", "extra": "ignore"}

    # External tools (bare names are looked up in tool_dirs, then PATH)
    mkvextract_bin: str = "mkvextract"
    ffmpeg_bin: str = "ffmpeg"
    mp4muxer_bin: str = "mp4muxer"
    mp4box_bin: str = "MP4Box"
    tool_dirs: list[Path] = []

    # Directories
    temp_dir: Path | None = None

    # Stream selection
    video_track: str = "0"
    audio_map: str = "0:a:0"
    subtitle_map: str = "0:s:0"
    audio_extension: str = "ec3"
    subtitle_codec: str = "mov_text"

    # Remux
    dv_profile: int = 5
    dvh1_flag: int = 0
    output_extension: str = "mp4"

    # Processing
    cancel_grace_period: float = 5.0
    poll_interval: float = 0.1
    diagnostic_tail_lines: int = 20
    captured_log_lines: int = 2000
    max_active_jobs: int = 1
    max_retained_jobs: int = 100


def get_settings() -> Settings:
    """Return a settings instance."""
    return Settings()
