"""Single-frame thumbnail extraction."""

import logging
import subprocess
from pathlib import Path
from typing import List

from ...exceptions import PostProcessError
from ...utils.ffmpeg_runner import run_ffmpeg_async
from ..filter_graph import format_number


def build_thumbnail_command(
    video_path: Path, thumb_path: Path, at: float = 0.0, ffmpeg_path: str = "ffmpeg"
) -> List[str]:
    return [
        ffmpeg_path,
        "-y",
        "-hide_banner",
        "-nostdin",
        "-ss",
        format_number(at),
        "-i",
        str(video_path),
        "-frames:v",
        "1",
        "-q:v",
        "2",
        str(thumb_path),
    ]


async def extract_thumbnail(
    video_path: Path, thumb_path: Path, at: float = 0.0, ffmpeg_path: str = "ffmpeg"
) -> Path:
    """Grab one frame at ``at`` seconds.

    Raises
    ------
    PostProcessError
        If ffmpeg fails or writes nothing (e.g. ``at`` is past the end).
    """
    cmd = build_thumbnail_command(video_path, thumb_path, at, ffmpeg_path)
    try:
        await run_ffmpeg_async(cmd, error_log_level=logging.DEBUG)
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, OSError) as e:
        raise PostProcessError(f"Thumbnail extraction failed: {e}", step="thumbnail") from e
    if not thumb_path.exists() or thumb_path.stat().st_size == 0:
        raise PostProcessError(f"No frame at {at}s in {video_path.name}", step="thumbnail")
    return thumb_path
