"""ffprobe helpers for stream presence and container duration."""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Optional, TypedDict

from .ffmpeg_runner import run_ffmpeg_async
from .logger import logger


class VideoInfo(TypedDict, total=False):
    codec_name: str
    width: int
    height: int


class AudioInfo(TypedDict, total=False):
    codec_name: str
    sample_rate: int
    channels: int


class MediaInfo(TypedDict, total=False):
    """Stream metadata for one media file."""

    video: Optional[VideoInfo]
    audio: Optional[AudioInfo]
    duration: Optional[float]


def parse_probe_output(raw: str) -> MediaInfo:
    """Turn ``ffprobe -show_streams -show_format -of json`` output into MediaInfo."""
    info = json.loads(raw or "{}")
    media_info: MediaInfo = {"video": None, "audio": None, "duration": None}
    for s in info.get("streams", []):
        if s.get("codec_type") == "video" and media_info["video"] is None:
            media_info["video"] = {
                "codec_name": s.get("codec_name"),
                "width": int(s.get("width", 0)),
                "height": int(s.get("height", 0)),
            }
        elif s.get("codec_type") == "audio" and media_info["audio"] is None:
            media_info["audio"] = {
                "codec_name": s.get("codec_name"),
                "sample_rate": int(s["sample_rate"]) if s.get("sample_rate") else 0,
                "channels": int(s["channels"]) if s.get("channels") else 0,
            }
    raw_duration = (info.get("format") or {}).get("duration")
    if raw_duration not in (None, "N/A"):
        try:
            media_info["duration"] = float(raw_duration)
        except (TypeError, ValueError):
            media_info["duration"] = None
    return media_info


async def get_media_info(file_path: str, ffprobe_path: str = "ffprobe") -> MediaInfo:
    """Probe a media file. Raises on ffprobe failure or unparsable output."""
    cmd = [
        ffprobe_path,
        "-v",
        "error",
        "-show_streams",
        "-show_format",
        "-of",
        "json",
        file_path,
    ]
    try:
        result = await run_ffmpeg_async(cmd, error_log_level=logging.DEBUG)
        return parse_probe_output(result.stdout)
    except subprocess.CalledProcessError as e:
        logger.warning(f"ffprobe failed for {file_path}: {(e.stderr or '').strip()}")
        raise
    except (json.JSONDecodeError, ValueError) as e:
        logger.warning(f"Error parsing ffprobe output for {file_path}: {e}")
        raise

