"""Start-up checks for the external ffmpeg/ffprobe binaries."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass
from typing import Optional, Tuple

from ..exceptions import DependencyError
from .ffmpeg_runner import run_ffmpeg_async
from .logger import KVLogger

_VERSION_PATTERN = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")

# amix normalize= and anullsrc d= both need 4.4
MIN_FFMPEG_VERSION = "4.4"


@dataclass(frozen=True)
class VersionRequirement:
    """Normalised numeric version used for comparisons."""

    major: int
    minor: int
    patch: int = 0

    @classmethod
    def parse(cls, version_str: str) -> "VersionRequirement":
        """Extract the numeric part from strings like 'n7.0.2-static'."""

        match = _VERSION_PATTERN.search(version_str)
        if not match:
            raise ValueError(f"Unsupported version string: '{version_str}'")
        major = int(match.group(1))
        minor = int(match.group(2) or 0)
        patch = int(match.group(3) or 0)
        return cls(major=major, minor=minor, patch=patch)

    def satisfies(self, minimum: "VersionRequirement") -> bool:
        return (self.major, self.minor, self.patch) >= (
            minimum.major,
            minimum.minor,
            minimum.patch,
        )


async def get_tool_version(tool_path: str) -> Optional[str]:
    """Return the version token printed by ``<tool> -version`` or None."""

    try:
        result = await run_ffmpeg_async([tool_path, "-version"], error_log_level=logging.DEBUG)
    except (FileNotFoundError, subprocess.CalledProcessError):
        return None
    m = re.search(r"version (\S+)", result.stdout)
    return m.group(1) if m else None


def _check_version(
    logger: KVLogger, tool: str, raw: Optional[str], minimum_raw: str
) -> None:
    minimum = VersionRequirement.parse(minimum_raw)
    kv = {"Event": "DependencyCheck", "Tool": tool, "MinimumVersion": minimum_raw}
    if not raw:
        logger.kv_error(
            f"{tool} was not found or its version could not be read. "
            "Install it: brew install ffmpeg (Mac), sudo apt install ffmpeg (Ubuntu), "
            "choco install ffmpeg (Windows).",
            kv_pairs={**kv, "Status": "NotDetected"},
        )
        raise DependencyError(f"{tool} is missing or its version could not be determined.")

    try:
        version = VersionRequirement.parse(raw)
    except ValueError:
        # Git snapshot builds ("N-112233-g...") carry no release number
        logger.kv_warning(
            f"Could not parse {tool} version '{raw}'; assuming a recent build.",
            kv_pairs={**kv, "Status": "UnparsableVersion", "ReportedVersion": raw},
        )
        return

    if not version.satisfies(minimum):
        logger.kv_error(
            f"{tool} {raw} is too old; {minimum_raw} or newer is required.",
            kv_pairs={**kv, "Status": "VersionTooOld", "ReportedVersion": raw},
        )
        raise DependencyError(f"{tool} {minimum_raw}+ is required, but {raw} is installed.")


async def ensure_ffmpeg_dependencies(
    logger: KVLogger,
    *,
    min_ffmpeg_version: str = MIN_FFMPEG_VERSION,
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
) -> Tuple[str, str]:
    """Verify ffmpeg and ffprobe are runnable and recent enough."""

    ffmpeg_version = await get_tool_version(ffmpeg_path)
    _check_version(logger, "ffmpeg", ffmpeg_version, min_ffmpeg_version)
    ffprobe_version = await get_tool_version(ffprobe_path)
    _check_version(logger, "ffprobe", ffprobe_version, min_ffmpeg_version)

    logger.kv_info(
        "ffmpeg/ffprobe requirements satisfied.",
        kv_pairs={
            "Event": "DependencyCheck",
            "Status": "OK",
            "FFmpegVersion": ffmpeg_version,
            "FFprobeVersion": ffprobe_version,
        },
    )
    return ffmpeg_version or "", ffprobe_version or ""
