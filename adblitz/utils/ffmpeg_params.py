"""Encode parameter dataclasses for the final mux."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

X264_PRESETS = (
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
)


@dataclass
class VideoParams:
    """Target frame geometry and x264 settings."""

    width: int = 1080
    height: int = 1920
    fps: int = 30
    pix_fmt: str = "yuv420p"
    preset: str = "fast"
    crf: int = 23

    def to_ffmpeg_opts(self) -> List[str]:
        opts: List[str] = []
        opts.extend(["-c:v", "libx264"])
        opts.extend(["-preset", self.preset])
        opts.extend(["-crf", str(self.crf)])
        opts.extend(["-pix_fmt", self.pix_fmt])
        return opts

    @classmethod
    def from_config(cls, output_cfg: Dict[str, Any]) -> "VideoParams":
        return cls(
            width=int(output_cfg.get("width", cls.width)),
            height=int(output_cfg.get("height", cls.height)),
            fps=int(output_cfg.get("fps", cls.fps)),
            preset=str(output_cfg.get("preset", cls.preset)),
            crf=int(output_cfg.get("crf", cls.crf)),
        )


@dataclass
class AudioParams:
    """Normalised audio format shared by every segment and the music bed."""

    sample_rate: int = 44100
    channels: int = 2
    sample_fmt: str = "fltp"
    codec: str = "aac"
    bitrate_kbps: int = 128

    @property
    def channel_layout(self) -> str:
        # anullsrc/aformat want a named layout, not a channel count
        return "mono" if self.channels == 1 else "stereo"

    def to_ffmpeg_opts(self) -> List[str]:
        opts: List[str] = []
        opts.extend(["-c:a", self.codec])
        opts.extend(["-b:a", f"{self.bitrate_kbps}k"])
        return opts

    @classmethod
    def from_config(cls, output_cfg: Dict[str, Any]) -> "AudioParams":
        return cls(
            sample_rate=int(output_cfg.get("sample_rate", cls.sample_rate)),
            bitrate_kbps=int(output_cfg.get("audio_bitrate_kbps", cls.bitrate_kbps)),
        )
